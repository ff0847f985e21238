"""
Models / player.py
Rôle:
- Définir la structure d'un joueur de plateau (côté modèles Pydantic).

Champs:
- id: identifiant stable (`human-<i>` ou `bot-<i>`), jamais réattribué pendant la partie.
- name: nom d'affichage.
- kind: "human" (intentions reçues via l'API) ou "automated" (décisions aléatoires temporisées).
- score: points cumulés (étoiles, twists).
- position: case du circuit, dans [0, TRACK_LENGTH).
- stars_collected: nombre d'étoiles actuellement détenues.
- avatar: étiquette d'avatar (emoji) pour l'affichage.
"""
from pydantic import BaseModel
from typing import Literal

PlayerKind = Literal["human", "automated"]

HUMAN_AVATARS = ["👦", "👧", "🧒", "👨", "👩", "🧑", "👴", "👵"]
AUTOMATED_AVATARS = ["🤖", "👾", "🎮", "🦾", "🧠", "💻"]


class Player(BaseModel):
    """Joueur d'une partie (créé une fois au démarrage, muté par le moteur)."""
    id: str
    name: str
    kind: PlayerKind = "human"
    score: int = 0
    position: int = 0
    stars_collected: int = 0
    avatar: str = ""

    @property
    def is_automated(self) -> bool:
        return self.kind == "automated"
