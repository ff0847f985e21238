"""
Models / star.py
Rôle:
- Définir une étoile du plateau : valeur cachée tant qu'elle n'est pas gagnée.

Invariants:
- `value` appartient au multiset STAR_POINT_VALUES (sauf étoile 0 améliorée à 250).
- `owner_id` est None tant que `earned` est False.
"""
from pydantic import BaseModel
from typing import Optional


class Star(BaseModel):
    """Étoile (id 0..9) avec sa valeur et son propriétaire éventuel."""
    id: int
    value: int
    earned: bool = False
    owner_id: Optional[str] = None


class StarView(BaseModel):
    """Vue publique d'une étoile : la valeur n'est exposée que si gagnée (ou espionnée)."""
    id: int
    earned: bool
    owner_id: Optional[str] = None
    value: Optional[int] = None
