"""
Erreurs métier du moteur de jeu.
Les routes les traduisent en HTTPException (409 / 400 / 404).
"""


class GameError(ValueError):
    """Base des erreurs métier (intention refusée, cible invalide...)."""


class InvalidIntent(GameError):
    """Intention reçue dans une phase qui ne l'accepte pas (ou du mauvais joueur)."""


class InvalidTarget(GameError):
    """Cible de twist non proposable (joueur protégé, porte inconnue, étoile déjà gagnée...)."""


class UnknownPlayer(GameError):
    """Identifiant de joueur absent de la partie."""
