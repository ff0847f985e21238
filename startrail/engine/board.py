"""
Board geometry.
Pure functions over the circular track: moving a token, listing the gates
crossed on the way, and finding the checkpoint behind a position.
"""
from __future__ import annotations

from typing import List

TRACK_LENGTH = 25
GATES = (0, 5, 10, 15, 20)


def move(start: int, steps: int) -> int:
    """Position d'arrivée après `steps` pas vers l'avant (circuit circulaire)."""
    if steps < 0:
        raise ValueError("steps must be non-negative")
    return (start + steps) % TRACK_LENGTH


def move_back(position: int, steps: int) -> int:
    """Recul de `steps` cases, ramené dans [0, TRACK_LENGTH)."""
    return (position - steps) % TRACK_LENGTH


def gates_crossed(start: int, steps: int) -> List[int]:
    """
    Portes traversées pendant le déplacement, dans l'ordre de passage.
    Chaque case intermédiaire est examinée (pas seulement l'arrivée) ; la case de départ ne compte pas.
    """
    crossed: List[int] = []
    for i in range(1, steps + 1):
        pos = (start + i) % TRACK_LENGTH
        if pos in GATES:
            crossed.append(pos)
    return crossed


def previous_gate(position: int) -> int:
    """Plus grande porte strictement inférieure à `position`, sinon la dernière porte (bouclage)."""
    behind = [g for g in GATES if g < position]
    if behind:
        return max(behind)
    return GATES[-1]


def start_gate(index: int) -> int:
    """Porte de départ d'un joueur selon son rang d'inscription (round-robin)."""
    return GATES[index % len(GATES)]
