"""
Service: modifier_store.py
Rôle:
- Suivre les effets temporisés par joueur (double_next, shield, frozen, category_master).
- Garantir au plus un modificateur par couple (player_id, type) : un `add` remplace l'existant.

Cycle de vie:
- `tick()` est appelé une seule fois par tour terminé (jamais par sous-phase).
- `frozen` n'est pas décrémenté par `tick()` : il est retiré par la machine à états
  au moment précis où il fait sauter le tour du joueur.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from startrail.models.twist import ModifierType, PlayerModifier

DEFAULT_MULTIPLIER = 2

_Key = Tuple[str, str]


@dataclass
class ModifierStore:
    _entries: Dict[_Key, PlayerModifier] = field(default_factory=dict)

    def add(self, modifier: PlayerModifier) -> None:
        """Upsert par (player_id, type) : le plus récent gagne."""
        self._entries[(modifier.player_id, modifier.type)] = modifier

    def remove(self, player_id: str, type_: ModifierType) -> Optional[PlayerModifier]:
        return self._entries.pop((player_id, type_), None)

    def get(self, player_id: str, type_: ModifierType) -> Optional[PlayerModifier]:
        return self._entries.get((player_id, type_))

    def has(self, player_id: str, type_: ModifierType) -> bool:
        return (player_id, type_) in self._entries

    def tick(self) -> List[PlayerModifier]:
        """Décrémente tous les compteurs (sauf frozen) et retire ceux arrivés à 0. Retourne les expirés."""
        expired: List[PlayerModifier] = []
        for key, modifier in list(self._entries.items()):
            if modifier.type == "frozen":
                continue
            modifier.turns_remaining -= 1
            if modifier.turns_remaining <= 0:
                expired.append(self._entries.pop(key))
        return expired

    def multiplier_for(self, player_id: str) -> int:
        modifier = self.get(player_id, "double_next")
        if modifier is None:
            return 1
        if isinstance(modifier.value, int):
            return modifier.value
        return DEFAULT_MULTIPLIER

    def forced_category_for(self, player_id: str) -> Optional[str]:
        modifier = self.get(player_id, "category_master")
        if modifier is None or not isinstance(modifier.value, str):
            return None
        return modifier.value

    def is_frozen(self, player_id: str) -> bool:
        return self.has(player_id, "frozen")

    def has_shield(self, player_id: str) -> bool:
        return self.has(player_id, "shield")

    def shielded_ids(self) -> frozenset:
        return frozenset(pid for (pid, type_) in self._entries if type_ == "shield")

    def for_player(self, player_id: str) -> List[PlayerModifier]:
        return [m for (pid, _), m in self._entries.items() if pid == player_id]

    def snapshot(self) -> List[PlayerModifier]:
        """Copie des modificateurs actifs (pour le snapshot présentation)."""
        return [m.model_copy() for m in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)
