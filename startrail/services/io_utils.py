"""
Lecture du contenu statique (data/*.json) via orjson.
- read_json(path, default) → contenu décodé, ou `default` si le fichier n'existe pas.

Les fichiers de contenu (cartes twist, banque de questions) ne sont jamais réécrits
pendant une partie : pas d'écriture ici.
"""
import orjson
from pathlib import Path
from typing import Any


def read_json(path: Path, default: Any = None) -> Any:
    if not path.is_file():
        return default
    return orjson.loads(path.read_bytes())
