"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du service (nom, host/port, logs, fournisseur de questions, durées des timers).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from startrail.config.settings import settings`.

Timers
------
Toutes les durées sont en secondes. Elles pilotent le `SessionRunner` (suspense,
"réflexion" des joueurs automatiques, compte à rebours). Les tests n'attendent
jamais ces délais : ils déclenchent le timer en attente directement.

Exemples de `.env`
------------------
APP_NAME="Star Trail (Staging)"
PORT=8080
LOG_LEVEL="DEBUG"
LLM_PROVIDER="ollama"
LLM_MODEL="llama3.1"
LLM_ENDPOINT="http://localhost:11434/api/chat"
COUNTDOWN_SECONDS=3
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Star Trail Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Frontends autorisés (CORS)
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Fournisseur de questions :
    # - "builtin" : banque statique embarquée (data/questions.json)
    # - "ollama"  : génération via LLM (/api/chat), repli sur la banque en cas d'échec
    LLM_PROVIDER: str = "builtin"
    LLM_MODEL: str = "llama3.1"
    LLM_ENDPOINT: str = "http://localhost:11434/api/chat"
    LLM_TIMEOUT_SECONDS: float = 60.0
    QUESTION_COUNT: int = 100

    # Contenu statique (twists.json, questions.json)
    # Par défaut: <repo>/startrail/data
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")

    # Borne du journal d'événements en mémoire (par partie)
    MAX_EVENTS: int = 500

    # --- Durées des phases ---
    AUTO_SPIN_SECONDS: float = 1.5
    ANSWER_SETTLE_SECONDS: float = 0.3
    BOT_THINK_MIN_SECONDS: float = 1.0
    BOT_THINK_MAX_SECONDS: float = 3.0
    COUNTDOWN_SECONDS: float = 2.0
    RESULTS_AUTO_SECONDS: float = 3.0
    MOVE_STEP_SECONDS: float = 0.8
    STAR_PICK_MIN_SECONDS: float = 1.0
    STAR_PICK_MAX_SECONDS: float = 2.0
    STAR_REVEAL_SECONDS: float = 4.0
    TWIST_AUTO_CONFIRM_SECONDS: float = 2.5
    TWIST_CHOICE_MIN_SECONDS: float = 1.5
    TWIST_CHOICE_MAX_SECONDS: float = 2.5
    BONUS_FEEDBACK_SECONDS: float = 1.5
    STAR_PEEK_SECONDS: float = 3.0

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
