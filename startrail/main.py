"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI, configure le CORS pour le front,
- Monte les routeurs (REST + WebSocket),
- Journalise la configuration du fournisseur de questions et la liste des routes au démarrage.

Notes
-----
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
- Lancement local : `uvicorn startrail.main:app --reload`
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from startrail.config.settings import settings
from startrail.routes.games import router as games_router
from startrail.routes.health import router as health_router
from startrail.routes.websocket import router as ws_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("startrail")

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(games_router)
app.include_router(health_router)
app.include_router(ws_router)                  # WebSocket endpoint (/ws/games/{id})


@app.get("/")
async def root():
    """Ping basique : permet de vérifier que l'app tourne."""
    return {"ok": True, "service": "startrail-backend"}


@app.on_event("startup")
async def list_routes():
    """
    Au démarrage:
    - journalise la config du fournisseur de questions (provider, modèle, endpoint),
    - liste les routes (path + méthodes) (diagnostic).
    """
    logger.info(
        "Question provider config",
        extra={"provider": settings.LLM_PROVIDER, "model": settings.LLM_MODEL, "endpoint": settings.LLM_ENDPOINT},
    )
    for r in app.routes:
        methods = getattr(r, "methods", None)
        logger.info("Route %s %s", getattr(r, "path", "?"), sorted(methods) if methods else "WS")
