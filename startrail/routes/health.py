"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK, fournisseur de questions, parties chargées, sockets ouvertes).
"""
from fastapi import APIRouter

from startrail.config.settings import settings
from startrail.services.session_store import list_session_ids
from startrail.services.ws_manager import WS

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Renvoie un OK minimal avec le nom de service, le fournisseur de questions et les compteurs."""
    return {
        "ok": True,
        "service": settings.APP_NAME,
        "question_provider": settings.LLM_PROVIDER,
        "sessions": len(list_session_ids()),
        "ws_clients": WS.stats()["total"],
    }
