"""Professionals router - directory populated by the sheet sync"""

from fastapi import APIRouter, Request

from ...dependencies import get_container

router = APIRouter(prefix="/api/professionals", tags=["Professionals"])


@router.get("")
def list_professionals(request: Request):
    """Empty list with loaded=false until the first sync with bio columns"""
    directory = get_container(request).directory
    professionals = [p.to_dict() for p in directory.get_all()]
    return {
        "success": True,
        "loaded": directory.is_loaded(),
        "lastSyncAt": directory.last_sync_at,
        "count": len(professionals),
        "professionals": professionals,
    }


@router.get("/{name}")
def get_professional(name: str, request: Request):
    """Never 404s: unknown names get a fallback entry"""
    return {"success": True, "professional": get_container(request).directory.get(name).to_dict()}
