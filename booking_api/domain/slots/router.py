"""Slot admin router - upload, status, clear and manual sheet sync"""

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile

from ...auth import require_api_key
from ...dependencies import get_container
from ...exceptions import ValidationError
from .schemas import SlotUploadJsonRequest
from .upload import check_upload_file, process_json_upload, process_slot_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/slots", tags=["Slots"], dependencies=[Depends(require_api_key)])


@router.post("/upload")
async def upload_slots(request: Request, slots: UploadFile | None = File(default=None)):
    """CSV upload in the "slots" form field. Replaces the slot set, keeping booked slots."""
    if slots is None:
        raise ValidationError('No file uploaded. Send a file in the "slots" field.')

    content = await slots.read()
    check_upload_file(slots.filename or "", slots.content_type, len(content))

    result = process_slot_upload(get_container(request).store, content, slots.filename or "upload.csv")
    return {"success": True, **result.to_dict()}


@router.post("/upload/json")
def upload_slots_json(body: SlotUploadJsonRequest, request: Request):
    result = process_json_upload(get_container(request).store, body.slots)
    return {"success": True, **result.to_dict()}


@router.get("/status")
def slot_status(request: Request):
    container = get_container(request)
    return {
        "success": True,
        **container.store.status_summary().to_dict(),
        "sync": container.sync.status(),
    }


@router.delete("/clear")
def clear_slots(request: Request):
    get_container(request).store.reconcile([], "admin-clear")
    logger.warning("🧹 All slots cleared by admin")
    return {"success": True, "message": "All slots cleared"}


@router.post("/sync")
async def sync_slots(request: Request):
    """Force an immediate re-sync from the Google Sheet"""
    result = await get_container(request).sync.sync()
    if result.skipped:
        return {"success": True, "message": result.message, "skipped": True}
    return {
        "success": True,
        "message": f"Synced {result.count} slots from Google Sheet",
        "count": result.count,
        "warnings": result.warnings,
        "parseErrors": result.errors,
    }
