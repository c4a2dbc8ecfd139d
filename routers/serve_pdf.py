"""
Note access route: issues a signed, watermarked, short-lived URL for a note's PDF.
"""
from typing import Optional
from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.orm import Session

from core.exceptions import BadRequestException
from core.middleware import get_client_ip
from core.security import get_current_active_user
from db_config import get_db
from models.models import User
from schemas.content import NoteAccessRequest, SignedAccessGrantResponse, Watermark
from services.content_gate import ContentGateService
from services.storage_service import StorageClient, get_storage_client

router = APIRouter(tags=["Content"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


@router.post("/serve-pdf", response_model=SignedAccessGrantResponse, response_model_by_alias=True)
async def serve_pdf(
    request: Request,
    response: Response,
    payload: Optional[NoteAccessRequest] = Body(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Check the caller's entitlement to a note and return a signed URL.

    Admins skip enrollment, expiry and tier checks but still get
    NOTE_NOT_FOUND / NOTE_INACTIVE for missing or disabled notes.
    """
    if payload is None or not payload.note_id:
        raise BadRequestException(detail="Note ID is required", code="MISSING_NOTE_ID")

    gate = ContentGateService(db, storage)
    grant = await gate.request_access(current_user, payload.note_id, ip_address=get_client_ip(request))

    response.headers.update(NO_CACHE_HEADERS)
    return SignedAccessGrantResponse(
        signed_url=grant.signed_url,
        expires_in=grant.expires_in,
        watermark=Watermark(email=grant.email, order_id=grant.order_id),
        note_title=grant.note_title,
    )
