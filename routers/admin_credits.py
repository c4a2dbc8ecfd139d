"""
Admin routes for reviewing flagged AI usage and toggling suspensions.
"""
import re
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.exceptions import BadRequestException
from core.logging import get_logger
from core.security import get_current_admin_user
from db_config import get_db
from models.models import User
from schemas.credits import CreditRecordRead, SuspensionUpdate
from services.abuse_detection import AbuseDetector, get_abuse_detector
from services.credit_ledger import CreditLedger

router = APIRouter(prefix="/admin/ai-credits", tags=["Admin - AI Credits"])

logger = get_logger("admin_credits")

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


@router.get("/flagged", response_model=List[CreditRecordRead])
async def list_flagged_records(
    month: Optional[str] = Query(None, description="Month as YYYY-MM, defaults to the current month"),
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
    detector: AbuseDetector = Depends(get_abuse_detector),
):
    """Credit records with strikes or a suspension, most strikes first."""
    if month is not None and not MONTH_PATTERN.match(month):
        raise BadRequestException(detail="Month must be formatted as YYYY-MM", code="INVALID_MONTH")

    records = CreditLedger(db, detector).flagged_records(month)
    logger.debug("Flagged credit records listed", admin_id=admin.id, month=month, count=len(records))
    return records


@router.patch("/{record_id}/suspension", response_model=CreditRecordRead)
async def update_suspension(
    record_id: int,
    update: SuspensionUpdate,
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
    detector: AbuseDetector = Depends(get_abuse_detector),
):
    """
    Suspend or reinstate a user's AI access for the record's month.

    Suspending burns the remaining balance; reinstating does not restore it.
    """
    record = CreditLedger(db, detector).set_suspension(record_id, update.suspend)
    logger.info("Credit suspension updated", admin_id=admin.id, record_id=record_id,
                user_id=record.user_id, suspended=record.is_suspended)
    return record
