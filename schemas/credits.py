"""
Credit balance and credit administration schemas.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CreditBalanceResponse(BaseModel):
    """Caller's balance for the current month."""
    eligible: bool
    tier: Optional[str] = None
    tier_label: Optional[str] = Field(None, alias="tierLabel")
    month_year: str = Field(..., alias="monthYear")
    used: int
    limit: int
    remaining: int
    strikes: int
    is_suspended: bool = Field(..., alias="isSuspended")

    class Config:
        populate_by_name = True


class CreditRecordRead(BaseModel):
    id: int
    user_id: int
    enrollment_id: Optional[int] = None
    month_year: str
    credits_used: int
    credits_limit: int
    remaining: int
    strikes: int
    is_suspended: bool
    suspended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SuspensionUpdate(BaseModel):
    suspend: bool
