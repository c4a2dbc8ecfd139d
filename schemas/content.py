"""
Schemas for the note access gate.
"""
from typing import Optional, Union
from pydantic import BaseModel, Field, field_validator


class NoteAccessRequest(BaseModel):
    """Body of a note access request. ``noteId`` may arrive as a string or a number."""
    note_id: Optional[str] = Field(None, alias="noteId")

    @field_validator("note_id", mode="before")
    @classmethod
    def coerce_note_id(cls, value: Union[str, int, None]) -> Optional[str]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str):
            return value.strip() or None
        return value

    class Config:
        populate_by_name = True


class Watermark(BaseModel):
    email: str
    order_id: str = Field(..., alias="orderId")

    class Config:
        populate_by_name = True


class SignedAccessGrantResponse(BaseModel):
    """Short-lived URL plus the watermark the viewer must overlay."""
    signed_url: str = Field(..., alias="signedUrl")
    expires_in: int = Field(..., alias="expiresIn", description="URL lifetime in seconds")
    watermark: Watermark
    note_title: str = Field(..., alias="noteTitle")

    class Config:
        populate_by_name = True
