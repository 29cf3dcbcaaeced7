"""
Pydantic schemas for booking request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    person_id: int
    session_id: int
    # Credits the caller agrees to spend; must cover the session cost to opt in
    credits_used: Optional[int] = Field(default=None, ge=0)


class BookingRecord(BaseModel):
    person_id: int
    session_id: int
    credits_used: Optional[int] = None
    attended: bool = False

    model_config = {"from_attributes": True}


class AttendanceUpdate(BaseModel):
    attended: bool


class LocationView(BaseModel):
    id: int
    name: str
    address: Optional[str] = None


class SessionTypeView(BaseModel):
    id: int
    name: str
    requires_trainer: bool = True


class BookingView(BaseModel):
    person_id: int
    person_name: str
    person_email: str
    session_id: int
    session_datetime: datetime
    session_duration_mins: int
    session_location: Optional[LocationView] = None
    session_type: SessionTypeView
    attended: bool = False
    credits_used: Optional[int] = None
