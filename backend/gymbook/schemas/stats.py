"""
Pydantic schemas for admin statistics.
"""

from pydantic import BaseModel


class AttendanceStat(BaseModel):
    person_id: int
    name: str
    email: str
    attended_count: int
