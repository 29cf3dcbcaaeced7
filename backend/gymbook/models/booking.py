"""
Booking model: one person's place in one session.

- Composite primary key on (person_id, session_id) enforces one booking per pair
- `credits_used` is NULL for rows written before credits existed
- Cancelling deletes the row; the returned `credits_used` drives the refund
"""

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, ForeignKey, Integer
from sqlalchemy.orm import relationship

from gymbook.db.base import Base, TimestampMixin


class Booking(Base, TimestampMixin):
    __tablename__ = "booking"

    person_id = Column(BigInteger, ForeignKey("person.id", ondelete="CASCADE"), primary_key=True)
    session_id = Column(BigInteger, ForeignKey("session.id", ondelete="CASCADE"), primary_key=True, index=True)
    credits_used = Column(Integer, nullable=True)
    attended = Column(Boolean, nullable=False, default=False, server_default="false")

    person = relationship("Person", back_populates="bookings")
    session = relationship("GymSession", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("credits_used IS NULL OR credits_used >= 0", name="check_booking_credits_used_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Booking(person={self.person_id}, session={self.session_id}, credits_used={self.credits_used})>"
