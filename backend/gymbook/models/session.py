"""
Session catalog models.

A session may have no fixed location and no booking cap. `cost` is the
number of credits a pay-as-you-go booking costs; 0 means the session is free.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
)
from sqlalchemy.orm import relationship

from gymbook.db.base import Base


class SessionType(Base):
    __tablename__ = "session_type"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    requires_trainer = Column(Boolean, nullable=False, default=True, server_default="true")


class Location(Base):
    __tablename__ = "location"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    address = Column(String(1023), nullable=True)


class GymSession(Base):
    __tablename__ = "session"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    datetime = Column(DateTime(timezone=True), nullable=False)
    duration_mins = Column(Integer, nullable=False)
    session_type_id = Column(Integer, ForeignKey("session_type.id"), nullable=False)
    location_id = Column(Integer, ForeignKey("location.id"), nullable=True)
    trainer_id = Column(BigInteger, ForeignKey("person.id"), nullable=True)
    max_booking_count = Column(Integer, nullable=True)
    cost = Column(SmallInteger, nullable=False, default=0, server_default="0")
    notes = Column(String(1023), nullable=True)

    session_type = relationship("SessionType", lazy="joined")
    location = relationship("Location", lazy="joined")
    bookings = relationship("Booking", back_populates="session", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("cost >= 0", name="check_session_cost_non_negative"),
        CheckConstraint(
            "max_booking_count IS NULL OR max_booking_count >= 0",
            name="check_session_max_booking_count_non_negative",
        ),
        # Weekly quota and listing filters are range scans on datetime
        Index("ix_session_datetime", "datetime"),
    )

    def __repr__(self) -> str:
        return f"<GymSession(id={self.id}, datetime={self.datetime}, cost={self.cost}, max={self.max_booking_count})>"
