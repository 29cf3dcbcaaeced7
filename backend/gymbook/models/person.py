"""
Person model: identity details, role tags and the pay-as-you-go credit balance.

`credits` is only ever changed by the booking engine (debit on create,
restore on cancel). The CHECK constraint stops it going negative even if a
debit races past the application check.
"""

from sqlalchemy import CheckConstraint, Column, BigInteger, Integer, String
from sqlalchemy.orm import relationship

from gymbook.core.security import Role, parse_roles
from gymbook.db.base import Base, TimestampMixin


class Person(Base, TimestampMixin):
    __tablename__ = "person"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(255), nullable=True)
    # Comma separated role tags, e.g. "member,admin"
    roles = Column(String(255), nullable=False, default="", server_default="")
    credits = Column(Integer, nullable=False, default=0, server_default="0")

    bookings = relationship("Booking", back_populates="person", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("credits >= 0", name="check_person_credits_non_negative"),
    )

    @property
    def role_set(self) -> frozenset[Role]:
        return parse_roles(self.roles)

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, email={self.email}, credits={self.credits})>"
