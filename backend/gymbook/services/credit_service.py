"""
Pay-as-you-go credit ledger.

Debits and restores run on the caller's transaction, so they commit or roll
back together with the booking row they belong to.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.exceptions import ForbiddenError, NotFoundError
from gymbook.core.logging import get_logger
from gymbook.core.metrics import record_credits
from gymbook.models.person import Person

logger = get_logger(__name__)


async def lock_person(db: AsyncSession, person_id: int) -> Person:
    """
    Load the person row FOR NO KEY UPDATE.

    Holding this lock serializes booking creation per person, which keeps the
    weekly quota check and the credit debit consistent with each other.
    """
    result = await db.execute(
        select(Person)
        .where(Person.id == person_id)
        .with_for_update(key_share=True)
        .execution_options(populate_existing=True)
    )
    person = result.scalar_one_or_none()
    if person is None:
        raise NotFoundError(f"no person with id {person_id}")
    return person


async def debit_credits(db: AsyncSession, person_id: int, amount: int) -> int:
    """Subtract `amount` from the balance. Returns the new balance."""
    result = await db.execute(
        update(Person)
        .where(Person.id == person_id, Person.credits >= amount)
        .values(credits=Person.credits - amount)
        .returning(Person.credits)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise ForbiddenError("insufficient credits for booking")

    record_credits("debit", amount)
    logger.info("credits_debited", person_id=person_id, amount=amount, balance=balance)
    return balance


async def restore_credits(db: AsyncSession, person_id: int, amount: int) -> int:
    """Add `amount` back to the balance. Returns the new balance."""
    result = await db.execute(
        update(Person)
        .where(Person.id == person_id)
        .values(credits=Person.credits + amount)
        .returning(Person.credits)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFoundError(f"no person with id {person_id}")

    record_credits("restore", amount)
    logger.info("credits_restored", person_id=person_id, amount=amount, balance=balance)
    return balance
