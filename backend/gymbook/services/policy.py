"""
Booking admission rules that need no database access.

The booking service gathers the facts (owner record, session cost, existing
bookings this week) and asks these functions for a decision. Every failure
is a domain exception carrying the message shown to the caller.
"""

from datetime import datetime, timezone
from typing import Optional

from gymbook.core.exceptions import ForbiddenError, PaymentRequiredError
from gymbook.core.security import Identity, MembershipTier, Role, membership_tier_for

NO_MEMBERSHIP_MESSAGE = "missing or expired membership, and no PAYG credits available"
OPT_IN_MESSAGE = "opt in to use credits for booking"


def authorize_owner(identity: Identity, person_id: int, action: str) -> None:
    """Non-admins may only act on their own bookings."""
    if person_id != identity.uid and not identity.is_admin:
        raise ForbiddenError(f"not allowed to {action} bookings for other users")


def assert_session_not_started(
    identity: Identity,
    session_datetime: datetime,
    action: str,
    now: Optional[datetime] = None,
) -> None:
    if identity.is_admin:
        return
    now = now or datetime.now(timezone.utc)
    if session_datetime < now:
        raise ForbiddenError(f"cannot {action} a booking for a session in the past")


def owner_membership_tier(identity: Identity, person_id: int, stored_roles: frozenset[Role]) -> MembershipTier:
    """
    Membership of the person the booking is for.

    The verified credential is authoritative when booking for yourself; an
    admin booking on someone's behalf is judged by that person's stored roles.
    """
    if person_id == identity.uid:
        return identity.membership_tier
    return membership_tier_for(stored_roles)


def weekly_quota_message(existing: int) -> str:
    return (
        "limited membership allows one paid booking per week; "
        f"found {existing} existing booking(s) in the same week"
    )


def resolve_credit_cost(
    tier: MembershipTier,
    session_cost: int,
    paid_bookings_this_week: int,
    credit_balance: int,
    credits_offered: Optional[int],
) -> int:
    """
    Decide how many credits a new booking costs the owner.

    Returns 0 when a membership covers the session. Falls back to credits
    when there is no usable membership and the session is not free; raises
    if the owner can neither book with a membership nor pay.
    """
    membership_error: Optional[ForbiddenError] = None

    if tier == MembershipTier.FULL:
        return 0
    if tier == MembershipTier.LIMITED:
        if session_cost == 0 or paid_bookings_this_week == 0:
            return 0
        membership_error = ForbiddenError(weekly_quota_message(paid_bookings_this_week))
    else:
        membership_error = ForbiddenError(NO_MEMBERSHIP_MESSAGE)

    if session_cost > 0 and credit_balance >= session_cost:
        if (credits_offered or 0) < session_cost:
            raise PaymentRequiredError(OPT_IN_MESSAGE)
        return session_cost
    raise membership_error


def requires_weekly_check(tier: MembershipTier, session_cost: int) -> bool:
    return tier == MembershipTier.LIMITED and session_cost > 0


def require_admin(identity: Identity, message: str = "admin only") -> None:
    if not identity.has_role(Role.ADMIN):
        raise ForbiddenError(message)
