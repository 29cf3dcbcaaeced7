"""
Tests for booking endpoints: admission rules, credits, cancellation, listing.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import booking_count, credits_of, future, make_headers
from gymbook.models import SessionType


def body(person_id: int, session_id: int, credits_used=None) -> dict:
    data = {"person_id": person_id, "session_id": session_id}
    if credits_used is not None:
        data["credits_used"] = credits_used
    return data


def next_monday_noon(weeks_ahead: int = 1) -> datetime:
    today = datetime.now(timezone.utc).date()
    monday = today - timedelta(days=today.weekday()) + timedelta(weeks=weeks_ahead)
    return datetime(monday.year, monday.month, monday.day, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_member_books_session(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    """Full member booking creates the row and leaves credits alone."""
    pid = await make_person(roles="member", credits=3)
    sid = await make_session(cost=1)

    response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(pid, ["member"]))

    assert response.status_code == 201
    assert response.json() == {"person_id": pid, "session_id": sid, "credits_used": 0, "attended": False}
    assert response.headers["location"].endswith(f"session_id={sid}&person_id={pid}")
    assert await booking_count(db_session, sid) == 1
    assert await credits_of(db_session, pid) == 3


@pytest.mark.asyncio
async def test_unknown_session(client: AsyncClient, make_person):
    pid = await make_person()
    response = await client.post("/api/v1/bookings", json=body(pid, 99999), headers=make_headers(pid, ["member"]))
    assert response.status_code == 404
    assert response.json()["detail"] == "no session with id 99999"


@pytest.mark.asyncio
async def test_duplicate_booking_conflicts(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    pid = await make_person()
    sid = await make_session()
    headers = make_headers(pid, ["member"])

    first = await client.post("/api/v1/bookings", json=body(pid, sid), headers=headers)
    second = await client.post("/api/v1/bookings", json=body(pid, sid), headers=headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert "already exists" in second.json()["detail"]
    assert await booking_count(db_session, sid) == 1


@pytest.mark.asyncio
async def test_no_membership_no_credits_forbidden(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    pid = await make_person(roles="", credits=0)
    sid = await make_session(cost=1)

    response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(pid, []))

    assert response.status_code == 403
    assert "missing or expired membership" in response.json()["detail"]
    assert "no PAYG credits" in response.json()["detail"]
    assert await booking_count(db_session, sid) == 0


@pytest.mark.asyncio
async def test_credits_opt_in_debit_and_refund(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    """402 without opt-in, debit on opt-in, full refund on cancellation."""
    pid = await make_person(roles="", credits=5)
    sid = await make_session(cost=1)
    headers = make_headers(pid, [])

    response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=headers)
    assert response.status_code == 402
    assert response.json()["detail"] == "opt in to use credits for booking"
    assert await credits_of(db_session, pid) == 5

    response = await client.post("/api/v1/bookings", json=body(pid, sid, credits_used=1), headers=headers)
    assert response.status_code == 201
    assert response.json()["credits_used"] == 1
    assert await credits_of(db_session, pid) == 4

    response = await client.delete(f"/api/v1/bookings?person_id={pid}&session_id={sid}", headers=headers)
    assert response.status_code == 200
    assert response.json()["credits_used"] == 1
    assert await credits_of(db_session, pid) == 5
    assert await booking_count(db_session, sid) == 0


@pytest.mark.asyncio
async def test_insufficient_credits_forbidden(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    pid = await make_person(roles="", credits=1)
    sid = await make_session(cost=2)

    response = await client.post("/api/v1/bookings", json=body(pid, sid, credits_used=2), headers=make_headers(pid, []))

    assert response.status_code == 403
    assert await credits_of(db_session, pid) == 1


@pytest.mark.asyncio
async def test_zero_capacity_conflict_keeps_credits(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    pid = await make_person(roles="", credits=5)
    sid = await make_session(cost=1, max_booking_count=0)

    response = await client.post("/api/v1/bookings", json=body(pid, sid, credits_used=1), headers=make_headers(pid, []))

    assert response.status_code == 409
    assert response.json()["detail"] == "session has reached its maximum number of bookings: 0"
    assert await credits_of(db_session, pid) == 5
    assert await booking_count(db_session, sid) == 0


@pytest.mark.asyncio
async def test_capacity_reached(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    sid = await make_session(max_booking_count=2)
    people = [await make_person() for _ in range(3)]

    statuses = []
    for pid in people:
        response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(pid, ["member"]))
        statuses.append(response.status_code)

    assert statuses == [201, 201, 409]
    assert await booking_count(db_session, sid) == 2

    # Cancelling frees a place
    await client.delete(f"/api/v1/bookings?person_id={people[0]}&session_id={sid}", headers=make_headers(people[0], ["member"]))
    response = await client.post("/api/v1/bookings", json=body(people[2], sid), headers=make_headers(people[2], ["member"]))
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_limited_member_weekly_quota(
    client: AsyncClient, db_session: AsyncSession, make_person, make_session
):
    """One paid booking per week; cancelling frees the allowance."""
    yoga = SessionType(name="Yoga", requires_trainer=False)
    db_session.add(yoga)
    await db_session.commit()
    yoga_id = yoga.id

    pid = await make_person(roles="limited-member")
    headers = make_headers(pid, ["limited-member"])
    monday = next_monday_noon()
    hiit = await make_session(when=monday, cost=1)
    thursday_yoga = await make_session(when=monday + timedelta(days=3), cost=1, type_id=yoga_id)

    response = await client.post("/api/v1/bookings", json=body(pid, hiit), headers=headers)
    assert response.status_code == 201

    response = await client.post("/api/v1/bookings", json=body(pid, thursday_yoga), headers=headers)
    assert response.status_code == 403
    assert "found 1 existing booking(s)" in response.json()["detail"]

    await client.delete(f"/api/v1/bookings?person_id={pid}&session_id={hiit}", headers=headers)
    response = await client.post("/api/v1/bookings", json=body(pid, thursday_yoga), headers=headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_limited_member_next_week_and_free_sessions(client: AsyncClient, make_person, make_session):
    pid = await make_person(roles="limited-member")
    headers = make_headers(pid, ["limited-member"])
    monday = next_monday_noon()

    paid = await make_session(when=monday, cost=1)
    free_same_week = await make_session(when=monday + timedelta(days=1), cost=0)
    paid_next_week = await make_session(when=monday + timedelta(days=7), cost=1)

    assert (await client.post("/api/v1/bookings", json=body(pid, paid), headers=headers)).status_code == 201
    assert (await client.post("/api/v1/bookings", json=body(pid, free_same_week), headers=headers)).status_code == 201
    assert (await client.post("/api/v1/bookings", json=body(pid, paid_next_week), headers=headers)).status_code == 201


@pytest.mark.asyncio
async def test_limited_member_over_quota_can_pay_with_credits(
    client: AsyncClient, db_session: AsyncSession, make_person, make_session
):
    pid = await make_person(roles="limited-member", credits=2)
    headers = make_headers(pid, ["limited-member"])
    monday = next_monday_noon()
    first = await make_session(when=monday, cost=1)
    second = await make_session(when=monday + timedelta(days=2), cost=1)

    assert (await client.post("/api/v1/bookings", json=body(pid, first), headers=headers)).status_code == 201
    assert (await client.post("/api/v1/bookings", json=body(pid, second), headers=headers)).status_code == 402
    response = await client.post("/api/v1/bookings", json=body(pid, second, credits_used=1), headers=headers)
    assert response.status_code == 201
    assert await credits_of(db_session, pid) == 1


@pytest.mark.asyncio
async def test_past_session_forbidden_for_member(client: AsyncClient, make_person, make_session):
    pid = await make_person()
    sid = await make_session(when=datetime.now(timezone.utc) - timedelta(days=1))

    response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(pid, ["member"]))

    assert response.status_code == 403
    assert "in the past" in response.json()["detail"]


@pytest.mark.asyncio
async def test_admin_books_past_session_for_member(client: AsyncClient, db_session: AsyncSession, make_person, make_session):
    admin = await make_person(roles="admin")
    pid = await make_person(roles="member")
    sid = await make_session(when=datetime.now(timezone.utc) - timedelta(days=1))

    response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(admin, ["admin"]))

    assert response.status_code == 201
    assert await booking_count(db_session, sid) == 1


@pytest.mark.asyncio
async def test_admin_booking_checks_owner_membership(client: AsyncClient, make_person, make_session):
    admin = await make_person(roles="admin,member")
    pid = await make_person(roles="")
    sid = await make_session(cost=1)

    response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(admin, ["admin", "member"]))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_member_cannot_cancel_past_booking(client: AsyncClient, make_person, make_session):
    admin = await make_person(roles="admin")
    pid = await make_person()
    sid = await make_session(when=datetime.now(timezone.utc) - timedelta(hours=2))
    await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(admin, ["admin"]))

    response = await client.delete(
        f"/api/v1/bookings?person_id={pid}&session_id={sid}", headers=make_headers(pid, ["member"])
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/api/v1/bookings?person_id={pid}&session_id={sid}", headers=make_headers(admin, ["admin"])
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cancel_missing_booking(client: AsyncClient, make_person, make_session):
    pid = await make_person()
    sid = await make_session()

    response = await client.delete(f"/api/v1/bookings?person_id={pid}&session_id={sid}", headers=make_headers(pid, ["member"]))

    assert response.status_code == 404
    assert response.json()["detail"] == f"no booking found with person_id={pid} and session_id={sid}"


@pytest.mark.asyncio
async def test_update_attendance(client: AsyncClient, make_person, make_session):
    admin = await make_person(roles="admin")
    pid = await make_person()
    sid = await make_session()
    await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(pid, ["member"]))
    admin_headers = make_headers(admin, ["admin"])

    response = await client.put(
        f"/api/v1/bookings?person_id={pid}&session_id={sid}", json={"attended": True}, headers=admin_headers
    )
    assert response.status_code == 204

    listing = await client.get(f"/api/v1/bookings?session_id={sid}", headers=admin_headers)
    assert listing.json()[0]["attended"] is True

    response = await client.put(
        f"/api/v1/bookings?person_id={pid}&session_id=99999", json={"attended": True}, headers=admin_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_bookings_view(client: AsyncClient, make_person, make_session):
    """Ordered by session time then name; sessions without a location list it as null."""
    admin = await make_person(roles="admin")
    zoe = await make_person(name="Zoe")
    amy = await make_person(name="Amy")
    early = await make_session(when=future(days=2), with_location=False)
    late = await make_session(when=future(days=5))

    for pid in (zoe, amy):
        for sid in (late, early):
            response = await client.post("/api/v1/bookings", json=body(pid, sid), headers=make_headers(pid, ["member"]))
            assert response.status_code == 201

    response = await client.get("/api/v1/bookings", headers=make_headers(admin, ["admin"]))
    assert response.status_code == 200
    rows = response.json()
    assert [(r["session_id"], r["person_name"]) for r in rows] == [
        (early, "Amy"), (early, "Zoe"), (late, "Amy"), (late, "Zoe"),
    ]
    assert rows[0]["session_location"] is None
    assert rows[2]["session_location"]["name"] == "Oak Hill Park"
    assert rows[0]["session_type"]["name"] == "HIIT"
    assert rows[0]["credits_used"] == 0

    # Members see their own bookings, filtered by date
    cutoff = future(days=3).isoformat()
    response = await client.get(
        "/api/v1/bookings", params={"person_id": zoe, "to": cutoff}, headers=make_headers(zoe, ["member"])
    )
    assert response.status_code == 200
    assert [r["session_id"] for r in response.json()] == [early]
