"""
Locust Load Test Suite

Tokens are minted locally with the API's SECRET_KEY, so the target database
must already hold the people and sessions referenced below:

  LOAD_PERSON_IDS      comma separated person ids with the "member" role
  CAPPED_SESSION_ID    future session with a small max_booking_count
  OPEN_SESSION_ID      future session without a cap
  SECRET_KEY           same value the API runs with

Run scenarios:
  locust -f locustfile.py --tags capacity   # Test overbooking
  locust -f locustfile.py --tags listing    # Read load
  locust -f locustfile.py --tags edge       # Bad input
"""

import itertools
import os

from locust import HttpUser, between, tag, task

from gymbook.core.security import create_access_token

SECRET_KEY = os.environ.get("SECRET_KEY", "super-secret-key-change-in-production")
PERSON_IDS = [int(p) for p in os.environ.get("LOAD_PERSON_IDS", "1").split(",") if p.strip()]
CAPPED_SESSION_ID = int(os.environ.get("CAPPED_SESSION_ID", "1"))
OPEN_SESSION_ID = int(os.environ.get("OPEN_SESSION_ID", "2"))

_person_cycle = itertools.cycle(PERSON_IDS)


def member_headers(person_id: int) -> dict:
    token = create_access_token(person_id, f"load{person_id}@test.com", ["member"], SECRET_KEY)
    return {"Authorization": f"Bearer {token}"}


class CapacityUser(HttpUser):
    """
    Many members race for the same capped session.

    Run: locust -f locustfile.py --tags capacity -u 100 -r 50 --run-time 30s

    After the run:
      SELECT COUNT(*) FROM booking WHERE session_id = <CAPPED_SESSION_ID>;
    must not exceed the session's max_booking_count.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.person_id = next(_person_cycle)
        self.headers = member_headers(self.person_id)

    @tag("capacity")
    @task(5)
    def book_capped_session(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"person_id": self.person_id, "session_id": CAPPED_SESSION_ID},
            headers=self.headers,
            name="/api/v1/bookings [capped]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: full, or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("capacity")
    @task(1)
    def cancel_capped_session(self):
        with self.client.delete(
            f"/api/v1/bookings?person_id={self.person_id}&session_id={CAPPED_SESSION_ID}",
            headers=self.headers,
            name="/api/v1/bookings [cancel]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 404):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ListingUser(HttpUser):
    """
    Members read their own bookings while others book the open session.

    Run: locust -f locustfile.py --tags listing -u 50 -r 10 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.person_id = next(_person_cycle)
        self.headers = member_headers(self.person_id)

    @tag("listing")
    @task(10)
    def list_own_bookings(self):
        self.client.get(
            f"/api/v1/bookings?person_id={self.person_id}",
            headers=self.headers,
            name="/api/v1/bookings?person_id",
        )

    @tag("listing")
    @task(2)
    def book_open_session(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"person_id": self.person_id, "session_id": OPEN_SESSION_ID},
            headers=self.headers,
            name="/api/v1/bookings [open]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("listing")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    Bad input must produce proper error codes, never a 500.

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.person_id = next(_person_cycle)
        self.headers = member_headers(self.person_id)

    @tag("edge")
    @task
    def unknown_session(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"person_id": self.person_id, "session_id": 999999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def book_for_someone_else(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"person_id": self.person_id + 1_000_000, "session_id": OPEN_SESSION_ID},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 403:
                resp.success()
            else:
                resp.failure(f"Expected 403, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_date_filter(self):
        with self.client.get(
            f"/api/v1/bookings?person_id={self.person_id}&from=yesterday",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")
