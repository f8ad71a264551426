"""
Locust Load Test Suite

Seed first (see seed.py), then run scenarios:
  locust -f locustfile.py --tags concurrency  # Last-slot contention
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Tokens are minted locally with the shared SECRET_KEY; the service itself
does not issue them.
"""

import itertools
import os
import random

from locust import HttpUser, task, between, tag

from chessbook.core.security import create_access_token

LOAD_EVENT_ID = int(os.getenv("LOAD_EVENT_ID", "1"))
_first, _last = (int(x) for x in os.getenv("LOAD_USER_RANGE", "2-101").split("-"))
_user_ids = itertools.cycle(range(_first, _last + 1))
LOAD_PARTICIPANT_START = int(os.getenv("LOAD_PARTICIPANT_START", "1"))

EVENT_IDS = [LOAD_EVENT_ID]


def _headers_for(user_id: int) -> dict:
    token = create_access_token(data={"sub": str(user_id), "role": "PLAYER"})
    return {"Authorization": f"Bearer {token}"}


class PlayerUser(HttpUser):
    abstract = True

    def on_start(self):
        self.user_id = next(_user_ids)
        self.headers = _headers_for(self.user_id)

    def _participant(self) -> int:
        # seed.py creates one participant per user, in user order
        return LOAD_PARTICIPANT_START + (self.user_id - _first)


class ConcurrencyUser(PlayerUser):
    """
    TEST 1: Concurrency - 100 players -> 10 slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT current_bookings, max_capacity FROM events WHERE id = X;
      SELECT SUM(participant_count) FROM bookings
       WHERE event_id = X AND booking_status != 'CANCELLED';
    Both counts must match and be <= max_capacity.
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task
    def book_last_slots(self):
        """All players fight for the same slots."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": LOAD_EVENT_ID, "participants": [{"participant_id": self._participant()}]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out
            elif resp.status_code == 422 and "PARTICIPANT" in resp.text:
                resp.success()  # Seed mismatch, not a server fault
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        event_id = random.choice(EVENT_IDS)
        self.client.get(f"/api/v1/events/{event_id}",
            name="/api/v1/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(PlayerUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": 999999, "participants": [{"participant_id": self._participant()}]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def no_participants(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": LOAD_EVENT_ID, "participants": []},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def someone_elses_participant(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": LOAD_EVENT_ID, "participants": [{"participant_id": 999999}]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [409, 422])

    @tag("edge")
    @task
    def forged_signature(self):
        with self.client.post("/api/v1/payments/verify",
            json={
                "razorpay_order_id": "order_fake",
                "razorpay_payment_id": "pay_fake",
                "razorpay_signature": "0" * 64,
            },
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": LOAD_EVENT_ID, "participants": [{"participant_id": 1}]},
            catch_response=True
        ) as resp:
            self._expect(resp, [401])
