"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Events can only be created by admins, and signup never grants that role.
Create an event with few seats beforehand and pass its id (and, for the
mixed workload, an admin token) through the environment:

  EVENT_ID=42 ADMIN_TOKEN=eyJ... locust -f locustfile.py
"""

import os
import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

CONCURRENCY_EVENT_ID = int(os.environ.get("EVENT_ID", "0")) or None
ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN")

# Shared state
EVENT_IDS = []


def random_email():
    return f"load_{random.randint(10000, 99999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def sign_up(client) -> dict:
    """Create a fresh account and return its auth headers (empty on failure)."""
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "password": "loadtest123",
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": "loadtest123"})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    if CONCURRENCY_EVENT_ID:
        print(f"Concurrency target: event {CONCURRENCY_EVENT_ID}")
    else:
        print("EVENT_ID not set: concurrency scenario is idle")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users, few seats

    Run: EVENT_ID=42 locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      GET /api/v1/events/42/availability  ->  available_seats >= 0
      SELECT COUNT(*) FROM registrations WHERE event_id = 42 AND status = 'confirmed';
    Should be <= total_seats
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = sign_up(self.client)

    @tag("concurrency")
    @task
    def register_for_limited_event(self):
        """All users fight for the same seats."""
        if not CONCURRENCY_EVENT_ID or not self.headers:
            return

        with self.client.post(
            f"/api/v1/registrations/{CONCURRENCY_EVENT_ID}",
            headers=self.headers,
            name="/api/v1/registrations/{event_id}",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 201):
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: full or already registered
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the server, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(
            f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]",
        )
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_availability(self):
        if EVENT_IDS:
            self.client.get(
                f"/api/v1/events/{random.choice(EVENT_IDS)}/availability",
                name="/api/v1/events/{id}/availability",
            )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = sign_up(self.client)

    def expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post(
            "/api/v1/registrations/999999",
            headers=self.headers,
            name="/api/v1/registrations/[unknown]",
            catch_response=True,
        ) as resp:
            self.expect(resp, (404,))

    @tag("edge")
    @task
    def non_numeric_event(self):
        with self.client.post(
            "/api/v1/registrations/abc",
            headers=self.headers,
            name="/api/v1/registrations/[bad id]",
            catch_response=True,
        ) as resp:
            self.expect(resp, (422,))

    @tag("edge")
    @task
    def cancel_unknown_registration(self):
        with self.client.put(
            "/api/v1/registrations/999999/cancel",
            headers=self.headers,
            name="/api/v1/registrations/[unknown]/cancel",
            catch_response=True,
        ) as resp:
            self.expect(resp, (404,))

    @tag("edge")
    @task
    def create_event_as_user(self):
        future = (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()
        with self.client.post(
            "/api/v1/events/",
            json={"title": "Nope", "date": future, "total_seats": 10},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, (403,))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/registrations/1",
            name="/api/v1/registrations/[no auth]",
            catch_response=True,
        ) as resp:
            self.expect(resp, (401,))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: ADMIN_TOKEN=... locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly browsing, some registrations and cancellations, rare event creation.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = sign_up(self.client)
        self.registrations = []

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&page_size=20")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @task(10)
    def register(self):
        if not EVENT_IDS or not self.headers:
            return
        with self.client.post(
            f"/api/v1/registrations/{random.choice(EVENT_IDS)}",
            headers=self.headers,
            name="/api/v1/registrations/{event_id}",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 201):
                self.registrations.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()

    @task(3)
    def cancel(self):
        if self.registrations:
            self.client.put(
                f"/api/v1/registrations/{self.registrations.pop()}/cancel",
                headers=self.headers,
                name="/api/v1/registrations/{id}/cancel",
            )

    @task(1)
    def create_event(self):
        if not ADMIN_TOKEN:
            return
        future = (datetime.now(timezone.utc) + timedelta(days=random.randint(1, 90))).isoformat()
        resp = self.client.post(
            "/api/v1/events/",
            json={
                "title": f"Event {random.randint(1, 10000)}",
                "description": "Load test event",
                "date": future,
                "location": "Venue",
                "total_seats": random.randint(10, 500),
            },
            headers={"Authorization": f"Bearer {ADMIN_TOKEN}"},
        )
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
