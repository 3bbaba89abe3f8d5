"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test oversell protection
  locust -f locustfile.py --tags throughput   # Test inventory cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random
import string
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

# Shared state
FLIGHT_IDS = []
CONFIRMATION_CODES = []
CONCURRENCY_FLIGHT_ID = None
CONCURRENCY_CLASS_ID = None


def random_citizen_id():
    return "".join(random.choices(string.digits, k=12))


def random_passenger():
    return {
        "full_name": "Load " + "".join(random.choices(string.ascii_uppercase, k=6)),
        "citizen_id": random_citizen_id(),
    }


def future_departure(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print("SETUP: Creating concurrency test flight...")
    print("="*60)


def ensure_ticket_class(client, name: str, prefix: str):
    resp = client.post("/api/v1/ticket-classes", json={"name": name, "seat_prefix": prefix})
    if resp.status_code == 201:
        return resp.json()["id"]
    for ticket_class in client.get("/api/v1/ticket-classes").json():
        if ticket_class["seat_prefix"] == prefix:
            return ticket_class["id"]
    return None


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM tickets WHERE flight_id = X AND status IN ('UNPAID', 'PAID');
    Should be <= 10, and remaining_tickets = 10 - that count.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_FLIGHT_ID, CONCURRENCY_CLASS_ID
        if CONCURRENCY_FLIGHT_ID:
            return

        class_id = ensure_ticket_class(self.client, "Economy", "E")
        resp = self.client.post("/api/v1/flights", json={
            "flight_code": "LD" + "".join(random.choices(string.digits, k=6)),
            "departure_time": future_departure(),
        })
        if resp.status_code == 201 and class_id:
            flight_id = resp.json()["id"]
            inv = self.client.post(f"/api/v1/flights/{flight_id}/inventory", json={
                "ticket_class_id": class_id,
                "total_tickets": 10,
                "fare": "100.00",
            })
            if inv.status_code == 201:
                CONCURRENCY_FLIGHT_ID = flight_id
                CONCURRENCY_CLASS_ID = class_id
                print(f"\n✓ Created flight {flight_id} with 10 economy seats\n")

    @tag("concurrency")
    @task
    def book_limited_seats(self):
        """All users fight for the same 10 seats."""
        if not CONCURRENCY_FLIGHT_ID:
            return

        with self.client.post("/api/v1/bookings/",
            json={
                "flight_id": CONCURRENCY_FLIGHT_ID,
                "ticket_class_id": CONCURRENCY_CLASS_ID,
                "passengers": [random_passenger()],
            },
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out or seat taken
            elif resp.status_code == 503:
                resp.success()  # Transient lock timeout, client may retry
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_inventory_cached(self):
        if FLIGHT_IDS:
            flight_id = random.choice(FLIGHT_IDS)
            self.client.get(f"/api/v1/flights/{flight_id}/inventory",
                name="/api/v1/flights/{id}/inventory [cached]")

    @tag("throughput", "read")
    @task(3)
    def check_seat(self):
        if FLIGHT_IDS:
            flight_id = random.choice(FLIGHT_IDS)
            self.client.get(f"/api/v1/flights/{flight_id}/seats/E{random.randint(1, 30):02d}",
                name="/api/v1/flights/{id}/seats/{seat}")

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

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_flight_id(self):
        with self.client.post("/api/v1/bookings/",
            json={"flight_id": 999999, "ticket_class_id": 1, "passengers": [random_passenger()]},
            catch_response=True
        ) as resp:
            self._expect(resp, [404, 400])

    @tag("edge")
    @task
    def no_passengers(self):
        with self.client.post("/api/v1/bookings/",
            json={"flight_id": 1, "ticket_class_id": 1, "passengers": []},
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def seat_count_mismatch(self):
        with self.client.post("/api/v1/bookings/",
            json={
                "flight_id": 1,
                "ticket_class_id": 1,
                "passengers": [random_passenger(), random_passenger()],
                "seat_numbers": ["E01"],
            },
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def seat_outside_class(self):
        with self.client.post("/api/v1/bookings/",
            json={
                "flight_id": 1,
                "ticket_class_id": 1,
                "passengers": [random_passenger()],
                "seat_numbers": ["Z99"],
            },
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 404, 409])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def pay_unknown_booking(self):
        with self.client.post("/api/v1/payments/callback",
            json={"confirmation_code": "FMS-20000101-XXXXXX", "order_id": "X", "success": True},
            catch_response=True
        ) as resp:
            self._expect(resp, [404])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing inventory
      - Some bookings, most of them paid, some cancelled
      - Rare flight creation
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.class_id = ensure_ticket_class(self.client, "Economy", "E")

    @task(50)
    def browse_inventory(self):
        if FLIGHT_IDS:
            self.client.get(f"/api/v1/flights/{random.choice(FLIGHT_IDS)}/inventory",
                name="/api/v1/flights/{id}/inventory")

    @task(10)
    def book_tickets(self):
        if not FLIGHT_IDS or not self.class_id:
            return
        resp = self.client.post("/api/v1/bookings/",
            json={
                "flight_id": random.choice(FLIGHT_IDS),
                "ticket_class_id": self.class_id,
                "passengers": [random_passenger() for _ in range(random.randint(1, 3))],
            })
        if resp.status_code == 201:
            CONFIRMATION_CODES.append(resp.json()["confirmation_code"])

    @task(6)
    def pay_booking(self):
        if CONFIRMATION_CODES:
            code = CONFIRMATION_CODES.pop()
            self.client.post("/api/v1/payments/callback",
                json={"confirmation_code": code, "order_id": f"ORD-{random.randint(1, 10**9)}",
                      "success": random.random() > 0.1},
                name="/api/v1/payments/callback")

    @task(3)
    def create_flight(self):
        if not self.class_id:
            return
        resp = self.client.post("/api/v1/flights",
            json={
                "flight_code": "RL" + "".join(random.choices(string.digits, k=6)),
                "departure_time": future_departure(random.randint(1, 90)),
            })
        if resp.status_code == 201:
            flight_id = resp.json()["id"]
            self.client.post(f"/api/v1/flights/{flight_id}/inventory",
                json={"ticket_class_id": self.class_id,
                      "total_tickets": random.randint(10, 300),
                      "fare": f"{random.randint(50, 900)}.00"},
                name="/api/v1/flights/{id}/inventory [create]")
            FLIGHT_IDS.append(flight_id)
