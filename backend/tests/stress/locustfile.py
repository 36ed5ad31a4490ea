"""
Game sale load test with Locust

Many game servers pushing sales for the same products at once is the one
place where requests race each other for stock. This drives that path and
checks that the backend answers every request with either 201 or a clean
400 (insufficient stock), never a 500.

Run against a running server:
    RPBIZ_API_KEY=rp_... RPBIZ_PRODUCT_IDS=1,2 RPBIZ_TOKEN=<bearer> \
    locust -f backend/tests/stress/locustfile.py --host http://127.0.0.1:5000 \
           --users 20 --spawn-rate 5 --run-time 60s --headless

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for sale creation
- No 5xx responses
"""

import os
import random
import time
from typing import Dict, List

from locust import HttpUser, between, events, task


API_KEY = os.environ.get("RPBIZ_API_KEY", "")
PRODUCT_IDS = [int(p) for p in os.environ.get("RPBIZ_PRODUCT_IDS", "1").split(",") if p.strip()]
BEARER_TOKEN = os.environ.get("RPBIZ_TOKEN", "")


class MetricsCollector:
    """Per-endpoint response times and server errors."""

    def __init__(self):
        self.response_times: Dict[str, List[float]] = {}
        self.server_errors: Dict[str, int] = {}
        self.stock_refusals = 0

    def record(self, name: str, response_time: float, status_code: int):
        self.response_times.setdefault(name, []).append(response_time)
        self.server_errors.setdefault(name, 0)
        if status_code >= 500:
            self.server_errors[name] += 1

    def p95(self, name: str) -> float:
        times = sorted(self.response_times[name])
        idx = int(len(times) * 0.95)
        return times[idx] if idx < len(times) else times[-1]


metrics = MetricsCollector()


class GameServer(HttpUser):
    """A game server pushing sales with the business API key."""
    wait_time = between(0.1, 0.5)
    weight = 3

    @task
    def push_sale(self):
        items = [
            {"productId": product_id, "quantity": random.randint(1, 3)}
            for product_id in random.sample(PRODUCT_IDS, k=min(len(PRODUCT_IDS), 2))
        ]
        start = time.time()
        with self.client.post(
            "/api/game/sales",
            json={
                "businessApiKey": API_KEY,
                "buyerName": f"Player {random.randint(1, 9999)}",
                "items": items,
            },
            name="game/sales",
            catch_response=True,
        ) as response:
            metrics.record("game/sales", (time.time() - start) * 1000, response.status_code)
            if response.status_code == 400 and "Insufficient stock" in response.text:
                metrics.stock_refusals += 1
                response.success()


class Dashboard(HttpUser):
    """A logged-in member watching the dashboard and low-stock list."""
    wait_time = between(0.5, 2)
    weight = 1

    def headers(self) -> Dict:
        return {"Authorization": f"Bearer {BEARER_TOKEN}"}

    @task(2)
    def stats(self):
        start = time.time()
        response = self.client.get("/api/dashboard/stats", headers=self.headers(), name="dashboard/stats")
        metrics.record("dashboard/stats", (time.time() - start) * 1000, response.status_code)

    @task(1)
    def low_stock(self):
        start = time.time()
        response = self.client.get("/api/products?lowStock=true", headers=self.headers(), name="products/lowStock")
        metrics.record("products/lowStock", (time.time() - start) * 1000, response.status_code)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 70)
    print("LOAD TEST SUMMARY")
    print("=" * 70)
    print(f"{'Endpoint':<24} {'Count':>8} {'5xx':>6} {'P95(ms)':>10}")
    print("-" * 70)

    all_pass = True
    for name in sorted(metrics.response_times):
        count = len(metrics.response_times[name])
        errors = metrics.server_errors[name]
        p95 = metrics.p95(name)
        threshold = 1000 if name == "game/sales" else 500
        passed = errors == 0 and p95 < threshold
        all_pass = all_pass and passed
        status = "PASS" if passed else "FAIL"
        print(f"{name:<24} {count:>8} {errors:>6} {p95:>9.1f} [{status}]")

    print("-" * 70)
    print(f"Sales refused for insufficient stock: {metrics.stock_refusals}")
    print("\n[PASS] All endpoints within thresholds" if all_pass else "\n[FAIL] Some endpoints exceeded thresholds")
    print("=" * 70)
