"""
Meat & Eat POS Load Testing with Locust

Hammers POST /api/bills to check that concurrent bill creation never hands
out the same bill number twice.

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:7777

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:7777 \
           --users 10 --spawn-rate 10 --run-time 60s --headless

Environment:
    LOAD_MIN_ITEMS / LOAD_MAX_ITEMS    items per bill (default 1-5)
    LOAD_MIN_PRICE / LOAD_MAX_PRICE    unit price in cents (default 100-1500)
    LOAD_DISCOUNT_BPS                  discount rate sent with every bill (default 0)
    LOAD_SEED                          seed for reproducible carts
    LOAD_RATE                          per-user cap in requests/second (default: no cap)

Pass thresholds:
- p95 response time < 1000ms for bill creation
- Error rate < 1%
- Every returned bill number is unique
"""

import os
import random
import threading
import time
from typing import Dict, List, Optional

from locust import HttpUser, between, constant_throughput, events, task


# =============================================================================
# CONFIGURATION
# =============================================================================

def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str) -> Optional[float]:
    raw = (os.environ.get(name) or "").strip()
    try:
        value = float(raw) if raw else None
    except ValueError:
        return None
    return value if value and value > 0 else None


MIN_ITEMS = max(_env_int("LOAD_MIN_ITEMS", 1), 1)
MAX_ITEMS = max(_env_int("LOAD_MAX_ITEMS", 5), MIN_ITEMS)
MIN_PRICE = max(_env_int("LOAD_MIN_PRICE", 100), 0)
MAX_PRICE = max(_env_int("LOAD_MAX_PRICE", 1500), MIN_PRICE)
DISCOUNT_BPS = _env_int("LOAD_DISCOUNT_BPS", 0)
SEED = os.environ.get("LOAD_SEED")
RATE = _env_float("LOAD_RATE")

rng = random.Random(int(SEED)) if SEED and SEED.strip().lstrip("-").isdigit() else random.Random()
rng_lock = threading.Lock()


def build_bill_payload() -> Dict:
    """Random cart; line totals are left for the server to compute."""
    with rng_lock:
        count = rng.randint(MIN_ITEMS, MAX_ITEMS)
        items = []
        for _ in range(count):
            product_id = rng.randint(1, 50)
            items.append({
                "product_id": product_id,
                "product_name": f"Load Item {product_id}",
                "unit_price_cents": rng.randint(MIN_PRICE, MAX_PRICE),
                "qty": rng.randint(1, 5),
            })
        mode = rng.choice(["cash", "online"])
    return {"items": items, "discount_rate_bps": DISCOUNT_BPS, "payment_mode": mode}


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect request timings and every bill number the server returned."""

    def __init__(self):
        self.lock = threading.Lock()
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}
        self.bill_numbers: List[str] = []

    def record(self, name: str, response_time: float, success: bool):
        with self.lock:
            if name not in self.request_counts:
                self.request_counts[name] = 0
                self.error_counts[name] = 0
                self.response_times[name] = []

            self.request_counts[name] += 1
            if not success:
                self.error_counts[name] += 1
            self.response_times[name].append(response_time)

    def record_bill(self, bill_no: str):
        with self.lock:
            self.bill_numbers.append(bill_no)

    def duplicate_bill_numbers(self) -> List[str]:
        seen = set()
        duplicates = []
        for bill_no in self.bill_numbers:
            if bill_no in seen:
                duplicates.append(bill_no)
            seen.add(bill_no)
        return duplicates

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p50_idx = int(count * 0.50)
            p95_idx = int(count * 0.95)

            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p50_ms": times[p50_idx] if p50_idx < count else times[-1],
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class CashierUser(HttpUser):
    """
    Cashier ringing up bills back to back.
    """
    wait_time = constant_throughput(RATE) if RATE else between(0, 0.1)

    @task(10)
    def create_bill(self):
        start = time.time()
        with self.client.post(
            "/api/bills",
            json=build_bill_payload(),
            name="bills/create",
            catch_response=True,
        ) as response:
            elapsed = (time.time() - start) * 1000
            if response.status_code != 201:
                response.failure(f"HTTP {response.status_code}: {response.text[:200]}")
                metrics.record("bills/create", elapsed, False)
                return
            bill_no = response.json().get("bill_no")
            if not bill_no:
                response.failure("Response has no bill_no")
                metrics.record("bills/create", elapsed, False)
                return
            metrics.record_bill(bill_no)
            metrics.record("bills/create", elapsed, True)

    @task(1)
    def list_bills(self):
        start = time.time()
        response = self.client.get("/api/bills", params={"limit": 10}, name="bills/list")
        metrics.record("bills/list", (time.time() - start) * 1000, response.status_code == 200)


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print(
        f"Load test: items {MIN_ITEMS}-{MAX_ITEMS}, price {MIN_PRICE}-{MAX_PRICE} cents, "
        f"discount {DISCOUNT_BPS} bps, rate {RATE or 'uncapped'} req/s per user, seed {SEED or '-'}"
    )


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    all_pass = True
    for name, stats in sorted(summary.items()):
        p95_threshold = 1000 if "create" in name else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1
        if not passed:
            all_pass = False
        status = "PASS" if passed else "FAIL"
        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    duplicates = metrics.duplicate_bill_numbers()
    print("-" * 80)
    print(f"Bills created: {len(metrics.bill_numbers)}  Unique numbers: {len(set(metrics.bill_numbers))}")

    if duplicates:
        all_pass = False
        print(f"[FAIL] Duplicate bill numbers: {', '.join(sorted(set(duplicates))[:10])}")
        environment.process_exit_code = 1

    if all_pass:
        print("\n[PASS] All endpoints within thresholds, no duplicate bill numbers")
    else:
        print("\n[FAIL] Some checks failed")
        print("  - Writes (create): P95 < 1000ms, Error rate < 1%")
        print("  - Reads (list): P95 < 500ms, Error rate < 1%")

    print("=" * 80)
