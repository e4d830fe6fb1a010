"""Concurrent requests against the same counters.

Each worker thread runs its own unit of work on its own connection, the way
WSGI request threads do.
"""

import threading

from errors import InsufficientCreditsError, InvalidStateError, QuotaExceededError
from models import Property
from services.properties import create_property, list_properties
from services.solvency import cancel_check, consume_credit, get_global_balance


def run_concurrently(app, count, target):
    """Start *count* threads at once; returns (results, errors)."""
    barrier = threading.Barrier(count)
    results, errors = [], []
    lock = threading.Lock()

    def worker(index):
        with app.app_context():
            barrier.wait()
            try:
                value = target(index)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            else:
                with lock:
                    results.append(value)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results, errors


class TestConcurrentSpend:
    def test_five_credits_ten_requests(self, app, make_user, update_row, fetch):
        owner = make_user(plan="discovery")
        prop = create_property(owner, "1 Beach Road", "seasonal")
        update_row(Property, prop.id, vacancy_credits=5)
        assert get_global_balance(owner) == 0

        results, errors = run_concurrently(
            app, 10, lambda i: consume_credit(owner, prop.id, f"cand{i}@example.com")
        )

        assert len(results) == 5
        assert len(errors) == 5
        assert all(isinstance(e, InsufficientCreditsError) for e in errors)
        assert fetch(Property, prop.id).vacancy_credits == 0
        assert get_global_balance(owner) == 0

    def test_wallet_never_negative(self, app, make_user, update_row):
        owner = make_user(plan="discovery")
        prop = create_property(owner, "1 Long Street", "long_term")
        update_row(Property, prop.id, vacancy_credits=0)
        assert get_global_balance(owner) == 3

        results, errors = run_concurrently(
            app, 8, lambda i: consume_credit(owner, prop.id, f"cand{i}@example.com")
        )

        assert len(results) == 3
        assert all(r.credit_source == "global" for r in results)
        assert all(isinstance(e, InsufficientCreditsError) for e in errors)
        assert get_global_balance(owner) == 0

    def test_concurrent_cancel_refunds_once(self, app, make_user, fetch):
        owner = make_user(plan="discovery")
        prop = create_property(owner, "1 Long Street", "long_term")
        check = consume_credit(owner, prop.id, "cand@example.com")
        assert fetch(Property, prop.id).vacancy_credits == 19

        results, errors = run_concurrently(app, 5, lambda i: cancel_check(owner, check.id))

        assert len(results) == 1
        assert all(isinstance(e, InvalidStateError) for e in errors)
        assert fetch(Property, prop.id).vacancy_credits == 20


class TestConcurrentQuota:
    def test_limit_holds_under_parallel_creation(self, app, make_user):
        owner = make_user(plan="discovery")

        results, errors = run_concurrently(
            app, 6, lambda i: create_property(owner, f"{i} Long Street", "long_term")
        )

        assert len(results) == 1
        assert len(errors) == 5
        assert all(isinstance(e, QuotaExceededError) for e in errors)
        assert len(list_properties(owner)) == 1
        assert get_global_balance(owner) == 3
