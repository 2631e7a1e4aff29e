# Overview: Pytest coverage for bill number allocation, including concurrent writers.

import threading

import pytest

from mnepos.extensions import db
from mnepos.models import Bill, Setting
from mnepos.services import billing_service, sequence_service
from mnepos.services.concurrency import begin_immediate
from mnepos.services.settings_service import BILL_SEQ_KEY


class TestFormatting:

    def test_default_prefix_and_width(self, app):
        assert sequence_service.format_bill_number(42) == "MNE-000042"

    def test_explicit_prefix_and_width(self, app):
        assert sequence_service.format_bill_number(7, prefix="TKA", width=4) == "TKA-0007"

    def test_wider_than_padding(self, app):
        assert sequence_service.format_bill_number(1234567) == "MNE-1234567"


class TestAllocation:

    def test_allocate_increments(self, app):
        begin_immediate()
        assert sequence_service.allocate_next() == 1
        assert sequence_service.allocate_next() == 2
        db.session.commit()
        assert sequence_service.peek_current() == 2

    def test_rollback_releases_the_number(self, app):
        begin_immediate()
        assert sequence_service.allocate_next() == 1
        db.session.rollback()

        assert sequence_service.peek_current() == 0
        begin_immediate()
        assert sequence_service.allocate_next() == 1
        db.session.commit()

    def test_missing_counter_row_is_created(self, app):
        db.session.query(Setting).filter_by(key=BILL_SEQ_KEY).delete()
        db.session.commit()
        assert sequence_service.peek_current() == 0

        begin_immediate()
        assert sequence_service.allocate_next() == 1
        db.session.commit()
        assert db.session.get(Setting, BILL_SEQ_KEY).value == "1"

    def test_counter_is_stored_not_cached(self, app, make_payload):
        billing_service.create_bill(make_payload())
        db.session.get(Setting, BILL_SEQ_KEY).value = "41"
        db.session.commit()

        assert billing_service.create_bill(make_payload()).bill_no == "MNE-000042"


@pytest.mark.concurrency
class TestConcurrentWriters:

    def test_concurrent_bills_get_unique_increasing_numbers(self, app, make_payload):
        workers = 8
        per_worker = 5
        barrier = threading.Barrier(workers)
        numbers = []
        errors = []
        lock = threading.Lock()

        def worker():
            with app.app_context():
                try:
                    barrier.wait()
                    for _ in range(per_worker):
                        bill = billing_service.create_bill(make_payload())
                        with lock:
                            numbers.append(bill.bill_no)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(60)

        assert errors == []
        assert len(numbers) == workers * per_worker
        assert len(set(numbers)) == len(numbers)
        assert sorted(numbers) == [f"MNE-{n:06d}" for n in range(1, workers * per_worker + 1)]

        # Row id order is commit order; numbers must rise with it
        in_commit_order = [b for (b,) in db.session.query(Bill.bill_no).order_by(Bill.id)]
        assert in_commit_order == sorted(in_commit_order)
        assert sequence_service.peek_current() == workers * per_worker
