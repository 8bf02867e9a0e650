"""
Threaded runs against a file-backed SQLite database. Every thread pushes its
own app context, so it gets its own session and its own connection.
"""
import threading

import pytest

from lending import create_app
from lending.config import TestConfig
from lending.enums import Role
from lending.errors import InsufficientStock, LimitExceeded
from lending.extensions import db
from lending.models import Book, Borrow, Reader
from lending.services.borrow_service import BorrowService
from lending.services.inventory_ledger import InventoryLedger
from lending.services.reservation_guard import ReservationGuard
from lending.utils.auth import Actor


@pytest.fixture
def shared_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'lending.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}
        # twenty writers on one row
        CAS_MAX_RETRIES = 25

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(*rows):
    db.session.add_all(rows)
    db.session.commit()
    return [r.id for r in rows]


def _run_concurrently(app, jobs):
    """Starts every job at once and returns each job's result or exception."""
    results = [None] * len(jobs)
    barrier = threading.Barrier(len(jobs))

    def worker(i, job):
        with app.app_context():
            barrier.wait()
            try:
                results[i] = job()
            except Exception as e:
                results[i] = e
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)
    assert not any(t.is_alive() for t in threads)
    return results


def test_twenty_readers_three_copies(shared_app):
    (book_id,) = _seed(Book(title="Dune", author="Frank Herbert", total_quantity=3))
    reader_ids = _seed(*[
        Reader(business_id=f"R{n:04d}", full_name=f"Reader {n}", email=f"r{n}@example.com")
        for n in range(20)
    ])

    def reserve(reader_id):
        return lambda: ReservationGuard.reserve(reader_id, book_id, 1).id

    results = _run_concurrently(shared_app, [reserve(rid) for rid in reader_ids])

    won = [r for r in results if isinstance(r, int)]
    lost = [r for r in results if not isinstance(r, int)]
    assert all(isinstance(e, InsufficientStock) for e in lost), lost
    assert len(won) == 3
    assert InventoryLedger.committed_quantity(book_id) == 3
    assert Borrow.query.filter_by(book_id=book_id).count() == 3


def test_readers_cancelling_while_others_reserve(shared_app):
    (book_id,) = _seed(Book(title="Dune", author="Frank Herbert", total_quantity=3))
    reader_ids = _seed(*[
        Reader(business_id=f"R{n:04d}", full_name=f"Reader {n}", email=f"r{n}@example.com")
        for n in range(20)
    ])

    def reserve(reader_id, cancel):
        def job():
            borrow_id = ReservationGuard.reserve(reader_id, book_id, 1).id
            if cancel:
                BorrowService.cancel_borrow(Actor(id=reader_id, role=Role.READER.value), borrow_id)
            return borrow_id
        return job

    jobs = [reserve(rid, cancel=(i % 4 == 0)) for i, rid in enumerate(reader_ids)]
    results = _run_concurrently(shared_app, jobs)

    assert all(isinstance(r, (int, InsufficientStock)) for r in results), results
    assert any(isinstance(r, int) for r in results)
    committed = InventoryLedger.committed_quantity(book_id)
    assert committed <= 3
    held = Borrow.query.filter_by(book_id=book_id, status="pending").count()
    assert held == committed
    # every cancelled row belongs to a reader who was told to cancel
    cancellers = {rid for i, rid in enumerate(reader_ids) if i % 4 == 0}
    cancelled = Borrow.query.filter_by(book_id=book_id, status="cancelled").all()
    assert {b.reader_id for b in cancelled} <= cancellers


def test_one_reader_twelve_books(shared_app):
    (reader_id,) = _seed(Reader(business_id="R0001", full_name="Alice Reader", email="a@example.com"))
    book_ids = _seed(*[
        Book(title=f"Title {n}", author="Various", total_quantity=5) for n in range(12)
    ])

    def reserve(book_id):
        return lambda: ReservationGuard.reserve(reader_id, book_id, 1).id

    results = _run_concurrently(shared_app, [reserve(bid) for bid in book_ids])

    won = [r for r in results if isinstance(r, int)]
    lost = [r for r in results if not isinstance(r, int)]
    assert all(isinstance(e, LimitExceeded) for e in lost), lost
    assert len(won) == shared_app.config["MAX_CONCURRENT_BORROWS"]
    assert InventoryLedger.reader_committed_quantity(reader_id) == 5
