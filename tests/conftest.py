from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from lending import create_app
from lending.config import TestConfig
from lending.enums import Role
from lending.extensions import db
from lending.models import Book, Borrow, Reader, Staff
from lending.utils import clock
from lending.utils.auth import Actor


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def frozen_clock(monkeypatch):
    fc = FrozenClock(datetime(2024, 3, 1, 9, 0, 0))
    monkeypatch.setattr(clock, "utcnow", fc)
    return fc


@pytest.fixture
def make_book(app):
    def _make(total_quantity=3, is_active=True, title="Dune", author="Frank Herbert"):
        book = Book(title=title, author=author, total_quantity=total_quantity, is_active=is_active)
        db.session.add(book)
        db.session.commit()
        return book
    return _make


@pytest.fixture
def make_reader(app):
    counter = {"n": 0}

    def _make(full_name=None):
        counter["n"] += 1
        n = counter["n"]
        reader = Reader(business_id=f"R{n:04d}", full_name=full_name or f"Reader {n}",
                        email=f"reader{n}@example.com")
        db.session.add(reader)
        db.session.commit()
        return reader
    return _make


@pytest.fixture
def make_staff(app):
    counter = {"n": 0}

    def _make():
        counter["n"] += 1
        n = counter["n"]
        staff = Staff(business_id=f"S{n:04d}", full_name=f"Staff {n}", email=f"staff{n}@example.com")
        db.session.add(staff)
        db.session.commit()
        return staff
    return _make


@pytest.fixture
def as_reader():
    def _actor(reader) -> Actor:
        return Actor(id=reader.id, role=Role.READER.value)
    return _actor


@pytest.fixture
def as_staff():
    def _actor(staff) -> Actor:
        return Actor(id=staff.id, role=Role.STAFF.value)
    return _actor


@pytest.fixture
def auth_header(app):
    def _header(user_id, role):
        token = create_access_token(identity=str(user_id), additional_claims={"role": role})
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture
def make_borrow(app):
    """Inserts a borrow row directly, bypassing the guard."""
    def _make(reader, book, quantity=1, status="pending", **fields):
        borrow = Borrow(reader_id=reader.id, book_id=book.id, quantity=quantity, status=status, **fields)
        db.session.add(borrow)
        db.session.commit()
        return borrow
    return _make
