from datetime import datetime

from sqlalchemy import func, update

from lending.enums import BorrowStatus
from lending.extensions import db
from lending.models.borrow import Borrow

_COMMITTED = [s.value for s in BorrowStatus.committed()]


class BorrowRepo:
    @staticmethod
    def get(borrow_id: int):
        return db.session.get(Borrow, borrow_id)

    @staticmethod
    def add(borrow: Borrow):
        # no commit: the caller owns the transaction
        db.session.add(borrow)
        db.session.flush()
        return borrow

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def rollback():
        db.session.rollback()

    @staticmethod
    def committed_for_book(book_id: int) -> int:
        total = (
            db.session.query(func.coalesce(func.sum(Borrow.quantity), 0))
            .filter(Borrow.book_id == book_id, Borrow.status.in_(_COMMITTED))
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def committed_for_reader(reader_id: int) -> int:
        total = (
            db.session.query(func.coalesce(func.sum(Borrow.quantity), 0))
            .filter(Borrow.reader_id == reader_id, Borrow.status.in_(_COMMITTED))
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def find_expired_pending_ids(cutoff: datetime):
        rows = (
            db.session.query(Borrow.id)
            .filter(
                Borrow.status == BorrowStatus.PENDING.value,
                Borrow.created_at <= cutoff,
            )
            .order_by(Borrow.created_at.asc())
            .all()
        )
        return [r.id for r in rows]

    @staticmethod
    def compare_and_set_status(borrow_id: int, expected: BorrowStatus, target: BorrowStatus, **values) -> bool:
        """
        UPDATE borrows SET status = :target, ... WHERE id = :id AND status = :expected
        Returns False when the row was no longer in `expected`.
        """
        stmt = (
            update(Borrow)
            .where(Borrow.id == borrow_id, Borrow.status == expected.value)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        return result.rowcount == 1
