from datetime import datetime
from typing import Optional

from lending.enums import BorrowStatus
from lending.extensions import db
from lending.utils import clock


class Borrow(db.Model):
    __tablename__ = "borrows"

    id = db.Column(db.Integer, primary_key=True)

    reader_id = db.Column(db.Integer, db.ForeignKey("readers.id"), nullable=False)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False)
    approved_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)
    returned_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default=BorrowStatus.PENDING.value)

    borrow_date = db.Column(db.DateTime, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    return_date = db.Column(db.DateTime, nullable=True)
    note = db.Column(db.String(1000), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=lambda: clock.utcnow())
    updated_at = db.Column(db.DateTime, nullable=False, default=lambda: clock.utcnow())

    reader = db.relationship("Reader", backref="borrows")
    book = db.relationship("Book", backref="borrows")
    approved_staff = db.relationship("Staff", foreign_keys=[approved_staff_id])
    returned_staff = db.relationship("Staff", foreign_keys=[returned_staff_id])

    __table_args__ = (
        # ledger and per-reader limit scans
        db.Index("ix_borrows_book_status", "book_id", "status"),
        db.Index("ix_borrows_reader_status", "reader_id", "status"),
        # expiry sweep
        db.Index("ix_borrows_status_created", "status", "created_at"),
        db.CheckConstraint("quantity >= 1", name="ck_borrows_quantity"),
    )

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """
        Derived at read time, never stored.
        - approved: the due date has passed
        - returned: it came back after the due date
        """
        if self.due_date is None:
            return False
        if self.status == BorrowStatus.APPROVED.value:
            now = now or clock.utcnow()
            return now > self.due_date
        if self.status == BorrowStatus.RETURNED.value:
            return self.return_date is not None and self.return_date > self.due_date
        return False
