from datetime import datetime, timedelta

from lending.enums import BorrowStatus
from lending.errors import InvalidTransition, LostRace
from lending.models.borrow import Borrow
from lending.repositories.book_repo import BookRepo
from lending.repositories.borrow_repo import BorrowRepo
from lending.repositories.user_repo import ReaderRepo

SWEEPER_REJECT_NOTE = "Automatically rejected: the request stayed pending longer than {hours} hours."

TRANSITIONS = {
    BorrowStatus.PENDING: frozenset({
        BorrowStatus.APPROVED,
        BorrowStatus.REJECTED,
        BorrowStatus.CANCELLED,
    }),
    BorrowStatus.APPROVED: frozenset({BorrowStatus.RETURNED}),
}

# moving into these gives the borrowed quantity back to the ledger
RELEASING = frozenset({
    BorrowStatus.REJECTED,
    BorrowStatus.CANCELLED,
    BorrowStatus.RETURNED,
})


def can_transition(current: BorrowStatus, target: BorrowStatus) -> bool:
    return target in TRANSITIONS.get(current, ())


class BorrowStateMachine:
    """
    Every transition is one conditional UPDATE on (id, expected status).
    Nothing here commits; the caller commits or rolls back the whole unit.
    LostRace means the row left `expected` between our read and our write.
    """

    @staticmethod
    def _apply(borrow: Borrow, target: BorrowStatus, now: datetime, **values):
        current = BorrowStatus(borrow.status)
        if not can_transition(current, target):
            raise InvalidTransition(
                f"Cannot move borrow #{borrow.id} from {current.value} to {target.value}"
            )

        if not BorrowRepo.compare_and_set_status(borrow.id, current, target, updated_at=now, **values):
            raise LostRace(f"borrow #{borrow.id} is no longer {current.value}")

        if target in RELEASING:
            BookRepo.bump_stock_version(borrow.book_id)
            ReaderRepo.bump_borrow_version(borrow.reader_id)

    @staticmethod
    def approve(borrow: Borrow, staff_id: int, now: datetime, loan_days: int = 14):
        BorrowStateMachine._apply(
            borrow,
            BorrowStatus.APPROVED,
            now,
            borrow_date=now,
            due_date=now + timedelta(days=loan_days),
            approved_staff_id=staff_id,
        )

    @staticmethod
    def reject(borrow: Borrow, now: datetime, staff_id: int = None, note: str = None):
        values = {}
        if staff_id is not None:
            values["approved_staff_id"] = staff_id
        if note is not None:
            values["note"] = note
        BorrowStateMachine._apply(borrow, BorrowStatus.REJECTED, now, **values)

    @staticmethod
    def cancel(borrow: Borrow, now: datetime):
        BorrowStateMachine._apply(borrow, BorrowStatus.CANCELLED, now)

    @staticmethod
    def mark_returned(borrow: Borrow, staff_id: int, now: datetime):
        BorrowStateMachine._apply(
            borrow,
            BorrowStatus.RETURNED,
            now,
            return_date=now,
            returned_staff_id=staff_id,
        )
