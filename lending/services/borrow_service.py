import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import OperationalError

from lending.enums import BorrowStatus
from lending.errors import Forbidden, InvalidTransition, LostRace, NotFound, ValidationError
from lending.models.book import Book
from lending.models.borrow import Borrow
from lending.models.reader import Reader
from lending.repositories.borrow_repo import BorrowRepo
from lending.repositories.user_repo import ReaderRepo, StaffRepo
from lending.services.borrow_state_machine import BorrowStateMachine
from lending.services.reservation_guard import ReservationGuard
from lending.utils import clock
from lending.utils.auth import Actor

MAX_PAGE_SIZE = 100


def _overdue_clause(now: datetime):
    """SQL form of Borrow.is_overdue: still out past due, or returned late."""
    return or_(
        and_(Borrow.status == BorrowStatus.APPROVED.value, Borrow.due_date < now),
        and_(Borrow.status == BorrowStatus.RETURNED.value, Borrow.return_date > Borrow.due_date),
    )


@dataclass
class BorrowFilter:
    status: Optional[BorrowStatus] = None
    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None
    search: Optional[str] = None
    overdue: Optional[bool] = None


@dataclass
class BorrowPage:
    items: List[Borrow]
    total: int
    page: int
    limit: int
    counts: dict = field(default_factory=dict)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class BorrowService:
    # -----------------------------
    # Authorization helpers
    # -----------------------------
    @staticmethod
    def _require_reader(actor: Actor):
        if not actor.is_reader:
            raise Forbidden("Only readers can do this")
        reader = ReaderRepo.get(actor.id)
        if not reader:
            raise NotFound("Reader not found")
        return reader

    @staticmethod
    def _require_staff(actor: Actor):
        if not actor.is_staff:
            raise Forbidden("Only staff can do this")
        staff = StaffRepo.get(actor.id)
        if not staff:
            raise Forbidden("Staff account not found")
        return staff

    @staticmethod
    def _get_or_404(borrow_id: int) -> Borrow:
        borrow = BorrowRepo.get(borrow_id)
        if not borrow:
            raise NotFound("Borrow not found")
        return borrow

    @staticmethod
    def _transition(borrow_id: int, action: str, apply, authorize=None) -> Borrow:
        """
        Load, authorize and apply one state-machine edge, then commit.
        A lost conditional write, or a database error such as a lock timeout
        anywhere in the attempt, is retried from a fresh read, where the state
        machine usually turns a lost write into InvalidTransition.
        """
        retries = current_app.config["CAS_MAX_RETRIES"]
        for attempt in range(retries + 1):
            try:
                borrow = BorrowService._get_or_404(borrow_id)
                if authorize:
                    authorize(borrow)
                apply(borrow)
                BorrowRepo.commit()
            except (LostRace, OperationalError) as e:
                BorrowRepo.rollback()
                current_app.logger.info(
                    f"[borrow] {action} lost race borrow={borrow_id} attempt={attempt + 1}: {e}"
                )
                continue
            except Exception:
                BorrowRepo.rollback()
                raise

            current_app.logger.info(f"[borrow] {action} borrow={borrow_id} status={borrow.status}")
            return borrow

        raise InvalidTransition(
            f"Borrow #{borrow_id} is being updated concurrently, please retry"
        )

    # -----------------------------
    # Mutations
    # -----------------------------
    @staticmethod
    def create_borrow(actor: Actor, book_id: int, quantity: int, note: str = None) -> Borrow:
        reader = BorrowService._require_reader(actor)
        return ReservationGuard.reserve(reader.id, book_id, quantity, note)

    @staticmethod
    def cancel_borrow(actor: Actor, borrow_id: int) -> Borrow:
        reader = BorrowService._require_reader(actor)

        def authorize(borrow):
            if borrow.reader_id != reader.id:
                raise Forbidden("You are not allowed to cancel this borrow")

        return BorrowService._transition(
            borrow_id,
            "cancel",
            lambda b: BorrowStateMachine.cancel(b, clock.utcnow()),
            authorize,
        )

    @staticmethod
    def approve_borrow(actor: Actor, borrow_id: int) -> Borrow:
        staff = BorrowService._require_staff(actor)
        loan_days = current_app.config["LOAN_PERIOD_DAYS"]
        return BorrowService._transition(
            borrow_id,
            "approve",
            lambda b: BorrowStateMachine.approve(b, staff.id, clock.utcnow(), loan_days),
        )

    @staticmethod
    def reject_borrow(actor: Actor, borrow_id: int, note: str = None) -> Borrow:
        staff = BorrowService._require_staff(actor)
        staff_note = f"Rejected by staff {staff.business_id}: {note}" if note else None
        return BorrowService._transition(
            borrow_id,
            "reject",
            lambda b: BorrowStateMachine.reject(b, clock.utcnow(), staff_id=staff.id, note=staff_note),
        )

    @staticmethod
    def confirm_return(actor: Actor, borrow_id: int) -> Borrow:
        staff = BorrowService._require_staff(actor)
        return BorrowService._transition(
            borrow_id,
            "confirm_return",
            lambda b: BorrowStateMachine.mark_returned(b, staff.id, clock.utcnow()),
        )

    # -----------------------------
    # Reads
    # -----------------------------
    @staticmethod
    def get_borrow(actor: Actor, borrow_id: int) -> Borrow:
        if actor.is_staff:
            BorrowService._require_staff(actor)
            return BorrowService._get_or_404(borrow_id)

        reader = BorrowService._require_reader(actor)
        borrow = BorrowService._get_or_404(borrow_id)
        if borrow.reader_id != reader.id:
            raise Forbidden("You are not allowed to view this borrow")
        return borrow

    @staticmethod
    def list_borrows(actor: Actor, filters: BorrowFilter = None, page: int = 1, limit: int = 10,
                     mine: bool = False) -> BorrowPage:
        filters = filters or BorrowFilter()
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        q = Borrow.query
        if actor.is_staff:
            BorrowService._require_staff(actor)
            if mine:
                q = q.filter(or_(
                    Borrow.approved_staff_id == actor.id,
                    Borrow.returned_staff_id == actor.id,
                ))
        else:
            # readers only ever see their own records
            reader = BorrowService._require_reader(actor)
            q = q.filter(Borrow.reader_id == reader.id)

        now = clock.utcnow()

        if filters.status is not None:
            q = q.filter(Borrow.status == filters.status.value)
        if filters.created_from is not None:
            q = q.filter(Borrow.created_at >= filters.created_from)
        if filters.created_before is not None:
            q = q.filter(Borrow.created_at < filters.created_before)
        if filters.overdue is True:
            q = q.filter(_overdue_clause(now))
        elif filters.overdue is False:
            q = q.filter(~_overdue_clause(now))
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            q = (
                q.join(Book, Book.id == Borrow.book_id)
                .join(Reader, Reader.id == Borrow.reader_id)
                .filter(or_(
                    Book.title.ilike(pattern),
                    Book.author.ilike(pattern),
                    Reader.full_name.ilike(pattern),
                    Reader.business_id.ilike(pattern),
                    Borrow.note.ilike(pattern),
                ))
            )

        total = q.count()
        counts = {
            "pending": q.filter(Borrow.status == BorrowStatus.PENDING.value).count(),
            "approved": q.filter(Borrow.status == BorrowStatus.APPROVED.value).count(),
            "overdue": q.filter(_overdue_clause(now)).count(),
        }

        items = (
            q.order_by(Borrow.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return BorrowPage(items=items, total=total, page=page, limit=limit, counts=counts)
