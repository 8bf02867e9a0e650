from flask import current_app
from sqlalchemy.exc import OperationalError

from lending.enums import BorrowStatus
from lending.errors import (
    BookInactive,
    InsufficientStock,
    LimitExceeded,
    LostRace,
    NotFound,
    ValidationError,
)
from lending.models.borrow import Borrow
from lending.repositories.book_repo import BookRepo
from lending.repositories.borrow_repo import BorrowRepo
from lending.repositories.user_repo import ReaderRepo
from lending.services.inventory_ledger import InventoryLedger
from lending.utils import clock


class ReservationGuard:
    """
    Admission control for new borrow requests.

    One attempt reads the book's stock_version and the reader's
    borrow_version, runs the exact ledger scans, inserts the PENDING row and
    then bumps both versions conditionally on the values it read. If either
    bump misses, someone committed against the same book or reader in the
    meantime: the attempt is rolled back and started over from fresh reads.
    """

    @staticmethod
    def _attempt(reader_id: int, book_id: int, quantity: int, note):
        book = BookRepo.get(book_id)
        if not book:
            raise NotFound("Book not found")
        if not book.is_active:
            raise BookInactive("This book is not available for borrowing")

        reader = ReaderRepo.get(reader_id)
        if not reader:
            raise NotFound("Reader not found")

        book_seen = book.stock_version
        reader_seen = reader.borrow_version

        available = InventoryLedger.available_quantity(book_id)
        if available < quantity:
            raise InsufficientStock(
                f"Not enough available copies: requested {quantity}, available {available}"
            )

        limit = current_app.config["MAX_CONCURRENT_BORROWS"]
        current = InventoryLedger.reader_committed_quantity(reader_id)
        if current + quantity > limit:
            raise LimitExceeded(
                f"Borrow limit exceeded: {current} already committed, limit is {limit}"
            )

        now = clock.utcnow()
        borrow = BorrowRepo.add(Borrow(
            reader_id=reader_id,
            book_id=book_id,
            quantity=quantity,
            status=BorrowStatus.PENDING.value,
            note=note or None,
            created_at=now,
            updated_at=now,
        ))

        if not BookRepo.bump_stock_version(book_id, expected=book_seen):
            raise LostRace(f"book #{book_id} stock moved")
        if not ReaderRepo.bump_borrow_version(reader_id, expected=reader_seen):
            raise LostRace(f"reader #{reader_id} borrows moved")

        return borrow

    @staticmethod
    def reserve(reader_id: int, book_id: int, quantity: int, note: str = None) -> Borrow:
        if quantity is None or quantity < 1:
            raise ValidationError("quantity must be at least 1")

        retries = current_app.config["CAS_MAX_RETRIES"]
        for attempt in range(retries + 1):
            try:
                borrow = ReservationGuard._attempt(reader_id, book_id, quantity, note)
                BorrowRepo.commit()
            except (LostRace, OperationalError) as e:
                BorrowRepo.rollback()
                current_app.logger.info(
                    f"[reservation] lost race reader={reader_id} book={book_id} attempt={attempt + 1}: {e}"
                )
                continue
            except Exception:
                BorrowRepo.rollback()
                raise

            current_app.logger.info(
                f"[reservation] borrow={borrow.id} reader={reader_id} book={book_id} quantity={quantity}"
            )
            return borrow

        current_app.logger.warning(
            f"[reservation] gave up after {retries + 1} attempts reader={reader_id} book={book_id}"
        )
        raise InsufficientStock(
            "Could not reserve copies because of concurrent requests, please retry",
            transient=True,
        )
