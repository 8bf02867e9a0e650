from lending.errors import NotFound
from lending.repositories.book_repo import BookRepo
from lending.repositories.borrow_repo import BorrowRepo


class InventoryLedger:
    """
    Committed quantity = sum of pending + approved borrows, recomputed by an
    exact scan every time. Callers that act on the numbers must read them
    inside the same transaction as their write.
    """

    @staticmethod
    def committed_quantity(book_id: int) -> int:
        return BorrowRepo.committed_for_book(book_id)

    @staticmethod
    def available_quantity(book_id: int) -> int:
        book = BookRepo.get(book_id)
        if not book:
            raise NotFound("Book not found")

        available = (book.total_quantity or 0) - BorrowRepo.committed_for_book(book_id)
        return max(0, available)

    @staticmethod
    def reader_committed_quantity(reader_id: int) -> int:
        return BorrowRepo.committed_for_reader(reader_id)
