from sqlalchemy import update

from lending.extensions import db
from lending.models.book import Book


class BookRepo:
    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def bump_stock_version(book_id: int, expected: int = None) -> bool:
        """
        stock_version += 1.
        With `expected` the write is conditional and returns False when
        another writer already moved the version.
        """
        stmt = update(Book).where(Book.id == book_id)
        if expected is not None:
            stmt = stmt.where(Book.stock_version == expected)
        stmt = stmt.values(stock_version=Book.stock_version + 1)
        result = db.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1
