from lending.models.book import Book
from lending.models.borrow import Borrow
from lending.models.reader import Reader
from lending.models.staff import Staff

__all__ = ["Book", "Borrow", "Reader", "Staff"]
