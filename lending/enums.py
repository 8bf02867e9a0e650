from enum import Enum


class BorrowStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"
    CANCELLED = "cancelled"

    @classmethod
    def committed(cls):
        """Statuses whose quantity is held against a book's stock."""
        return (cls.PENDING, cls.APPROVED)

    @classmethod
    def terminal(cls):
        return (cls.REJECTED, cls.CANCELLED, cls.RETURNED)


class Role(str, Enum):
    READER = "reader"
    STAFF = "staff"
