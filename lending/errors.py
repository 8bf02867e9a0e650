class LendingError(Exception):
    """
    Base error for the lending core.
    `kind` is stable and machine readable, `message` is for humans and
    `status_code` is what the HTTP layer answers with.
    """
    kind = "lending_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class NotFound(LendingError):
    kind = "not_found"
    status_code = 404


class Forbidden(LendingError):
    kind = "forbidden"
    status_code = 403


class InvalidTransition(LendingError):
    kind = "invalid_transition"
    status_code = 409


class InsufficientStock(LendingError):
    kind = "insufficient_stock"
    status_code = 409

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        # True when the guard gave up after losing every retry to other writers
        self.transient = transient

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["transient"] = self.transient
        return data


class LimitExceeded(LendingError):
    kind = "limit_exceeded"
    status_code = 409


class ValidationError(LendingError):
    kind = "validation_error"
    status_code = 400


class BookInactive(LendingError):
    kind = "book_inactive"
    status_code = 400


class LostRace(Exception):
    """A conditional write matched no row because another writer got there first."""
