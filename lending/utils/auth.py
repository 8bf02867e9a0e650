from dataclasses import dataclass

from flask_jwt_extended import get_jwt, get_jwt_identity

from lending.enums import Role


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as asserted by the identity provider's token."""
    id: int
    role: str

    @property
    def is_reader(self) -> bool:
        return self.role == Role.READER.value

    @property
    def is_staff(self) -> bool:
        return self.role == Role.STAFF.value


def current_actor() -> Actor:
    """
    JWT identity is the reader/staff id, the `role` claim says which.
    Must be called inside a request that passed jwt_required().
    """
    user_id = int(get_jwt_identity())
    role = (get_jwt() or {}).get("role")
    return Actor(id=user_id, role=role)
