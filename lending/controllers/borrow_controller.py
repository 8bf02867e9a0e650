from datetime import date, datetime, timedelta

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from lending.enums import BorrowStatus, Role
from lending.errors import LendingError, ValidationError
from lending.services.borrow_projection import project_borrow
from lending.services.borrow_service import BorrowFilter, BorrowService
from lending.utils import clock
from lending.utils.auth import current_actor
from lending.utils.decorators import role_required

borrow_bp = Blueprint("borrows", __name__)


# -----------------------------
# Helpers
# -----------------------------
def _json_error(err: LendingError):
    return jsonify(err.to_dict()), err.status_code


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _date_arg(name: str, end_of_range: bool = False):
    """
    Accepts YYYY-MM-DD or a full ISO datetime.
    A bare date used as the end of a range covers that whole day.
    """
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            value = datetime(day.year, day.month, day.day)
            return value + timedelta(days=1) if end_of_range else value
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO date")
    if value.tzinfo is not None:
        value = value.replace(tzinfo=None) - value.utcoffset()
    return value


def _bool_arg(name: str):
    raw = (request.args.get(name) or "").strip().lower()
    if not raw:
        return None
    if raw in ("1", "true", "yes"):
        return True
    if raw in ("0", "false", "no"):
        return False
    raise ValidationError(f"{name} must be true or false")


def _int_field(data: dict, name: str, default=None) -> int:
    value = data.get(name, default)
    # bool is an int subclass; neither it nor floats are accepted as counts
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


def _note_field(data: dict):
    note = data.get("note")
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string")
    return note


def _filters_from_args() -> BorrowFilter:
    status = (request.args.get("status") or "").strip().lower()
    if status:
        try:
            status = BorrowStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")
    return BorrowFilter(
        status=status or None,
        created_from=_date_arg("from"),
        created_before=_date_arg("to", end_of_range=True),
        search=(request.args.get("search") or "").strip() or None,
        overdue=_bool_arg("overdue"),
    )


def _list_response(mine: bool):
    actor = current_actor()
    filters = _filters_from_args()
    page = BorrowService.list_borrows(
        actor,
        filters,
        page=_int_arg("page", 1),
        limit=_int_arg("limit", 10),
        mine=mine,
    )
    now = clock.utcnow()
    return jsonify({
        "success": True,
        "data": [project_borrow(b, now) for b in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "pages": page.pages,
        },
        "counts": page.counts,
    })


# -----------------------------
# Routes
# -----------------------------
@borrow_bp.post("/")
@jwt_required()
@role_required(Role.READER.value)
def create_borrow():
    data = request.get_json(silent=True) or {}
    try:
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        if "book_id" not in data:
            raise ValidationError("book_id is required")
        book_id = _int_field(data, "book_id")
        quantity = _int_field(data, "quantity", 1)
        note = _note_field(data)

        b = BorrowService.create_borrow(current_actor(), book_id, quantity, note)
        return jsonify({"success": True, "data": project_borrow(b)}), 201
    except LendingError as e:
        return _json_error(e)


@borrow_bp.get("/")
@jwt_required()
@role_required(Role.STAFF.value)
def all_borrows():
    try:
        return _list_response(mine=False)
    except LendingError as e:
        return _json_error(e)


@borrow_bp.get("/my")
@jwt_required()
def my_borrows():
    try:
        return _list_response(mine=True)
    except LendingError as e:
        return _json_error(e)


@borrow_bp.get("/<int:borrow_id>")
@jwt_required()
def get_borrow(borrow_id: int):
    try:
        b = BorrowService.get_borrow(current_actor(), borrow_id)
        return jsonify({"success": True, "data": project_borrow(b)})
    except LendingError as e:
        return _json_error(e)


@borrow_bp.post("/<int:borrow_id>/cancel")
@jwt_required()
@role_required(Role.READER.value)
def cancel_borrow(borrow_id: int):
    try:
        b = BorrowService.cancel_borrow(current_actor(), borrow_id)
        return jsonify({"success": True, "data": project_borrow(b)})
    except LendingError as e:
        return _json_error(e)


@borrow_bp.post("/<int:borrow_id>/approve")
@jwt_required()
@role_required(Role.STAFF.value)
def approve_borrow(borrow_id: int):
    try:
        b = BorrowService.approve_borrow(current_actor(), borrow_id)
        return jsonify({"success": True, "data": project_borrow(b)})
    except LendingError as e:
        return _json_error(e)


@borrow_bp.post("/<int:borrow_id>/reject")
@jwt_required()
@role_required(Role.STAFF.value)
def reject_borrow(borrow_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        b = BorrowService.reject_borrow(current_actor(), borrow_id, _note_field(data))
        return jsonify({"success": True, "data": project_borrow(b)})
    except LendingError as e:
        return _json_error(e)


@borrow_bp.post("/<int:borrow_id>/confirm-return")
@jwt_required()
@role_required(Role.STAFF.value)
def confirm_return(borrow_id: int):
    try:
        b = BorrowService.confirm_return(current_actor(), borrow_id)
        return jsonify({"success": True, "data": project_borrow(b)})
    except LendingError as e:
        return _json_error(e)
