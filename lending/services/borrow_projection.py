from datetime import datetime
from typing import Optional

from lending.models.borrow import Borrow
from lending.utils import clock


def _iso(value):
    return value.isoformat() if value else None


def _staff_view(staff):
    if not staff:
        return None
    return {"id": staff.id, "businessId": staff.business_id, "fullName": staff.full_name}


def project_borrow(b: Borrow, now: Optional[datetime] = None) -> dict:
    """Borrow row enriched with reader/book/staff display data and the derived overdue flag."""
    now = now or clock.utcnow()
    reader = b.reader
    book = b.book
    return {
        "id": b.id,
        "status": b.status,
        "quantity": b.quantity,
        "borrowDate": _iso(b.borrow_date),
        "dueDate": _iso(b.due_date),
        "returnDate": _iso(b.return_date),
        "note": b.note,
        "createdAt": _iso(b.created_at),
        "updatedAt": _iso(b.updated_at),
        "isOverdue": b.is_overdue(now),
        "reader": {
            "id": reader.id,
            "businessId": reader.business_id,
            "fullName": reader.full_name,
        } if reader else None,
        "book": {
            "id": book.id,
            "title": book.title,
            "author": book.author,
        } if book else None,
        "approvedStaff": _staff_view(b.approved_staff),
        "returnedStaff": _staff_view(b.returned_staff),
    }
