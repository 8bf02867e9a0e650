# lending/controllers/book_controller.py

from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from lending.errors import LendingError
from lending.repositories.book_repo import BookRepo
from lending.services.inventory_ledger import InventoryLedger

book_bp = Blueprint("books", __name__)


@book_bp.get("/<int:book_id>/availability")
@jwt_required()
def book_availability(book_id: int):
    try:
        available = InventoryLedger.available_quantity(book_id)
        book = BookRepo.get(book_id)
        return jsonify({
            "success": True,
            "data": {
                "id": book.id,
                "title": book.title,
                "total_quantity": book.total_quantity,
                "committed_quantity": InventoryLedger.committed_quantity(book_id),
                "available_quantity": available,
                "is_active": bool(book.is_active),
            }
        })
    except LendingError as e:
        return jsonify(e.to_dict()), e.status_code
