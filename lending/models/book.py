from lending.extensions import db
from lending.utils import clock


class Book(db.Model):
    """Read-side mirror of the catalog; the lending core never edits title/author/quantity."""
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=False, index=True)

    total_quantity = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # bumped by every write that changes this book's committed quantity
    stock_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=lambda: clock.utcnow())

    __table_args__ = (
        db.CheckConstraint("total_quantity >= 0", name="ck_books_total_quantity"),
    )
