from lending.extensions import db


class Reader(db.Model):
    __tablename__ = "readers"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.String(32), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    # bumped by every write that changes this reader's committed quantity
    borrow_version = db.Column(db.Integer, nullable=False, default=0)
