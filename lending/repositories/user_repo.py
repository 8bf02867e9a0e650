from sqlalchemy import update

from lending.extensions import db
from lending.models.reader import Reader
from lending.models.staff import Staff


class ReaderRepo:
    @staticmethod
    def get(reader_id: int):
        return db.session.get(Reader, reader_id)

    @staticmethod
    def bump_borrow_version(reader_id: int, expected: int = None) -> bool:
        stmt = update(Reader).where(Reader.id == reader_id)
        if expected is not None:
            stmt = stmt.where(Reader.borrow_version == expected)
        stmt = stmt.values(borrow_version=Reader.borrow_version + 1)
        result = db.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1


class StaffRepo:
    @staticmethod
    def get(staff_id: int):
        return db.session.get(Staff, staff_id)
