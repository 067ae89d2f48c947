from typing import TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository:
    def __init__(self, db: Session):
        self.db = db

    def _add(self, record: T) -> T:
        """Stage a new row and flush so generated columns are populated."""
        self.db.add(record)
        self.db.flush()
        return record

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
