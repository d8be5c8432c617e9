"""
Persistence stores for the student collection.

The whole collection is read and written as one JSON document, keyed by
``storage_key``. Reads never fail: a missing or unreadable document yields an
empty collection and a warning. Write failures surface as ``StoreWriteError``.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..domain.models import STUDENTS_ADAPTER, Student, utc_now
from .exceptions import StudentProfileError, handle_database_error
from .logging import get_logger, log_store_operation
from .models import KeyValueORM

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "studentProfiles"


class StudentStore(Protocol):
    def load(self) -> list[Student]: ...

    def save(self, students: Sequence[Student]) -> None: ...


def dump_students(students: Sequence[Student]) -> str:
    """Serialise students to the camelCase wire document."""
    return STUDENTS_ADAPTER.dump_json(list(students), by_alias=True).decode("utf-8")


def parse_students(raw: str | bytes | None) -> list[Student]:
    """Parse a stored document; anything unreadable becomes an empty collection."""
    if not raw:
        return []
    try:
        return STUDENTS_ADAPTER.validate_json(raw)
    except (PydanticValidationError, StudentProfileError) as e:
        logger.warning("Stored student collection is unreadable, starting empty: %s", e)
        return []


class InMemoryStudentStore:
    """Process-local store; keeps its own copies so callers cannot alias them."""

    def __init__(self, students: Sequence[Student] | None = None):
        self._students = [s.model_copy(deep=True) for s in students or []]
        self.save_count = 0

    def load(self) -> list[Student]:
        return [s.model_copy(deep=True) for s in self._students]

    def save(self, students: Sequence[Student]) -> None:
        self._students = [s.model_copy(deep=True) for s in students]
        self.save_count += 1


class SqlStudentStore:
    """Student collection stored as one row of the ``kv_blobs`` table."""

    def __init__(self, SessionLocal: sessionmaker, storage_key: str = DEFAULT_STORAGE_KEY):
        self.SessionLocal = SessionLocal
        self.storage_key = storage_key

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    @log_store_operation("load")
    def load(self) -> list[Student]:
        try:
            with self.transaction() as s:
                row = s.get(KeyValueORM, self.storage_key)
                raw = row.value if row is not None else None
        except SQLAlchemyError as e:
            logger.warning("Could not read %s, starting empty: %s", self.storage_key, e)
            return []
        return parse_students(raw)

    @log_store_operation("save")
    def save(self, students: Sequence[Student]) -> None:
        """
        Replace the stored document.

        Raises:
            StoreWriteError: If the database rejects the write
        """
        payload = dump_students(students)
        try:
            with self.transaction() as s:
                row = s.get(KeyValueORM, self.storage_key)
                if row is None:
                    s.add(KeyValueORM(key=self.storage_key, value=payload, updated_at=utc_now()))
                else:
                    row.value = payload
                    row.updated_at = utc_now()
        except SQLAlchemyError as e:
            raise handle_database_error(e, "save") from e
