"""
Student repository: the in-memory collection plus write-through persistence.

The loaded collection is the source of truth for the lifetime of the
repository. Every mutation is applied in memory first and then saved; if the
save fails the change stays in memory and ``StoreWriteError`` is raised.
"""

from __future__ import annotations

import threading
from datetime import UTC, date, datetime, tzinfo

from ..domain import reconcile as reconciliation
from ..domain import trends
from ..domain.models import (
    Assessment,
    Clock,
    IdFactory,
    Student,
    generate_id,
    utc_now,
)
from .exceptions import AssessmentNotFoundError, StudentNotFoundError, ValidationError
from .logging import LogContext, get_logger
from .store import StudentStore

logger = get_logger(__name__)


class StudentRepository:
    def __init__(
        self,
        store: StudentStore,
        id_factory: IdFactory = generate_id,
        clock: Clock = utc_now,
        tz: tzinfo = UTC,
    ):
        self.store = store
        self.id_factory = id_factory
        self.clock = clock
        self.tz = tz
        # Serialises read-modify-write of the collection across request threads
        self._lock = threading.RLock()
        self._students: list[Student] = store.load()
        logger.info("Loaded %d students", len(self._students))

    # ----- internals -----

    def _find(self, student_id: str) -> Student:
        for student in self._students:
            if student.id == student_id:
                return student
        raise StudentNotFoundError(student_id)

    def _persist(self) -> None:
        self.store.save(self._students)

    # ----- students -----

    def list_students(self) -> list[Student]:
        with self._lock:
            return [student.model_copy(deep=True) for student in self._students]

    def get_student(self, student_id: str) -> Student:
        return self._find(student_id).model_copy(deep=True)

    def add_student(self, name: str, grade: str) -> Student:
        """
        Add a student with no assessments.

        Raises:
            ValidationError: If name or grade is blank after trimming
            StoreWriteError: If the collection could not be saved
        """
        name, grade = (name or "").strip(), (grade or "").strip()
        if not name:
            raise ValidationError("name", "cannot be empty", name)
        if not grade:
            raise ValidationError("grade", "cannot be empty", grade)

        student = Student(id=self.id_factory(), name=name, grade=grade, created_at=self.clock())
        with self._lock, LogContext(student_id=student.id):
            self._students.append(student)
            logger.info("Added student %s (%s)", student.name, student.grade)
            self._persist()
        return student.model_copy(deep=True)

    def remove(self, student_id: str) -> None:
        """Delete a student together with all of its assessments."""
        with self._lock, LogContext(student_id=student_id):
            student = self._find(student_id)
            self._students.remove(student)
            logger.info(
                "Removed student %s with %d assessments", student_id, len(student.assessments)
            )
            self._persist()

    def unique_assessment_dates(self, student_id: str) -> int:
        """Number of distinct calendar days with at least one assessment."""
        student = self._find(student_id)
        return len({reconciliation.calendar_day(a.date, self.tz) for a in student.assessments})

    # ----- assessments -----

    def assessments(self, student_id: str) -> list[Assessment]:
        return [a.model_copy(deep=True) for a in self._find(student_id).assessments]

    def get_assessment(self, student_id: str, assessment_id: str) -> Assessment:
        for assessment in self._find(student_id).assessments:
            if assessment.id == assessment_id:
                return assessment.model_copy(deep=True)
        raise AssessmentNotFoundError(assessment_id, student_id)

    def find_by_date(self, student_id: str, day: date | datetime) -> Assessment | None:
        found = reconciliation.find_by_date(self._find(student_id).assessments, day, self.tz)
        return found.model_copy(deep=True) if found is not None else None

    def latest(self, student_id: str) -> Assessment | None:
        found = trends.latest(self._find(student_id).assessments)
        return found.model_copy(deep=True) if found is not None else None

    def most_recent(self, student_id: str, n: int) -> list[Assessment]:
        """Up to ``n`` assessments, newest first."""
        ordered = trends.newest_first(self._find(student_id).assessments)
        return [a.model_copy(deep=True) for a in ordered[: max(n, 0)]]

    def upsert(
        self, student_id: str, incoming: Assessment, editing_id: str | None = None
    ) -> Assessment:
        """
        Save a submitted assessment under the one-per-calendar-day rule.

        Returns:
            The stored record, which may carry the id of an older same-day record.

        Raises:
            StudentNotFoundError: If the student does not exist
            AssessmentNotFoundError: If ``editing_id`` is not one of its assessments
            StoreWriteError: If the collection could not be saved
        """
        if incoming.student_id != student_id:
            incoming = incoming.model_copy(update={"student_id": student_id}, deep=True)

        with self._lock:
            student = self._find(student_id)
            before = len(student.assessments)
            updated, final = reconciliation.reconcile(
                student.assessments, incoming, editing_id, self.tz
            )
            student.assessments = updated

            with LogContext(student_id=student_id, assessment_id=final.id):
                if final.id != incoming.id:
                    logger.info(
                        "Merged assessment %s into same-day record %s", incoming.id, final.id
                    )
                logger.info("Saved assessment (%d -> %d records)", before, len(updated))
                self._persist()
        return final.model_copy(deep=True)
