"""
Application API layer: the use cases behind the HTTP routes.

Each function validates its input, delegates to the repository or the pure
domain functions, and logs the operation. Domain errors propagate unchanged
so the web layer can map them to status codes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeVar, cast

import pandas as pd
from pydantic import BaseModel

from ..domain.models import Assessment, Student, create_empty_assessment
from ..domain.schemas import (
    AssessmentInput,
    RatingEditInput,
    StudentCreationInput,
    validate_input,
)
from ..domain.scoring import ScoreSummary, average_overall, summarise
from ..domain.taxonomy import progress
from ..domain.trends import (
    HistoryRow,
    RadarPoint,
    TrendPoint,
    history_rows,
    latest_radar_snapshot,
    recent_series,
)
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import MultipleValidationError, ValidationError
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.repository import StudentRepository
from ..utils.exports import history_frame

logger = get_logger(__name__)

S = TypeVar("S", bound=BaseModel)


@dataclass(slots=True)
class StudentListing:
    student: Student
    assessment_days: int
    latest_overall: float | None


@dataclass(slots=True)
class AssessmentDetail:
    assessment: Assessment
    summary: ScoreSummary


@dataclass(slots=True)
class StudentOverview:
    student: Student
    radar: list[RadarPoint] = field(default_factory=list)
    trend: list[TrendPoint] = field(default_factory=list)
    history: list[HistoryRow] = field(default_factory=list)


def _parse(schema_class: type[S], data: dict[str, Any]) -> S:
    """Validate ``data`` and raise the application's validation errors on failure."""
    result = validate_input(schema_class, data)
    if not result.success:
        errors = [ValidationError(e.field, e.message, e.value) for e in result.errors]
        logger.warning(
            "%s validation failed: %s",
            schema_class.__name__,
            "; ".join(f"{e.field}: {e.message}" for e in result.errors),
        )
        if len(errors) == 1:
            raise errors[0]
        raise MultipleValidationError(errors)
    return cast(S, result.model)


@log_operation("list_students")
def list_students(repo: StudentRepository) -> list[StudentListing]:
    """
    All students with the figures shown in the student list.

    Example:
        >>> for row in list_students(repo):
        ...     print(row.student.name, row.assessment_days)
    """
    listings = []
    for student in repo.list_students():
        latest = repo.latest(student.id)
        listings.append(
            StudentListing(
                student=student,
                assessment_days=repo.unique_assessment_dates(student.id),
                latest_overall=average_overall(latest.scores) if latest else None,
            )
        )
    logger.info("Listed %d students", len(listings))
    return listings


@log_operation("add_student")
def add_student(repo: StudentRepository, name: str, grade: str) -> Student:
    """
    Validate and add a student.

    Raises:
        ValidationError: If name or grade is missing
        StoreWriteError: If the student could not be persisted
    """
    validated = _parse(StudentCreationInput, {"name": name, "grade": grade})
    student = repo.add_student(validated.name, validated.grade)
    set_context(student_id=student.id)
    return student


@log_operation("delete_student")
def delete_student(repo: StudentRepository, student_id: str) -> None:
    set_context(student_id=student_id)
    repo.remove(student_id)


@log_operation("begin_assessment")
def begin_assessment(repo: StudentRepository, student_id: str) -> Assessment:
    """A blank draft for the student; nothing is stored until it is saved."""
    repo.get_student(student_id)
    return create_empty_assessment(student_id, repo.id_factory, repo.clock)


@log_operation("apply_rating")
def apply_rating(draft: Assessment, edit: dict[str, Any]) -> Assessment:
    """
    Apply one rating edit to a draft and return the updated copy.

    The original draft is left untouched when the edit is rejected.

    Raises:
        ValidationError: If the edit payload is malformed
        UnknownKeyError: If the edit names a key outside the taxonomy
        InvalidRatingError: If the value lies outside 0..5
    """
    validated = _parse(RatingEditInput, edit)
    updated = draft.model_copy(deep=True)
    args = (validated.dimension, validated.sub_dimension, validated.indicator, validated.value)
    if validated.toggle:
        updated.scores.toggle(*args)
    else:
        updated.scores.set(*args)

    position, total = progress(validated.dimension, validated.sub_dimension)
    logger.debug(
        "Rated %s.%s.%s=%d (section %d/%d)",
        *args,
        position,
        total,
    )
    return updated


@log_operation("save_assessment")
def save_assessment(
    repo: StudentRepository, student_id: str, payload: dict[str, Any]
) -> Assessment:
    """
    Validate a submitted assessment and upsert it for the student.

    Example:
        >>> saved = save_assessment(repo, student.id, {"date": "2024-03-01T09:00:00Z"})
        >>> saved.student_id == student.id
        True
    """
    set_context(student_id=student_id)
    validated = _parse(AssessmentInput, payload)
    incoming = validated.to_assessment(student_id, repo.id_factory, repo.clock)
    saved = repo.upsert(student_id, incoming, validated.editing_id)
    set_context(assessment_id=saved.id)
    return saved


@log_operation("assessment_detail")
def assessment_detail(
    repo: StudentRepository, student_id: str, assessment_id: str
) -> AssessmentDetail:
    assessment = repo.get_assessment(student_id, assessment_id)
    return AssessmentDetail(assessment=assessment, summary=summarise(assessment.scores))


@log_operation("student_overview")
def student_overview(
    repo: StudentRepository, student_id: str, window: int | None = None
) -> StudentOverview:
    """
    Radar snapshot, recent trend and deduplicated history for one student.

    ``window`` defaults to the configured trend window.
    """
    student = repo.get_student(student_id)
    if window is None:
        window = get_settings().app.trend_window

    return StudentOverview(
        student=student,
        radar=latest_radar_snapshot(student.assessments),
        trend=recent_series(student.assessments, window),
        history=history_rows(student.assessments, repo.tz),
    )


@log_operation("export_history")
def export_history(repo: StudentRepository, student_id: str) -> tuple[Student, pd.DataFrame]:
    """The student and a DataFrame of its deduplicated score history."""
    student = repo.get_student(student_id)
    return student, history_frame(student.assessments, repo.tz)
