"""
One-assessment-per-calendar-day reconciliation.

Pure functions over a student's assessment list; the repository adds lookup,
persistence and logging on top.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, date, datetime, tzinfo

from ..infrastructure.exceptions import AssessmentNotFoundError
from .models import Assessment


def calendar_day(moment: datetime, tz: tzinfo = UTC) -> date:
    """Calendar date of ``moment`` in ``tz``; naive datetimes are read as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(tz).date()


def same_calendar_day(a: datetime, b: datetime, tz: tzinfo = UTC) -> bool:
    return calendar_day(a, tz) == calendar_day(b, tz)


def find_by_date(
    assessments: Sequence[Assessment], day: date | datetime, tz: tzinfo = UTC
) -> Assessment | None:
    """First assessment, in insertion order, recorded on the given calendar day."""
    target = calendar_day(day, tz) if isinstance(day, datetime) else day
    for assessment in assessments:
        if calendar_day(assessment.date, tz) == target:
            return assessment
    return None


def _index_of(assessments: Sequence[Assessment], assessment_id: str) -> int | None:
    for index, assessment in enumerate(assessments):
        if assessment.id == assessment_id:
            return index
    return None


def reconcile(
    assessments: Sequence[Assessment],
    incoming: Assessment,
    editing_id: str | None = None,
    tz: tzinfo = UTC,
) -> tuple[list[Assessment], Assessment]:
    """
    Merge ``incoming`` into ``assessments`` keeping one record per calendar day.

    Args:
        assessments: Current collection in insertion order (left untouched)
        incoming: Submitted assessment
        editing_id: Id of the record the form was opened on. Defaults to
            ``incoming.id`` when that id is already in the collection
        tz: Timezone used to truncate dates to calendar days

    Returns:
        The new collection and the record that now holds the submission.

    Rules:
        - a record already on the incoming date absorbs the submission and keeps its id
        - if a different record was being edited, that record is dropped
        - with no record on that date the edited record is overwritten, or
          ``incoming`` is appended
        - other records on the touched date are collapsed into the kept one

    Raises:
        AssessmentNotFoundError: If an explicit ``editing_id`` is not in the collection
    """
    result = [assessment.model_copy(deep=True) for assessment in assessments]

    if editing_id is not None:
        edited_index = _index_of(result, editing_id)
        if edited_index is None:
            raise AssessmentNotFoundError(editing_id, incoming.student_id)
    else:
        edited_index = _index_of(result, incoming.id)
    being_edited = result[edited_index] if edited_index is not None else None

    existing_on_date = find_by_date(result, incoming.date, tz)

    if existing_on_date is None:
        if being_edited is not None:
            being_edited.overwrite_from(incoming)
            return result, being_edited
        final = incoming.model_copy(deep=True)
        result.append(final)
        return result, final

    existing_on_date.overwrite_from(incoming)
    day = calendar_day(incoming.date, tz)
    kept = [
        assessment
        for assessment in result
        if assessment is existing_on_date
        or (assessment is not being_edited and calendar_day(assessment.date, tz) != day)
    ]
    return kept, existing_on_date
