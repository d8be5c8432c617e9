from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

from .models import Assessment
from .reconcile import calendar_day
from .scoring import average_overall, coverage, dimension_averages
from .taxonomy import DimensionKey, label


@dataclass(slots=True, frozen=True)
class TrendPoint:
    date: datetime
    dimensions: dict[DimensionKey, float]
    overall: float


@dataclass(slots=True, frozen=True)
class RadarPoint:
    dimension: DimensionKey
    label: str
    value: float


@dataclass(slots=True, frozen=True)
class HistoryRow:
    assessment: Assessment
    overall: float
    coverage: float
    is_latest: bool


def newest_first(assessments: Sequence[Assessment]) -> list[Assessment]:
    # Stable sort over reversed insertion order: on equal dates the later insertion comes first
    return sorted(reversed(assessments), key=lambda a: a.date, reverse=True)


def latest(assessments: Sequence[Assessment]) -> Assessment | None:
    """Most recent assessment by date; on equal dates the later insertion wins."""
    ordered = newest_first(assessments)
    return ordered[0] if ordered else None


def recent_series(assessments: Sequence[Assessment], n: int = 4) -> list[TrendPoint]:
    """
    The ``n`` most recent assessments as trend points, oldest first.

    Example:
        Six monthly assessments January..June with n=4 give March..June.
    """
    if n <= 0:
        return []
    window = newest_first(assessments)[:n]
    window.reverse()
    return [
        TrendPoint(
            date=assessment.date,
            dimensions=dimension_averages(assessment.scores),
            overall=average_overall(assessment.scores),
        )
        for assessment in window
    ]


def latest_radar_snapshot(assessments: Sequence[Assessment]) -> list[RadarPoint]:
    current = latest(assessments)
    if current is None:
        return []
    return [
        RadarPoint(dimension=key, label=label(key), value=value)
        for key, value in dimension_averages(current.scores).items()
    ]


def deduplicated_history(
    assessments: Sequence[Assessment], tz: tzinfo = UTC
) -> list[Assessment]:
    """Newest first, keeping the first occurrence per calendar day."""
    seen = set()
    history: list[Assessment] = []
    for assessment in newest_first(assessments):
        day = calendar_day(assessment.date, tz)
        if day in seen:
            continue
        seen.add(day)
        history.append(assessment)
    return history


def history_rows(assessments: Sequence[Assessment], tz: tzinfo = UTC) -> list[HistoryRow]:
    return [
        HistoryRow(
            assessment=assessment,
            overall=average_overall(assessment.scores),
            coverage=coverage(assessment.scores),
            is_latest=index == 0,
        )
        for index, assessment in enumerate(deduplicated_history(assessments, tz))
    ]
