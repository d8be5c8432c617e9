from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaxonomyIndicator(ApiModel):
    key: str
    label: str


class TaxonomySubDimension(ApiModel):
    key: str
    label: str
    indicators: list[TaxonomyIndicator]


class TaxonomyDimension(ApiModel):
    key: str
    label: str
    sub_dimensions: list[TaxonomySubDimension]


class StudentCreateRequest(ApiModel):
    name: str
    grade: str


class StudentSummary(ApiModel):
    id: str
    name: str
    grade: str
    created_at: datetime


class StudentListItem(StudentSummary):
    assessment_days: int = 0
    latest_overall: float | None = None


class AverageScore(ApiModel):
    key: str
    label: str
    average: float
    coverage: float


class ScoreSummaryResponse(ApiModel):
    overall: float
    coverage: float
    dimensions: list[AverageScore]
    sub_dimensions: list[AverageScore]
    unevaluated: list[str]


class AssessmentDetailResponse(ApiModel):
    # Wire form of the assessment (camelCase keys, 0 for unrated)
    assessment: dict[str, Any]
    summary: ScoreSummaryResponse


class DraftRatingRequest(ApiModel):
    assessment: dict[str, Any]
    edit: dict[str, Any]


class HistoryItem(ApiModel):
    assessment_id: str
    date: datetime
    overall: float
    coverage: float
    is_latest: bool


class RadarPointResponse(ApiModel):
    dimension: str
    label: str
    value: float


class TrendPointResponse(ApiModel):
    date: datetime
    dimensions: dict[str, float]
    overall: float


class StudentOverviewResponse(ApiModel):
    student: StudentSummary
    radar: list[RadarPointResponse]
    trend: list[TrendPointResponse]
    history: list[HistoryItem]
