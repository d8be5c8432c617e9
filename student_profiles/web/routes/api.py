from __future__ import annotations

import io
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from student_profiles.application import api as app_api
from student_profiles.domain.models import Assessment, Student
from student_profiles.domain.scoring import ScoreSummary, summarise
from student_profiles.domain.taxonomy import INDICATOR_LABELS, TAXONOMY
from student_profiles.infrastructure.exceptions import (
    AssessmentNotFoundError,
    StoreWriteError,
    StudentNotFoundError,
    StudentProfileError,
)
from student_profiles.infrastructure.repository import StudentRepository
from student_profiles.utils.exports import make_json_export_payload, make_xlsx_export_bytes
from student_profiles.web.dependencies import get_repository
from student_profiles.web.schemas import (
    AssessmentDetailResponse,
    AverageScore,
    DraftRatingRequest,
    HistoryItem,
    RadarPointResponse,
    ScoreSummaryResponse,
    StudentCreateRequest,
    StudentListItem,
    StudentOverviewResponse,
    StudentSummary,
    TaxonomyDimension,
    TaxonomyIndicator,
    TaxonomySubDimension,
    TrendPointResponse,
)

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


def _http_error(exc: StudentProfileError) -> HTTPException:
    if isinstance(exc, (StudentNotFoundError, AssessmentNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, StoreWriteError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.user_message)


def _student_summary(student: Student) -> StudentSummary:
    return StudentSummary(
        id=student.id, name=student.name, grade=student.grade, created_at=student.created_at
    )


def _wire(assessment: Assessment) -> dict[str, Any]:
    return assessment.model_dump(by_alias=True, mode="json")


def _summary_response(summary: ScoreSummary) -> ScoreSummaryResponse:
    return ScoreSummaryResponse(
        overall=summary.overall,
        coverage=summary.coverage,
        dimensions=[
            AverageScore(key=r.key, label=r.label, average=r.average, coverage=r.coverage)
            for r in summary.dimensions
        ],
        sub_dimensions=[
            AverageScore(key=r.key, label=r.label, average=r.average, coverage=r.coverage)
            for r in summary.sub_dimensions
        ],
        unevaluated=[path.dotted for path in summary.unevaluated],
    )


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/taxonomy", response_model=list[TaxonomyDimension])
def get_taxonomy() -> list[TaxonomyDimension]:
    return [
        TaxonomyDimension(
            key=spec.key,
            label=spec.label,
            sub_dimensions=[
                TaxonomySubDimension(
                    key=sub.key,
                    label=sub.label,
                    indicators=[
                        TaxonomyIndicator(key=ind, label=INDICATOR_LABELS[ind])
                        for ind in sub.indicators
                    ],
                )
                for sub in spec.sub_dimensions
            ],
        )
        for spec in TAXONOMY
    ]


@router.get("/students", response_model=list[StudentListItem])
def list_students(repo: StudentRepository = Depends(get_repository)) -> list[StudentListItem]:
    return [
        StudentListItem(
            id=row.student.id,
            name=row.student.name,
            grade=row.student.grade,
            created_at=row.student.created_at,
            assessment_days=row.assessment_days,
            latest_overall=row.latest_overall,
        )
        for row in app_api.list_students(repo)
    ]


@router.post("/students", response_model=StudentSummary, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreateRequest,
    repo: StudentRepository = Depends(get_repository),
) -> StudentSummary:
    try:
        student = app_api.add_student(repo, payload.name, payload.grade)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return _student_summary(student)


@router.delete("/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, repo: StudentRepository = Depends(get_repository)) -> Response:
    try:
        app_api.delete_student(repo, student_id)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/students/{student_id}/assessments", response_model=list[HistoryItem])
def list_assessments(
    student_id: str, repo: StudentRepository = Depends(get_repository)
) -> list[HistoryItem]:
    try:
        overview = app_api.student_overview(repo, student_id)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return [
        HistoryItem(
            assessment_id=row.assessment.id,
            date=row.assessment.date,
            overall=row.overall,
            coverage=row.coverage,
            is_latest=row.is_latest,
        )
        for row in overview.history
    ]


@router.get("/students/{student_id}/assessments/new", response_model=AssessmentDetailResponse)
def new_assessment(
    student_id: str, repo: StudentRepository = Depends(get_repository)
) -> AssessmentDetailResponse:
    try:
        draft = app_api.begin_assessment(repo, student_id)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return AssessmentDetailResponse(
        assessment=_wire(draft), summary=_summary_response(summarise(draft.scores))
    )


@router.post(
    "/students/{student_id}/assessments/draft/ratings", response_model=AssessmentDetailResponse
)
def rate_draft(
    student_id: str,
    payload: DraftRatingRequest,
    repo: StudentRepository = Depends(get_repository),
) -> AssessmentDetailResponse:
    """Apply one rating edit to an unsaved draft and return it with live averages."""
    try:
        repo.get_student(student_id)
        draft = Assessment.model_validate({**payload.assessment, "studentId": student_id})
        updated = app_api.apply_rating(draft, payload.edit)
    except PydanticValidationError as exc:
        logger.warning("Rejected malformed draft for student %s: %s", student_id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return AssessmentDetailResponse(
        assessment=_wire(updated), summary=_summary_response(summarise(updated.scores))
    )


@router.post(
    "/students/{student_id}/assessments",
    response_model=AssessmentDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
def save_assessment(
    student_id: str,
    payload: dict[str, Any],
    repo: StudentRepository = Depends(get_repository),
) -> AssessmentDetailResponse:
    try:
        saved = app_api.save_assessment(repo, student_id, payload)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return AssessmentDetailResponse(
        assessment=_wire(saved), summary=_summary_response(summarise(saved.scores))
    )


@router.get(
    "/students/{student_id}/assessments/{assessment_id}",
    response_model=AssessmentDetailResponse,
)
def get_assessment(
    student_id: str,
    assessment_id: str,
    repo: StudentRepository = Depends(get_repository),
) -> AssessmentDetailResponse:
    try:
        detail = app_api.assessment_detail(repo, student_id, assessment_id)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    return AssessmentDetailResponse(
        assessment=_wire(detail.assessment), summary=_summary_response(detail.summary)
    )


@router.get("/students/{student_id}/overview", response_model=StudentOverviewResponse)
def get_overview(
    student_id: str,
    window: int | None = None,
    repo: StudentRepository = Depends(get_repository),
) -> StudentOverviewResponse:
    try:
        overview = app_api.student_overview(repo, student_id, window)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc

    return StudentOverviewResponse(
        student=_student_summary(overview.student),
        radar=[
            RadarPointResponse(dimension=p.dimension, label=p.label, value=p.value)
            for p in overview.radar
        ],
        trend=[
            TrendPointResponse(
                date=p.date,
                dimensions={str(k): v for k, v in p.dimensions.items()},
                overall=p.overall,
            )
            for p in overview.trend
        ],
        history=[
            HistoryItem(
                assessment_id=row.assessment.id,
                date=row.assessment.date,
                overall=row.overall,
                coverage=row.coverage,
                is_latest=row.is_latest,
            )
            for row in overview.history
        ],
    )


@router.get("/students/{student_id}/export.json")
def export_student_json(
    student_id: str, repo: StudentRepository = Depends(get_repository)
) -> JSONResponse:
    try:
        student, history_df = app_api.export_history(repo, student_id)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    payload = json.loads(make_json_export_payload(student, history_df))
    return JSONResponse(content=payload)


@router.get("/students/{student_id}/export.xlsx")
def export_student_xlsx(
    student_id: str, repo: StudentRepository = Depends(get_repository)
) -> StreamingResponse:
    try:
        student, history_df = app_api.export_history(repo, student_id)
    except StudentProfileError as exc:
        raise _http_error(exc) from exc
    stream = io.BytesIO(make_xlsx_export_bytes(student, history_df))
    stream.seek(0)
    headers = {"Content-Disposition": f"attachment; filename=student_{student_id}.xlsx"}
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )
