from __future__ import annotations

import io
import json
from collections.abc import Sequence
from datetime import UTC, tzinfo

import pandas as pd

from ..domain.models import Assessment, Student
from ..domain.reconcile import calendar_day
from ..domain.scoring import average_overall, coverage, dimension_averages
from ..domain.taxonomy import dimension_keys, label
from ..domain.trends import deduplicated_history

HISTORY_COLUMNS = [
    "Date",
    "AssessmentID",
    *(str(key) for key in dimension_keys()),
    "Overall",
    "Coverage",
]


def history_frame(assessments: Sequence[Assessment], tz: tzinfo = UTC) -> pd.DataFrame:
    """One row per assessed calendar day, newest first."""
    rows = []
    for assessment in deduplicated_history(assessments, tz):
        averages = dimension_averages(assessment.scores)
        rows.append(
            {
                "Date": calendar_day(assessment.date, tz).isoformat(),
                "AssessmentID": assessment.id,
                **{str(key): value for key, value in averages.items()},
                "Overall": average_overall(assessment.scores),
                "Coverage": coverage(assessment.scores),
            }
        )
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def make_json_export_payload(student: Student, history_df: pd.DataFrame) -> str:
    payload = {
        "student": {
            "id": student.id,
            "name": student.name,
            "grade": student.grade,
            "createdAt": student.created_at.isoformat(),
        },
        "history": history_df.to_dict(orient="records"),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def make_xlsx_export_bytes(student: Student, history_df: pd.DataFrame | None) -> bytes:
    """Two-sheet workbook: the student record and the labelled score history."""
    if history_df is None:
        history_df = pd.DataFrame(columns=HISTORY_COLUMNS)

    labelled = history_df.rename(columns={str(key): label(key) for key in dimension_keys()})
    student_df = pd.DataFrame(
        [
            {
                "ID": student.id,
                "Name": student.name,
                "Grade": student.grade,
                "CreatedAt": student.created_at.isoformat(),
                "AssessmentDays": len(history_df),
            }
        ]
    )

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        student_df.to_excel(writer, index=False, sheet_name="Student")
        labelled.to_excel(writer, index=False, sheet_name="History")
    return bio.getvalue()
