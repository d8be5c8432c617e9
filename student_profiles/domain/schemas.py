"""
Pydantic schemas for validating user input before it reaches the repository.

Wire payloads use camelCase keys; snake_case field names are accepted too.
"""

from __future__ import annotations

import re
from datetime import datetime
from html import unescape
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..infrastructure.exceptions import ValidationError
from .models import (
    Assessment,
    Clock,
    Feedback,
    IdFactory,
    ScoreTree,
    generate_id,
    utc_now,
)


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v):
        """Strip markup and control characters from free-text input."""
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


class StudentCreationInput(BaseValidationSchema):
    """Validation schema for adding a student."""

    name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field(..., min_length=1, max_length=50)

    @field_validator("name", "grade")
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()


class RatingEditInput(BaseValidationSchema):
    """A single raw edit coming from the assessment form."""

    dimension: str = Field(..., min_length=1, max_length=64)
    sub_dimension: str = Field(..., min_length=1, max_length=64)
    indicator: str = Field(..., min_length=1, max_length=64)
    value: int = Field(..., description="0 clears the rating; range is checked on apply")
    toggle: bool = Field(default=False, description="Clear the rating when re-selecting it")


class FeedbackInput(BaseValidationSchema):
    strengths: str = Field("", max_length=5000)
    improvements: str = Field("", max_length=5000)
    next_steps: str = Field("", max_length=5000)

    def to_feedback(self) -> Feedback:
        return Feedback(
            strengths=self.strengths,
            improvements=self.improvements,
            next_steps=self.next_steps,
        )


class AssessmentInput(BaseValidationSchema):
    """
    A submitted assessment.

    ``scores`` stays a raw nested mapping here; taxonomy keys and rating
    ranges are checked when it becomes a ``ScoreTree`` in ``to_assessment``.
    """

    id: str | None = Field(None, max_length=64)
    editing_id: str | None = Field(None, max_length=64)
    date: datetime | None = None
    scores: dict[str, Any] = Field(default_factory=dict)
    feedback: FeedbackInput = Field(default_factory=FeedbackInput)

    @field_validator("id", "editing_id")
    def blank_to_none(cls, v):
        if v is not None and len(v.strip()) == 0:
            return None
        return v

    def to_assessment(
        self,
        student_id: str,
        id_factory: IdFactory = generate_id,
        clock: Clock = utc_now,
    ) -> Assessment:
        """
        Raises:
            UnknownKeyError: If scores name a key outside the taxonomy
            InvalidRatingError: If a rating lies outside 0..5
            ValidationError: If scores are not nested mappings
        """
        try:
            scores = ScoreTree.model_validate(self.scores)
        except PydanticValidationError as e:
            raise ValidationError("scores", e.errors()[0]["msg"], self.scores) from e
        return Assessment(
            id=self.id or id_factory(),
            student_id=student_id,
            date=self.date or clock(),
            scores=scores,
            feedback=self.feedback.to_feedback(),
        )


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None
    model: BaseModel | None = Field(None, exclude=True)


def error_details(e: PydanticValidationError) -> list[ValidationErrorDetail]:
    """Flatten a pydantic error into one detail per failing field."""
    return [
        ValidationErrorDetail(
            field=".".join(str(x) for x in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in e.errors()
    ]


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Example:
        >>> result = validate_input(StudentCreationInput, {"name": "李明", "grade": "三年级"})
        >>> if result.success:
        ...     validated_data = result.data
        >>> else:
        ...     for error in result.errors:
        ...         print(f"Error in {error.field}: {error.message}")
    """
    try:
        validated = schema_class.model_validate(data)
        return ValidationResponse(success=True, data=validated.model_dump(), model=validated)
    except PydanticValidationError as e:
        return ValidationResponse(success=False, errors=error_details(e))
