from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator, Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    TypeAdapter,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..infrastructure.exceptions import InvalidRatingError, UnknownKeyError
from .taxonomy import (
    TAXONOMY,
    DimensionKey,
    IndicatorPath,
    SubDimensionKey,
    as_dimension,
    as_sub_dimension,
    resolve_path,
)

# None is "not evaluated"; 1..5 is a real rating. Only the wire format uses 0.
Rating = int | None

RATING_MIN = 1
RATING_MAX = 5

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


def generate_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_rating(value: Any) -> Rating:
    """Convert a wire value (0..5) into a Rating; 0 and None mean unrated."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRatingError(value)
    if value == 0:
        return None
    if RATING_MIN <= value <= RATING_MAX:
        return value
    raise InvalidRatingError(value)


def rating_to_wire(rating: Rating) -> int:
    return 0 if rating is None else rating


class ScoreTree(RootModel[dict[DimensionKey, dict[SubDimensionKey, dict[str, Rating]]]]):
    """
    Ratings for every indicator of the taxonomy, keyed dimension → sub-dimension → indicator.

    The tree always holds the complete taxonomy; indicators absent from the
    input are unrated. Unknown keys raise ``UnknownKeyError`` and values
    outside 0..5 raise ``InvalidRatingError``.
    """

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> dict[Any, Any]:
        if isinstance(data, ScoreTree):
            data = data.root
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError("scores must be a mapping of dimensions")

        for key in data:
            as_dimension(key)

        tree: dict[DimensionKey, dict[SubDimensionKey, dict[str, Rating]]] = {}
        for spec in TAXONOMY:
            raw_dim = data.get(spec.key) or {}
            if not isinstance(raw_dim, Mapping):
                raise ValueError(f"scores for {spec.key} must be a mapping of sub-dimensions")
            allowed_subs = {sub.key for sub in spec.sub_dimensions}
            for sub_key in raw_dim:
                if as_sub_dimension(sub_key) not in allowed_subs:
                    raise UnknownKeyError(
                        f"{spec.key}.{sub_key}", "sub-dimension of this dimension"
                    )

            dim_tree: dict[SubDimensionKey, dict[str, Rating]] = {}
            for sub in spec.sub_dimensions:
                raw_sub = raw_dim.get(sub.key) or {}
                if not isinstance(raw_sub, Mapping):
                    raise ValueError(
                        f"scores for {spec.key}.{sub.key} must be a mapping of indicators"
                    )
                for indicator in raw_sub:
                    if indicator not in sub.indicators:
                        raise UnknownKeyError(
                            f"{spec.key}.{sub.key}.{indicator}", "indicator of this sub-dimension"
                        )
                dim_tree[sub.key] = {
                    indicator: parse_rating(raw_sub.get(indicator)) for indicator in sub.indicators
                }
            tree[spec.key] = dim_tree
        return tree

    @model_serializer(mode="plain")
    def _to_wire(self) -> dict[str, dict[str, dict[str, int]]]:
        return {
            str(dim): {
                str(sub): {ind: rating_to_wire(value) for ind, value in indicators.items()}
                for sub, indicators in subs.items()
            }
            for dim, subs in self.root.items()
        }

    @classmethod
    def empty(cls) -> ScoreTree:
        return cls({})

    # ----- accessors -----

    def get(self, dimension: str, sub_dimension: str, indicator: str) -> Rating:
        path = resolve_path(dimension, sub_dimension, indicator)
        return self.root[path.dimension][path.sub_dimension][path.indicator]

    def set(self, dimension: str, sub_dimension: str, indicator: str, value: int) -> Rating:
        """Apply a raw 0..5 edit in place. The tree is untouched if the edit is rejected."""
        path = resolve_path(dimension, sub_dimension, indicator)
        rating = parse_rating(value)
        self.root[path.dimension][path.sub_dimension][path.indicator] = rating
        return rating

    def toggle(self, dimension: str, sub_dimension: str, indicator: str, value: int) -> Rating:
        """Set a rating, or clear it when the same value is chosen again."""
        current = self.get(dimension, sub_dimension, indicator)
        if parse_rating(value) == current:
            return self.set(dimension, sub_dimension, indicator, 0)
        return self.set(dimension, sub_dimension, indicator, value)

    def clear(self, dimension: str, sub_dimension: str, indicator: str) -> None:
        self.set(dimension, sub_dimension, indicator, 0)

    def dimension(self, dimension: str) -> Mapping[SubDimensionKey, Mapping[str, Rating]]:
        dim = as_dimension(dimension)
        return MappingProxyType(
            {sub: MappingProxyType(values) for sub, values in self.root[dim].items()}
        )

    def sub_dimension(self, dimension: str, sub_dimension: str) -> Mapping[str, Rating]:
        dim = as_dimension(dimension)
        sub = as_sub_dimension(sub_dimension)
        try:
            return MappingProxyType(self.root[dim][sub])
        except KeyError:
            raise UnknownKeyError(
                f"{dimension}.{sub_dimension}", "sub-dimension of this dimension"
            ) from None

    def iter_ratings(self) -> Iterator[tuple[IndicatorPath, Rating]]:
        for dim, subs in self.root.items():
            for sub, values in subs.items():
                for indicator, rating in values.items():
                    yield IndicatorPath(dim, sub, indicator), rating


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Feedback(_WireModel):
    strengths: str = ""
    improvements: str = ""
    next_steps: str = ""


class Assessment(_WireModel):
    id: str
    student_id: str
    date: datetime
    scores: ScoreTree = Field(default_factory=ScoreTree.empty)
    feedback: Feedback = Field(default_factory=Feedback)

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def overwrite_from(self, other: Assessment) -> None:
        """Take date, scores and feedback from ``other``; id and owner stay."""
        self.date = other.date
        self.scores = other.scores.model_copy(deep=True)
        self.feedback = other.feedback.model_copy()


class Student(_WireModel):
    id: str
    name: str
    grade: str
    created_at: datetime
    assessments: list[Assessment] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


STUDENTS_ADAPTER = TypeAdapter(list[Student])


def create_empty_assessment(
    student_id: str,
    id_factory: IdFactory = generate_id,
    clock: Clock = utc_now,
) -> Assessment:
    """A fresh assessment for today: every indicator unrated, feedback blank."""
    return Assessment(id=id_factory(), student_id=student_id, date=clock())
