from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .models import Rating, ScoreTree
from .taxonomy import (
    TAXONOMY,
    DimensionKey,
    IndicatorPath,
    SubDimensionKey,
    as_dimension,
    iter_indicator_paths,
    label,
)


def _is_rated(value: Rating | float) -> bool:
    return value is not None and value > 0


def _mean_of_rated(values: Iterable[Rating | float]) -> float:
    """
    Mean of the rated values only; 0.0 for an empty selection.

    ``math.fsum`` keeps the result independent of iteration order.
    """
    rated = [float(v) for v in values if _is_rated(v)]
    if not rated:
        return 0.0
    return math.fsum(rated) / len(rated)


def _tree(scores: ScoreTree | Mapping[str, Any]) -> Mapping[str, Any]:
    return scores.root if isinstance(scores, ScoreTree) else scores


def average_sub_dimension(values: Mapping[str, Rating]) -> float:
    """
    Mean of the indicator ratings greater than zero.

    Example:
        >>> average_sub_dimension({"oneStar": 5, "twoStar": 0, "threeStar": 3, "fourStar": 0})
        4.0
    """
    return _mean_of_rated(values.values())


def average_dimension(dimension_scores: Mapping[str, Mapping[str, Rating]]) -> float:
    """
    Mean of the sub-dimension averages, skipping sub-dimensions with nothing rated.
    """
    return _mean_of_rated(average_sub_dimension(sub) for sub in dimension_scores.values())


def average_overall(scores: ScoreTree | Mapping[str, Any]) -> float:
    """
    Mean of the dimension averages, skipping dimensions with nothing rated.
    """
    return _mean_of_rated(average_dimension(dim) for dim in _tree(scores).values())


def dimension_averages(scores: ScoreTree | Mapping[str, Any]) -> dict[DimensionKey, float]:
    tree = _tree(scores)
    return {spec.key: average_dimension(tree.get(spec.key, {})) for spec in TAXONOMY}


def sub_dimension_averages(
    scores: ScoreTree | Mapping[str, Any], dimension: str
) -> dict[SubDimensionKey, float]:
    """Per sub-dimension averages of one dimension, in taxonomy order."""
    dim = as_dimension(dimension)
    dim_scores = _tree(scores).get(dim, {})
    spec = next(spec for spec in TAXONOMY if spec.key is dim)
    return {
        sub.key: average_sub_dimension(dim_scores.get(sub.key, {})) for sub in spec.sub_dimensions
    }


def unevaluated_indicators(scores: ScoreTree) -> list[IndicatorPath]:
    """Every indicator still unrated, in taxonomy order."""
    return [path for path, rating in scores.iter_ratings() if not _is_rated(rating)]


def coverage(scores: ScoreTree) -> float:
    """Share of taxonomy indicators that carry a rating (0..1)."""
    total = sum(1 for _ in iter_indicator_paths())
    rated = sum(1 for _, rating in scores.iter_ratings() if _is_rated(rating))
    return rated / total if total else 0.0


@dataclass(slots=True)
class AverageResult:
    key: str
    label: str
    average: float  # 0.0 if nothing rated
    coverage: float  # 0..1 proportion of indicators rated


@dataclass(slots=True)
class ScoreSummary:
    overall: float
    coverage: float
    dimensions: list[AverageResult] = field(default_factory=list)
    sub_dimensions: list[AverageResult] = field(default_factory=list)
    unevaluated: list[IndicatorPath] = field(default_factory=list)


def summarise(scores: ScoreTree) -> ScoreSummary:
    """
    Everything the assessment detail view shows for one score tree.

    - dimension and sub-dimension averages follow the zero-skipping rules above
    - coverage at each level is rated indicators / indicators in that node
    - unevaluated lists the remaining unrated indicator paths
    """
    dimensions: list[AverageResult] = []
    subs: list[AverageResult] = []

    for spec in TAXONOMY:
        dim_scores = scores.root[spec.key]
        dim_rated = dim_total = 0
        for sub in spec.sub_dimensions:
            values = dim_scores[sub.key]
            rated = sum(1 for v in values.values() if _is_rated(v))
            dim_rated += rated
            dim_total += len(values)
            subs.append(
                AverageResult(
                    sub.key,
                    label(sub.key),
                    average_sub_dimension(values),
                    rated / len(values) if values else 0.0,
                )
            )
        dimensions.append(
            AverageResult(
                spec.key,
                label(spec.key),
                average_dimension(dim_scores),
                dim_rated / dim_total if dim_total else 0.0,
            )
        )

    return ScoreSummary(
        overall=average_overall(scores),
        coverage=coverage(scores),
        dimensions=dimensions,
        sub_dimensions=subs,
        unevaluated=unevaluated_indicators(scores),
    )
