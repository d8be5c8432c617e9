"""
The fixed competency taxonomy: four dimensions, thirteen sub-dimensions and
their indicators, with display labels.

The registry is a module-level immutable constant. Every lookup is pure and
raises ``UnknownKeyError`` for keys outside the enumeration.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import NamedTuple

from ..infrastructure.exceptions import UnknownKeyError


class DimensionKey(StrEnum):
    LEARNING_ABILITY = "learningAbility"
    TIME_EFFICIENCY = "timeEfficiency"
    LEARNING_HABITS = "learningHabits"
    EXECUTION_ABILITY = "executionAbility"


class SubDimensionKey(StrEnum):
    PROBLEM_MASTERY = "problemMastery"
    SELF_LEARNING = "selfLearning"
    THINKING_ABILITY = "thinkingAbility"
    META_LEARNING = "metaLearning"
    PROBLEM_SOLVING_EFFICIENCY = "problemSolvingEfficiency"
    MISTAKE_OVERCOMING_EFFICIENCY = "mistakeOvercomingEfficiency"
    ATTENTION_MANAGEMENT = "attentionManagement"
    PROACTIVE_HABITS = "proactiveHabits"
    TOOL_USE_HABITS = "toolUseHabits"
    SYSTEMATIC_LEARNING = "systematicLearning"
    TASK_EXECUTION = "taskExecution"
    COACH_INTERACTION = "coachInteraction"
    MENTALITY_MANAGEMENT = "mentalityManagement"


@dataclass(frozen=True, slots=True)
class SubDimensionSpec:
    key: SubDimensionKey
    label: str
    indicators: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DimensionSpec:
    key: DimensionKey
    label: str
    sub_dimensions: tuple[SubDimensionSpec, ...]


class IndicatorPath(NamedTuple):
    dimension: DimensionKey
    sub_dimension: SubDimensionKey
    indicator: str

    @property
    def dotted(self) -> str:
        return f"{self.dimension}.{self.sub_dimension}.{self.indicator}"

    @property
    def label(self) -> str:
        return " - ".join(
            (label(self.dimension), label(self.sub_dimension), label(self.indicator))
        )


TAXONOMY: tuple[DimensionSpec, ...] = (
    DimensionSpec(
        DimensionKey.LEARNING_ABILITY,
        "学习能力",
        (
            SubDimensionSpec(
                SubDimensionKey.PROBLEM_MASTERY,
                "题目掌握度",
                (
                    "oneStar",
                    "twoStar",
                    "threeStar",
                    "fourStar",
                    "oneStarSimilar",
                    "twoStarSimilar",
                    "threeStarSimilar",
                    "fourStarSimilar",
                ),
            ),
            SubDimensionSpec(
                SubDimensionKey.SELF_LEARNING,
                "错题自学能力",
                (
                    "selfUnderstandingRatio",
                    "explainToCoachRatio",
                    "initiativeWhenFacingDifficulties",
                ),
            ),
            SubDimensionSpec(
                SubDimensionKey.THINKING_ABILITY,
                "思维能力",
                ("structuredThinking", "selfBottleneckIdentification", "knowledgeTransfer"),
            ),
            SubDimensionSpec(
                SubDimensionKey.META_LEARNING,
                "学习元能力",
                ("problemDescriptionAccuracy", "aiToolUtilization", "selfReflection"),
            ),
        ),
    ),
    DimensionSpec(
        DimensionKey.TIME_EFFICIENCY,
        "时间利用效率",
        (
            SubDimensionSpec(
                SubDimensionKey.PROBLEM_SOLVING_EFFICIENCY,
                "做题效率",
                (
                    "oneStarTimeEfficiency",
                    "twoStarTimeEfficiency",
                    "threeStarTimeEfficiency",
                    "fourStarTimeEfficiency",
                ),
            ),
            SubDimensionSpec(
                SubDimensionKey.MISTAKE_OVERCOMING_EFFICIENCY,
                "错题攻克效率",
                ("selfLearningSpeed", "pomodoroEfficiency"),
            ),
            SubDimensionSpec(
                SubDimensionKey.ATTENTION_MANAGEMENT,
                "注意力管理",
                ("focusDuration", "distractionHandling", "goalClarity"),
            ),
        ),
    ),
    DimensionSpec(
        DimensionKey.LEARNING_HABITS,
        "学习习惯",
        (
            SubDimensionSpec(
                SubDimensionKey.PROACTIVE_HABITS,
                "主动学习习惯",
                ("activeQuestioning", "dualNoteMethod", "reviewHabits"),
            ),
            SubDimensionSpec(
                SubDimensionKey.TOOL_USE_HABITS,
                "工具使用习惯",
                ("aiToolQuestioning", "pomodoroUse", "mistakeCollection"),
            ),
            SubDimensionSpec(
                SubDimensionKey.SYSTEMATIC_LEARNING,
                "学习系统性",
                ("knowledgeIntegration", "keyPointAwareness", "selfTesting"),
            ),
        ),
    ),
    DimensionSpec(
        DimensionKey.EXECUTION_ABILITY,
        "配合执行力",
        (
            SubDimensionSpec(
                SubDimensionKey.TASK_EXECUTION,
                "任务执行",
                ("taskCompletionRate", "taskQuality", "taskInitiative"),
            ),
            SubDimensionSpec(
                SubDimensionKey.COACH_INTERACTION,
                "教练互动",
                ("proactiveCommunication", "feedbackReceptivity", "guidanceImplementation"),
            ),
            SubDimensionSpec(
                SubDimensionKey.MENTALITY_MANAGEMENT,
                "心态管理",
                (
                    "positivityTowardsChallenges",
                    "frustrationHandling",
                    "motivationSustainability",
                ),
            ),
        ),
    ),
)

INDICATOR_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "oneStar": "1⭐题正确率",
        "twoStar": "2⭐题正确率",
        "threeStar": "3⭐题正确率",
        "fourStar": "4⭐题正确率",
        "oneStarSimilar": "1⭐相似题正确率",
        "twoStarSimilar": "2⭐相似题正确率",
        "threeStarSimilar": "3⭐相似题正确率",
        "fourStarSimilar": "4⭐相似题正确率",
        "selfUnderstandingRatio": "自学理解比例",
        "explainToCoachRatio": "能向教练清晰讲解比例",
        "initiativeWhenFacingDifficulties": "遇到困难主动寻求解决的积极性",
        "structuredThinking": "解题思路结构化能力",
        "selfBottleneckIdentification": "自我卡点定位能力",
        "knowledgeTransfer": "知识点联系与迁移能力",
        "problemDescriptionAccuracy": "问题精确描述能力",
        "aiToolUtilization": "AI工具有效利用能力",
        "selfReflection": "自我反思总结能力",
        "oneStarTimeEfficiency": "1⭐题平均完成时间效率",
        "twoStarTimeEfficiency": "2⭐题平均完成时间效率",
        "threeStarTimeEfficiency": "3⭐题平均完成时间效率",
        "fourStarTimeEfficiency": "4⭐题平均完成时间效率",
        "selfLearningSpeed": "错题自学理解速度",
        "pomodoroEfficiency": "番茄钟利用效率",
        "focusDuration": "专注持续时间",
        "distractionHandling": "学习过程中干扰应对能力",
        "goalClarity": "目标明确度",
        "activeQuestioning": "主动提问解决问题习惯",
        "dualNoteMethod": "使用双格笔记法记录知识点和困惑的习惯",
        "reviewHabits": "课前预习/课后复习习惯",
        "aiToolQuestioning": "AI工具有效提问习惯",
        "pomodoroUse": "合理运用番茄钟习惯",
        "mistakeCollection": "错题收集整理习惯",
        "knowledgeIntegration": "知识整合与复习习惯",
        "keyPointAwareness": "考点关联意识习惯",
        "selfTesting": "自我检验习惯",
        "taskCompletionRate": "任务完成度",
        "taskQuality": "任务质量",
        "taskInitiative": "任务主动性",
        "proactiveCommunication": "主动沟通频率",
        "feedbackReceptivity": "反馈接受度",
        "guidanceImplementation": "指导落实度",
        "positivityTowardsChallenges": "面对挑战积极性",
        "frustrationHandling": "挫折应对能力",
        "motivationSustainability": "学习动力持续性",
    }
)

# Lookup tables derived once from TAXONOMY
_DIMENSIONS: Mapping[DimensionKey, DimensionSpec] = MappingProxyType(
    {spec.key: spec for spec in TAXONOMY}
)
_SUB_DIMENSIONS: Mapping[SubDimensionKey, SubDimensionSpec] = MappingProxyType(
    {sub.key: sub for spec in TAXONOMY for sub in spec.sub_dimensions}
)
_PARENT_DIMENSION: Mapping[SubDimensionKey, DimensionKey] = MappingProxyType(
    {sub.key: spec.key for spec in TAXONOMY for sub in spec.sub_dimensions}
)
_PARENT_SUB_DIMENSION: Mapping[str, SubDimensionKey] = MappingProxyType(
    {ind: sub.key for spec in TAXONOMY for sub in spec.sub_dimensions for ind in sub.indicators}
)
_SUB_DIMENSION_ORDER: tuple[tuple[DimensionKey, SubDimensionKey], ...] = tuple(
    (spec.key, sub.key) for spec in TAXONOMY for sub in spec.sub_dimensions
)


def as_dimension(key: str) -> DimensionKey:
    try:
        return DimensionKey(key)
    except ValueError:
        raise UnknownKeyError(key, "dimension") from None


def as_sub_dimension(key: str) -> SubDimensionKey:
    try:
        return SubDimensionKey(key)
    except ValueError:
        raise UnknownKeyError(key, "sub-dimension") from None


def dimension_keys() -> tuple[DimensionKey, ...]:
    return tuple(spec.key for spec in TAXONOMY)


def sub_dimensions(dimension: str) -> tuple[SubDimensionKey, ...]:
    """Ordered sub-dimension keys of a dimension."""
    spec = _DIMENSIONS[as_dimension(dimension)]
    return tuple(sub.key for sub in spec.sub_dimensions)


def indicators(sub_dimension: str) -> tuple[str, ...]:
    """Ordered indicator keys of a sub-dimension."""
    return _SUB_DIMENSIONS[as_sub_dimension(sub_dimension)].indicators


def dimension_of(sub_dimension: str) -> DimensionKey:
    return _PARENT_DIMENSION[as_sub_dimension(sub_dimension)]


def sub_dimension_of(indicator: str) -> SubDimensionKey:
    try:
        return _PARENT_SUB_DIMENSION[indicator]
    except KeyError:
        raise UnknownKeyError(indicator, "indicator") from None


def label(key: str) -> str:
    """Human-readable label for a dimension, sub-dimension or indicator key."""
    if key in _DIMENSIONS:
        return _DIMENSIONS[DimensionKey(key)].label
    if key in _SUB_DIMENSIONS:
        return _SUB_DIMENSIONS[SubDimensionKey(key)].label
    if key in INDICATOR_LABELS:
        return INDICATOR_LABELS[key]
    raise UnknownKeyError(key)


def resolve_path(dimension: str, sub_dimension: str, indicator: str) -> IndicatorPath:
    """
    Validate a (dimension, sub-dimension, indicator) triple against the taxonomy.

    Raises:
        UnknownKeyError: If any key is unknown or does not belong to its parent
    """
    dim = as_dimension(dimension)
    sub = as_sub_dimension(sub_dimension)
    if _PARENT_DIMENSION[sub] is not dim:
        raise UnknownKeyError(f"{dimension}.{sub_dimension}", "sub-dimension of this dimension")
    if indicator not in _SUB_DIMENSIONS[sub].indicators:
        raise UnknownKeyError(
            f"{dimension}.{sub_dimension}.{indicator}", "indicator of this sub-dimension"
        )
    return IndicatorPath(dim, sub, indicator)


def iter_indicator_paths() -> Iterator[IndicatorPath]:
    """All indicator paths in taxonomy order."""
    for spec in TAXONOMY:
        for sub in spec.sub_dimensions:
            for ind in sub.indicators:
                yield IndicatorPath(spec.key, sub.key, ind)


def _position(dimension: str, sub_dimension: str) -> int:
    path = (as_dimension(dimension), as_sub_dimension(sub_dimension))
    try:
        return _SUB_DIMENSION_ORDER.index(path)
    except ValueError:
        raise UnknownKeyError(
            f"{dimension}.{sub_dimension}", "sub-dimension of this dimension"
        ) from None


def next_sub_dimension(
    dimension: str, sub_dimension: str
) -> tuple[DimensionKey, SubDimensionKey] | None:
    """The following sub-dimension in form order, crossing dimension boundaries."""
    index = _position(dimension, sub_dimension)
    if index + 1 >= len(_SUB_DIMENSION_ORDER):
        return None
    return _SUB_DIMENSION_ORDER[index + 1]


def previous_sub_dimension(
    dimension: str, sub_dimension: str
) -> tuple[DimensionKey, SubDimensionKey] | None:
    index = _position(dimension, sub_dimension)
    if index == 0:
        return None
    return _SUB_DIMENSION_ORDER[index - 1]


def progress(dimension: str, sub_dimension: str) -> tuple[int, int]:
    """1-based position of a sub-dimension among all sub-dimensions, and the total."""
    return _position(dimension, sub_dimension) + 1, len(_SUB_DIMENSION_ORDER)
