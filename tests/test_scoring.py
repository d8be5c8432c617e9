import pytest

from student_profiles.domain.models import ScoreTree
from student_profiles.domain.scoring import (
    average_dimension,
    average_overall,
    average_sub_dimension,
    coverage,
    dimension_averages,
    sub_dimension_averages,
    summarise,
    unevaluated_indicators,
)
from student_profiles.domain.taxonomy import DimensionKey, SubDimensionKey


def build_tree():
    tree = ScoreTree.empty()
    tree.set("learningAbility", "problemMastery", "oneStar", 5)
    tree.set("learningAbility", "problemMastery", "threeStar", 3)
    tree.set("learningAbility", "selfLearning", "selfUnderstandingRatio", 2)
    tree.set("timeEfficiency", "attentionManagement", "focusDuration", 1)
    return tree


def test_sub_dimension_average_ignores_zero():
    values = {"oneStar": 5, "twoStar": 0, "threeStar": 3, "fourStar": 0}
    assert average_sub_dimension(values) == 4.0


def test_sub_dimension_average_ignores_unrated():
    assert average_sub_dimension({"oneStar": None, "twoStar": 4}) == 4.0


def test_averages_are_total():
    assert average_sub_dimension({}) == 0.0
    assert average_sub_dimension({"oneStar": 0, "twoStar": None}) == 0.0
    assert average_dimension({}) == 0.0
    assert average_overall({}) == 0.0
    assert average_overall(ScoreTree.empty()) == 0.0


def test_dimension_average_skips_unrated_sub_dimensions():
    scores = {"problemMastery": {"oneStar": 4}, "selfLearning": {"selfUnderstandingRatio": 0}}
    assert average_dimension(scores) == 4.0


def test_overall_average_over_rated_dimensions():
    tree = build_tree()
    # learningAbility: mean(4.0, 2.0) = 3.0; timeEfficiency: 1.0
    assert dimension_averages(tree)[DimensionKey.LEARNING_ABILITY] == 3.0
    assert dimension_averages(tree)[DimensionKey.TIME_EFFICIENCY] == 1.0
    assert dimension_averages(tree)[DimensionKey.LEARNING_HABITS] == 0.0
    assert average_overall(tree) == 2.0


def test_overall_average_is_order_invariant():
    forward = {
        "learningAbility": {
            "problemMastery": {"oneStar": 5, "twoStar": 4, "threeStar": 4},
            "thinkingAbility": {"structuredThinking": 1, "knowledgeTransfer": 2},
        },
        "timeEfficiency": {"attentionManagement": {"focusDuration": 3, "goalClarity": 5}},
        "executionAbility": {"taskExecution": {"taskQuality": 1, "taskInitiative": 4}},
    }
    backward = {
        dim: {sub: dict(reversed(list(v.items()))) for sub, v in reversed(list(subs.items()))}
        for dim, subs in reversed(list(forward.items()))
    }
    assert average_overall(forward) == average_overall(backward)
    assert average_overall(ScoreTree.model_validate(forward)) == average_overall(backward)


def test_raw_wire_mapping_is_accepted():
    raw = {"learningAbility": {"problemMastery": {"oneStar": 5, "twoStar": 0}}}
    averages = dimension_averages(raw)
    assert averages[DimensionKey.LEARNING_ABILITY] == 5.0
    assert averages[DimensionKey.EXECUTION_ABILITY] == 0.0


def test_sub_dimension_averages_in_taxonomy_order():
    result = sub_dimension_averages(build_tree(), "learningAbility")
    assert list(result) == [
        SubDimensionKey.PROBLEM_MASTERY,
        SubDimensionKey.SELF_LEARNING,
        SubDimensionKey.THINKING_ABILITY,
        SubDimensionKey.META_LEARNING,
    ]
    assert result[SubDimensionKey.PROBLEM_MASTERY] == 4.0
    assert result[SubDimensionKey.META_LEARNING] == 0.0


def test_coverage_and_unevaluated():
    tree = build_tree()
    assert coverage(tree) == pytest.approx(4 / 44)
    missing = unevaluated_indicators(tree)
    assert len(missing) == 40
    assert missing[0].dotted == "learningAbility.problemMastery.twoStar"


def test_summarise_bundles_every_level():
    summary = summarise(build_tree())

    assert summary.overall == 2.0
    assert summary.coverage == pytest.approx(4 / 44)
    assert [r.key for r in summary.dimensions] == [
        "learningAbility",
        "timeEfficiency",
        "learningHabits",
        "executionAbility",
    ]
    assert len(summary.sub_dimensions) == 13
    learning = summary.dimensions[0]
    assert learning.label == "学习能力"
    assert learning.average == 3.0
    assert learning.coverage == pytest.approx(3 / 17)
    mastery = summary.sub_dimensions[0]
    assert mastery.average == 4.0
    assert mastery.coverage == pytest.approx(2 / 8)
    assert len(summary.unevaluated) == 40
