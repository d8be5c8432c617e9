from datetime import UTC, datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from student_profiles.domain.models import (
    Assessment,
    ScoreTree,
    create_empty_assessment,
    parse_rating,
)
from student_profiles.infrastructure.exceptions import InvalidRatingError, UnknownKeyError


def test_parse_rating_valid():
    assert parse_rating(1) == 1
    assert parse_rating(5) == 5


def test_parse_rating_unrated():
    assert parse_rating(0) is None
    assert parse_rating(None) is None


@pytest.mark.parametrize("value", [-1, 6, 2.5, "3", True])
def test_parse_rating_out_of_range(value):
    with pytest.raises(InvalidRatingError):
        parse_rating(value)


def test_score_tree_is_always_complete():
    tree = ScoreTree.model_validate({"learningAbility": {"problemMastery": {"oneStar": 4}}})
    ratings = dict((path.dotted, rating) for path, rating in tree.iter_ratings())
    assert len(ratings) == 44
    assert ratings["learningAbility.problemMastery.oneStar"] == 4
    assert ratings["executionAbility.taskExecution.taskQuality"] is None


def test_score_tree_wire_form_uses_zero():
    dumped = ScoreTree.model_validate({}).model_dump()
    assert dumped["learningAbility"]["problemMastery"]["oneStar"] == 0
    assert set(dumped) == {
        "learningAbility",
        "timeEfficiency",
        "learningHabits",
        "executionAbility",
    }


@pytest.mark.parametrize(
    "scores",
    [
        {"bogus": {}},
        {"learningAbility": {"taskExecution": {}}},
        {"learningAbility": {"problemMastery": {"taskQuality": 3}}},
    ],
)
def test_score_tree_rejects_unknown_keys(scores):
    with pytest.raises(UnknownKeyError):
        ScoreTree.model_validate(scores)


def test_score_tree_rejects_bad_ratings():
    with pytest.raises(InvalidRatingError):
        ScoreTree.model_validate({"learningAbility": {"problemMastery": {"oneStar": 6}}})


@pytest.mark.parametrize(
    "scores",
    [
        {"learningAbility": 5},
        {"learningAbility": ["problemMastery"]},
        {"learningAbility": {"problemMastery": 5}},
        {"learningAbility": {"problemMastery": "oneStar"}},
    ],
)
def test_score_tree_rejects_non_mapping_levels(scores):
    with pytest.raises(PydanticValidationError):
        ScoreTree.model_validate(scores)


def test_rejected_edit_leaves_tree_unchanged():
    tree = ScoreTree.empty()
    tree.set("learningAbility", "problemMastery", "oneStar", 3)

    with pytest.raises(InvalidRatingError):
        tree.set("learningAbility", "problemMastery", "oneStar", 9)
    with pytest.raises(UnknownKeyError):
        tree.set("learningAbility", "problemMastery", "nope", 2)

    assert tree.get("learningAbility", "problemMastery", "oneStar") == 3


def test_toggle_and_clear():
    tree = ScoreTree.empty()
    assert tree.toggle("learningHabits", "toolUseHabits", "pomodoroUse", 4) == 4
    assert tree.toggle("learningHabits", "toolUseHabits", "pomodoroUse", 4) is None
    tree.set("learningHabits", "toolUseHabits", "pomodoroUse", 2)
    tree.clear("learningHabits", "toolUseHabits", "pomodoroUse")
    assert tree.get("learningHabits", "toolUseHabits", "pomodoroUse") is None


def test_read_only_views():
    tree = ScoreTree.empty()
    view = tree.sub_dimension("learningAbility", "problemMastery")
    with pytest.raises(TypeError):
        view["oneStar"] = 5  # type: ignore[index]
    assert len(tree.dimension("timeEfficiency")) == 3
    with pytest.raises(UnknownKeyError):
        tree.sub_dimension("learningAbility", "taskExecution")


def test_assessment_wire_format():
    assessment = Assessment.model_validate(
        {
            "id": "a1",
            "studentId": "s1",
            "date": "2024-03-01T09:30:00Z",
            "scores": {"learningAbility": {"problemMastery": {"oneStar": 5}}},
            "feedback": {"strengths": "认真", "nextSteps": "多练习"},
        }
    )
    assert assessment.student_id == "s1"
    assert assessment.feedback.next_steps == "多练习"

    wire = assessment.model_dump(by_alias=True, mode="json")
    assert wire["studentId"] == "s1"
    assert wire["feedback"]["nextSteps"] == "多练习"
    assert wire["scores"]["learningAbility"]["problemMastery"]["oneStar"] == 5
    assert wire["scores"]["learningAbility"]["problemMastery"]["twoStar"] == 0


def test_naive_dates_are_utc():
    assessment = Assessment(id="a1", student_id="s1", date=datetime(2024, 1, 1, 12))
    assert assessment.date.tzinfo is UTC


def test_create_empty_assessment():
    moment = datetime(2024, 5, 4, 8, tzinfo=UTC)
    draft = create_empty_assessment("s1", id_factory=lambda: "draft", clock=lambda: moment)
    assert draft.id == "draft"
    assert draft.date == moment
    assert all(rating is None for _, rating in draft.scores.iter_ratings())
    assert draft.feedback.strengths == ""
