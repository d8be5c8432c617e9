from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime
from itertools import count

import pytest

from student_profiles.domain.models import Assessment, ScoreTree
from student_profiles.infrastructure.exceptions import (
    AssessmentNotFoundError,
    StoreWriteError,
    StudentNotFoundError,
    ValidationError,
)
from student_profiles.infrastructure.repository import StudentRepository
from student_profiles.infrastructure.store import InMemoryStudentStore


class FailingStore(InMemoryStudentStore):
    def save(self, students):
        raise StoreWriteError("disk full", "save")


def id_sequence(prefix: str = "id"):
    counter = count(1)
    return lambda: f"{prefix}{next(counter)}"


def make(assessment_id: str, student_id: str, day: int, rating: int = 3) -> Assessment:
    return Assessment(
        id=assessment_id,
        student_id=student_id,
        date=datetime(2024, 1, day, 10, tzinfo=UTC),
        scores=ScoreTree.model_validate(
            {"timeEfficiency": {"attentionManagement": {"focusDuration": rating}}}
        ),
    )


@pytest.fixture
def store() -> InMemoryStudentStore:
    return InMemoryStudentStore()


@pytest.fixture
def repo(store) -> StudentRepository:
    return StudentRepository(
        store,
        id_factory=id_sequence(),
        clock=lambda: datetime(2024, 1, 1, 8, tzinfo=UTC),
    )


class TestStudents:
    """Student lifecycle."""

    def test_add_student_trims_and_persists(self, repo, store):
        student = repo.add_student("  李明 ", " 三年级")

        assert student.id == "id1"
        assert student.name == "李明"
        assert student.grade == "三年级"
        assert store.save_count == 1
        assert [s.id for s in store.load()] == ["id1"]

    @pytest.mark.parametrize("name, grade", [("", "三年级"), ("李明", "   ")])
    def test_add_student_requires_name_and_grade(self, repo, store, name, grade):
        with pytest.raises(ValidationError):
            repo.add_student(name, grade)
        assert repo.list_students() == []
        assert store.save_count == 0

    def test_get_unknown_student(self, repo):
        with pytest.raises(StudentNotFoundError):
            repo.get_student("missing")

    def test_remove_cascades_only_to_own_assessments(self, repo):
        first = repo.add_student("A", "1")
        second = repo.add_student("B", "2")
        repo.upsert(first.id, make("x1", first.id, 1))
        repo.upsert(second.id, make("y1", second.id, 1))
        repo.upsert(second.id, make("y2", second.id, 2))

        repo.remove(first.id)

        assert [s.id for s in repo.list_students()] == [second.id]
        assert [a.id for a in repo.assessments(second.id)] == ["y1", "y2"]
        with pytest.raises(StudentNotFoundError):
            repo.assessments(first.id)

    def test_remove_unknown_student_leaves_collection(self, repo, store):
        repo.add_student("A", "1")
        with pytest.raises(StudentNotFoundError):
            repo.remove("missing")
        assert len(repo.list_students()) == 1
        assert store.save_count == 1

    def test_returned_students_are_copies(self, repo):
        student = repo.add_student("A", "1")
        student.name = "changed"
        assert repo.get_student(student.id).name == "A"


class TestAssessments:
    """Assessment queries and the persisted upsert."""

    def test_upsert_same_day_merges(self, repo, store):
        student = repo.add_student("A", "1")
        first = repo.upsert(student.id, make("a1", student.id, 5, rating=2))
        second = repo.upsert(student.id, make("a2", student.id, 5, rating=4))

        assert first.id == second.id == "a1"
        stored = repo.assessments(student.id)
        assert len(stored) == 1
        assert stored[0].scores.get("timeEfficiency", "attentionManagement", "focusDuration") == 4
        assert store.save_count == 3

    def test_concurrent_upserts_keep_every_day(self, repo, store):
        student = repo.add_student("A", "1")
        records = [make(f"a{day}", student.id, day) for day in range(1, 29)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda a: repo.upsert(student.id, a), records))

        assert len(repo.assessments(student.id)) == 28
        assert len(store.load()[0].assessments) == 28

    def test_upsert_unknown_student(self, repo):
        with pytest.raises(StudentNotFoundError):
            repo.upsert("missing", make("a1", "missing", 1))

    def test_upsert_assigns_owner(self, repo):
        student = repo.add_student("A", "1")
        saved = repo.upsert(student.id, make("a1", "someone-else", 1))
        assert saved.student_id == student.id

    def test_queries(self, repo):
        student = repo.add_student("A", "1")
        for aid, day in [("a3", 3), ("a1", 1), ("a2", 2)]:
            repo.upsert(student.id, make(aid, student.id, day))

        assert repo.latest(student.id).id == "a3"
        assert [a.id for a in repo.most_recent(student.id, 2)] == ["a3", "a2"]
        assert repo.most_recent(student.id, 0) == []
        assert repo.get_assessment(student.id, "a2").date.day == 2
        assert repo.find_by_date(student.id, date(2024, 1, 1)).id == "a1"
        assert repo.find_by_date(student.id, date(2024, 1, 9)) is None
        assert repo.unique_assessment_dates(student.id) == 3

        with pytest.raises(AssessmentNotFoundError):
            repo.get_assessment(student.id, "missing")

    def test_latest_without_assessments(self, repo):
        student = repo.add_student("A", "1")
        assert repo.latest(student.id) is None
        assert repo.unique_assessment_dates(student.id) == 0

    def test_collection_survives_reload(self, store):
        repo = StudentRepository(store, id_factory=id_sequence())
        student = repo.add_student("A", "1")
        repo.upsert(student.id, make("a1", student.id, 1))

        reloaded = StudentRepository(store)
        assert [a.id for a in reloaded.assessments(student.id)] == ["a1"]


class TestStoreFailures:
    """Write failures surface while the in-memory collection keeps the change."""

    def test_add_student_keeps_change_on_write_failure(self):
        repo = StudentRepository(FailingStore(), id_factory=id_sequence())

        with pytest.raises(StoreWriteError):
            repo.add_student("A", "1")

        assert [s.name for s in repo.list_students()] == ["A"]

    def test_upsert_keeps_change_on_write_failure(self):
        store = FailingStore()
        repo = StudentRepository(store, id_factory=id_sequence())
        with pytest.raises(StoreWriteError):
            repo.add_student("A", "1")

        with pytest.raises(StoreWriteError):
            repo.upsert("id1", make("a1", "id1", 1))
        assert [a.id for a in repo.assessments("id1")] == ["a1"]
