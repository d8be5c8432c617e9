import json
from datetime import UTC, datetime

import pytest

from student_profiles.domain.models import Assessment, ScoreTree, Student
from student_profiles.infrastructure.config import StoreConfig
from student_profiles.infrastructure.db import (
    build_store,
    create_database_engine,
    create_session_factory,
    initialise_database,
)
from student_profiles.infrastructure.exceptions import StoreWriteError
from student_profiles.infrastructure.models import Base, KeyValueORM
from student_profiles.infrastructure.repository import StudentRepository
from student_profiles.infrastructure.store import InMemoryStudentStore, SqlStudentStore


def sample_students() -> list[Student]:
    student = Student(
        id="s1",
        name="李明",
        grade="三年级",
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        assessments=[
            Assessment(
                id="a1",
                student_id="s1",
                date=datetime(2024, 2, 1, 9, tzinfo=UTC),
                scores=ScoreTree.model_validate(
                    {"learningAbility": {"problemMastery": {"oneStar": 4}}}
                ),
            )
        ],
    )
    return [student]


@pytest.fixture
def engine():
    engine = create_database_engine(StoreConfig(sqlite_path=":memory:"))
    initialise_database(engine)
    return engine


@pytest.fixture
def sql_store(engine) -> SqlStudentStore:
    return SqlStudentStore(create_session_factory(engine), storage_key="studentProfiles")


class TestInMemoryStore:
    """Process-local store behaviour."""

    def test_round_trip(self):
        store = InMemoryStudentStore()
        assert store.load() == []
        store.save(sample_students())
        assert [s.model_dump() for s in store.load()] == [
            s.model_dump() for s in sample_students()
        ]
        assert store.save_count == 1

    def test_copies_are_isolated(self):
        store = InMemoryStudentStore(sample_students())
        loaded = store.load()
        loaded[0].name = "changed"
        loaded[0].assessments.clear()

        fresh = store.load()
        assert fresh[0].name == "李明"
        assert len(fresh[0].assessments) == 1


class TestSqlStore:
    """Key-value blob persistence through SQLAlchemy."""

    def test_missing_row_loads_empty(self, sql_store):
        assert sql_store.load() == []

    def test_round_trip(self, sql_store):
        sql_store.save(sample_students())
        loaded = sql_store.load()

        assert len(loaded) == 1
        assert loaded[0].name == "李明"
        assessment = loaded[0].assessments[0]
        assert assessment.scores.get("learningAbility", "problemMastery", "oneStar") == 4
        assert assessment.date == datetime(2024, 2, 1, 9, tzinfo=UTC)

    def test_save_replaces_document(self, sql_store):
        sql_store.save(sample_students())
        sql_store.save([])
        assert sql_store.load() == []

    def test_stored_document_uses_wire_format(self, sql_store):
        sql_store.save(sample_students())
        with sql_store.transaction() as s:
            raw = s.get(KeyValueORM, "studentProfiles").value

        document = json.loads(raw)
        assert document[0]["createdAt"].startswith("2024-01-01T00:00:00")
        assert document[0]["assessments"][0]["studentId"] == "s1"
        assert document[0]["assessments"][0]["scores"]["learningAbility"]["problemMastery"][
            "twoStar"
        ] == 0

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            '{"id": "s1"}',
            '[{"id": "s1", "name": "n", "grade": "g", "createdAt": "2024-01-01T00:00:00Z",'
            ' "assessments": [{"id": "a", "studentId": "s1", "date": "2024-01-01T00:00:00Z",'
            ' "scores": {"bogus": {}}}]}]',
            '[{"id": "s1", "name": "n", "grade": "g", "createdAt": "2024-01-01T00:00:00Z",'
            ' "assessments": [{"id": "a", "studentId": "s1", "date": "2024-01-01T00:00:00Z",'
            ' "scores": {"learningAbility": {"problemMastery": 5}}}]}]',
            '[{"id": "s1", "name": "n", "grade": "g", "createdAt": "2024-01-01T00:00:00Z",'
            ' "assessments": [{"id": "a", "studentId": "s1", "date": "2024-01-01T00:00:00Z",'
            ' "scores": {"learningAbility": [1, 2]}}]}]',
        ],
    )
    def test_corrupt_document_loads_empty(self, sql_store, raw):
        with sql_store.transaction() as s:
            s.add(KeyValueORM(key="studentProfiles", value=raw))
        assert sql_store.load() == []

    def test_repository_starts_empty_over_malformed_scores(self, sql_store):
        raw = (
            '[{"id": "s1", "name": "n", "grade": "g", "createdAt": "2024-01-01T00:00:00Z",'
            ' "assessments": [{"id": "a", "studentId": "s1", "date": "2024-01-01T00:00:00Z",'
            ' "scores": {"learningAbility": 5}}]}]'
        )
        with sql_store.transaction() as s:
            s.add(KeyValueORM(key="studentProfiles", value=raw))

        assert StudentRepository(sql_store).list_students() == []

    def test_storage_keys_are_independent(self, engine, sql_store):
        sql_store.save(sample_students())
        other = SqlStudentStore(create_session_factory(engine), storage_key="otherProfiles")
        assert other.load() == []

    def test_write_failure_raises_store_write_error(self, engine, sql_store):
        Base.metadata.drop_all(engine)

        with pytest.raises(StoreWriteError) as exc_info:
            sql_store.save(sample_students())
        assert exc_info.value.operation == "save"

    def test_read_failure_loads_empty(self, engine, sql_store):
        Base.metadata.drop_all(engine)
        assert sql_store.load() == []


def test_build_store_selects_backend():
    assert isinstance(build_store(StoreConfig(backend="memory")), InMemoryStudentStore)

    store = build_store(StoreConfig(backend="sqlite", sqlite_path=":memory:"))
    assert isinstance(store, SqlStudentStore)
    assert store.load() == []
