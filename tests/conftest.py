import itertools

import pytest

from clinrev.application.study_data import StudyDataRepository
from clinrev.domain.constants import MS_PER_DAY
from clinrev.domain.models import (
    AnswerDetail,
    CognitiveLevel,
    MasteryCard,
    Question,
    SessionRecord,
)
from clinrev.infrastructure.persistence.memory_store import InMemoryKeyValueStore

# 2024-06-15T12:00:00Z
NOW = 1_718_452_800_000


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def days_ago():
    def _days_ago(days: float) -> int:
        return NOW - int(days * MS_PER_DAY)

    return _days_ago


@pytest.fixture
def make_session():
    """Factory for SessionRecords. ``outcomes`` become the details in order."""
    counter = itertools.count(1)

    def _make(
        outcomes=(),
        timestamp=NOW,
        question_ids=None,
        total=None,
        correct=None,
        time_ms=60_000,
        specialties=(),
        exam_types=(),
        complexity=None,
        session_id=None,
    ):
        outcomes = list(outcomes)
        qids = question_ids or [f"q{i}" for i in range(len(outcomes))]
        details = tuple(AnswerDetail(qid, ok) for qid, ok in zip(qids, outcomes))
        return SessionRecord(
            id=session_id or f"s{next(counter)}",
            timestamp=timestamp,
            total_questions=len(details) if total is None else total,
            correct_answers=sum(outcomes) if correct is None else correct,
            time_taken_ms=time_ms,
            specialties=tuple(specialties),
            exam_types=tuple(exam_types),
            complexity=complexity,
            details=details,
        )

    return _make


@pytest.fixture
def make_question():
    def _make(
        qid,
        tags=(),
        concepts=(),
        level=CognitiveLevel.APPLICATION,
        correct_index=0,
        **extras,
    ):
        return Question(
            id=qid,
            vignette=f"A patient presents ({qid})",
            options=("A", "B", "C", "D"),
            correct_index=correct_index,
            tags=tuple(tags),
            clinical_concepts=tuple(concepts),
            cognitive_level=level,
            extras=extras,
        )

    return _make


@pytest.fixture
def mastery_layers():
    def _layers(parent_id):
        return [
            MasteryCard(
                id=f"{parent_id}-{kind.lower()}",
                parent_id=parent_id,
                kind=kind,
                front=f"{kind} front",
                back=f"{kind} back",
            )
            for kind in ("Pathophysiology", "Diagnosis", "Management", "Differentiator")
        ]

    return _layers


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def repo(store):
    return StudyDataRepository(store)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data files
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "CLINREV_DATA_FILE",
        "CLINREV_DEFAULT_SORT",
        "CLINREV_TOPIC_LIMIT",
        "CLINREV_VERBOSE",
    ):
        monkeypatch.delenv(var, raising=False)
    return home
