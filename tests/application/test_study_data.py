import json
from unittest.mock import AsyncMock

import pytest

from clinrev.application.study_data import StudyDataRepository
from clinrev.domain.constants import MS_PER_DAY
from clinrev.domain.errors import DuplicateSessionError
from clinrev.domain.srs.models import DueMasteryCard, DueVignette, Rating
from clinrev.infrastructure.persistence.memory_store import InMemoryKeyValueStore


@pytest.mark.asyncio
async def test_save_session_prepends_and_caches_stats(repo, store, make_session, days_ago):
    older = make_session([True, False], timestamp=days_ago(2))
    newer = make_session([True, True, True], timestamp=days_ago(1))

    await repo.save_session(older)
    stats = await repo.save_session(newer)

    history = await repo.load_history()
    assert [s.id for s in history] == [newer.id, older.id]
    assert stats.total_questions == 5
    assert stats.avg_accuracy == 80
    assert (await store.get("lifetimeStats"))["totalQuestions"] == 5
    assert (await repo.load_lifetime_stats()) == stats


@pytest.mark.asyncio
async def test_save_session_rejects_duplicates(repo, make_session):
    session = make_session([True])
    await repo.save_session(session)

    with pytest.raises(DuplicateSessionError):
        await repo.save_session(session)
    assert len(await repo.load_history()) == 1


@pytest.mark.asyncio
async def test_lifetime_stats_rebuilt_when_cache_missing(store, make_session):
    await StudyDataRepository(store).save_session(make_session([True, False]))
    await store.set("lifetimeStats", None)

    stats = await StudyDataRepository(store).load_lifetime_stats()

    assert stats.total_questions == 2
    assert (await store.get("lifetimeStats"))["avgAccuracy"] == 50


@pytest.mark.asyncio
async def test_toggle_bookmark_keeps_review_card(repo, make_question, now):
    question = make_question("q1", tags=["Sepsis"])

    assert await repo.toggle_bookmark(question, now) is True
    assert [q.id for q in await repo.load_bookmarks()] == ["q1"]
    assert "q1" in await repo.load_question_library()
    card = (await repo.load_deck()).get("q1")
    assert card.next_review_at == now
    assert card.repetition_count == 0

    assert await repo.toggle_bookmark(question, now) is False
    assert await repo.load_bookmarks() == []
    assert "q1" in await repo.load_deck()


@pytest.mark.asyncio
async def test_rebookmarking_does_not_reset_progress(repo, make_question, now):
    question = make_question("q1")
    await repo.toggle_bookmark(question, now)
    await repo.rate_card("q1", Rating.GOOD, now)
    await repo.toggle_bookmark(question, now)

    await repo.toggle_bookmark(question, now + 10)

    card = (await repo.load_deck()).get("q1")
    assert card.repetition_count == 1
    assert card.next_review_at == now + MS_PER_DAY


@pytest.mark.asyncio
async def test_add_to_library_counts_only_new(repo, make_question):
    assert await repo.add_to_library([make_question("a"), make_question("b")]) == 2
    assert await repo.add_to_library([make_question("b"), make_question("c")]) == 1
    assert sorted(await repo.load_question_library()) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_rate_card_persists_and_due_items_resolve(repo, make_question, now):
    await repo.toggle_bookmark(make_question("q1"), now)
    await repo.toggle_bookmark(make_question("q2"), now)

    card = await repo.rate_card("q1", "easy", now)
    assert card.interval_days == 1
    assert card.ease_factor == pytest.approx(2.45)

    due = await repo.due_items(now)
    assert [type(item) for item in due] == [DueVignette]
    assert due[0].question.id == "q2"


@pytest.mark.asyncio
async def test_dissect_question_seeds_cards(repo, make_question, mastery_layers, now):
    question = make_question("q1")
    generator = AsyncMock()
    generator.generate.return_value = mastery_layers("q1")

    layers = await repo.dissect_question(question, generator, now)

    assert len(layers) == 4
    stored = await repo.load_mastery_cards()
    assert [c.kind for c in stored["q1"]] == [
        "Pathophysiology",
        "Diagnosis",
        "Management",
        "Differentiator",
    ]
    due = await repo.due_items(now)
    assert all(isinstance(item, DueMasteryCard) for item in due)
    assert len(due) == 4
    assert all(item.card.ease_factor == pytest.approx(2.1) for item in due)

    assert await repo.dissect_question(question, generator, now) is None
    generator.generate.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_all_data_fills_defaults(repo):
    snapshot = await repo.get_all_data()

    assert snapshot.history == []
    assert snapshot.srs_states == {}
    assert snapshot.study_plan is None
    assert snapshot.lifetime_stats.total_questions == 0
    assert snapshot.lifetime_stats.first_session_date is None


@pytest.mark.asyncio
async def test_backup_then_import_restores_state(repo, make_session, make_question, now):
    await repo.save_session(make_session([True, False]))
    await repo.toggle_bookmark(make_question("q1", tags=["Sepsis"], deepDive="notes"), now)
    await repo.rate_card("q1", "good", now)
    await repo.save_study_plan({"days": 30})
    backup = await repo.backup_all_data()

    target = StudyDataRepository(InMemoryKeyValueStore())
    assert await target.full_import(backup) is True

    assert (await target.get_all_data()).to_json() == (await repo.get_all_data()).to_json()
    library = await target.load_question_library()
    assert library["q1"].extras == {"deepDive": "notes"}
    assert await target.load_study_plan() == {"days": 30}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[]",
        "42",
        json.dumps({"history": [{"id": "s1", "timestamp": 1, "totalQuestions": -1}]}),
        json.dumps({"srsStates": {"q1": {"nextReview": 5}}}),
        b'{"history": [\xff]}',
    ],
)
async def test_rejected_import_leaves_state_untouched(repo, make_session, payload):
    await repo.save_session(make_session([True]))
    before = (await repo.get_all_data()).to_json()

    assert await repo.full_import(payload) is False

    assert (await repo.get_all_data()).to_json() == before
    assert repo.is_importing is False


@pytest.mark.asyncio
async def test_import_replaces_keys_missing_from_payload(repo, make_question, now):
    await repo.toggle_bookmark(make_question("q1"), now)

    assert await repo.full_import(json.dumps({"history": None})) is True

    snapshot = await repo.get_all_data()
    assert snapshot.bookmarks == []
    assert snapshot.srs_states == {}
    assert snapshot.question_library == {}


@pytest.mark.asyncio
async def test_import_recomputes_lifetime_stats(repo):
    payload = {
        "history": [
            {
                "id": "s1",
                "timestamp": 1_000,
                "totalQuestions": 4,
                "correctAnswers": 3,
                "timeTakenMs": 0,
                "details": [],
            }
        ],
        "lifetimeStats": {"totalQuestions": 999, "avgAccuracy": 1},
    }

    assert await repo.full_import(json.dumps(payload)) is True

    stats = await repo.load_lifetime_stats()
    assert stats.total_questions == 4
    assert stats.avg_accuracy == 75
    assert stats.first_session_date == 1_000


@pytest.mark.asyncio
async def test_reset_data_clears_everything(repo, make_session, make_question, now):
    await repo.save_session(make_session([True]))
    await repo.toggle_bookmark(make_question("q1"), now)

    await repo.reset_data()

    assert await repo.load_history() == []
    assert len(await repo.load_deck()) == 0
    assert (await repo.load_lifetime_stats()).total_questions == 0


@pytest.mark.asyncio
async def test_imported_ease_is_floored_in_stored_state(repo, store):
    payload = {"srsStates": {"c1": {"cardId": "c1", "ease": 1.0}}}

    assert await repo.full_import(json.dumps(payload)) is True

    assert (await store.get("srsStates"))["c1"]["ease"] == 1.3
    exported = json.loads(await repo.backup_all_data())
    assert exported["srsStates"]["c1"]["ease"] == 1.3
