import itertools

import pytest

from clinrev.application.srs.scheduler import apply_rating, due_card_ids, resolve_due_items
from clinrev.domain.constants import MS_PER_DAY
from clinrev.domain.errors import UnknownRatingError
from clinrev.domain.models import MasteryCard
from clinrev.domain.srs.models import DueMasteryCard, DueVignette, Rating, ReviewCard


@pytest.fixture
def fresh(now):
    return ReviewCard.baseline("card-1", now)


def test_baseline_card_is_due_immediately(fresh, now):
    assert fresh.interval_days == 0
    assert fresh.repetition_count == 0
    assert fresh.ease_factor == pytest.approx(2.3)
    assert fresh.next_review_at == now
    assert fresh.is_due(now)


def test_good_streak_interval_sequence(fresh, now):
    card = fresh
    intervals = [card.interval_days]
    for _ in range(4):
        card = apply_rating(card, Rating.GOOD, now)
        intervals.append(card.interval_days)

    # 0 -> 1 -> 6 -> ceil(6 * 2.3) -> ceil(14 * 2.3)
    assert intervals == [0, 1, 6, 14, 33]
    assert intervals == sorted(intervals)
    assert card.repetition_count == 4
    assert card.ease_factor == pytest.approx(2.3)


def test_next_review_is_interval_days_from_now(fresh, now):
    card = apply_rating(apply_rating(fresh, "good", now), "good", now)
    assert card.next_review_at == now + 6 * MS_PER_DAY


def test_again_resets_streak_and_interval(now):
    card = ReviewCard("c", next_review_at=0, interval_days=14, ease_factor=2.5, repetition_count=3)

    after = apply_rating(card, Rating.AGAIN, now)

    assert after.repetition_count == 0
    assert after.interval_days == 0
    assert after.ease_factor == pytest.approx(2.3)
    assert after.next_review_at == now


def test_hard_uses_fixed_multiplier_and_lowers_ease(now):
    card = ReviewCard("c", next_review_at=0, interval_days=7, ease_factor=2.5, repetition_count=2)

    after = apply_rating(card, Rating.HARD, now)

    assert after.interval_days == 9  # ceil(7 * 1.2)
    assert after.ease_factor == pytest.approx(2.35)
    assert after.repetition_count == 3


def test_easy_uses_boosted_ease_before_raising_it(now):
    card = ReviewCard("c", next_review_at=0, interval_days=10, ease_factor=2.0, repetition_count=2)

    after = apply_rating(card, Rating.EASY, now)

    assert after.interval_days == 30  # ceil(10 * 2.0 * 1.5)
    assert after.ease_factor == pytest.approx(2.15)


def test_second_success_is_six_days_for_any_passing_rating(now):
    card = ReviewCard("c", next_review_at=0, interval_days=1, ease_factor=2.3, repetition_count=1)
    for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
        assert apply_rating(card, rating, now).interval_days == 6


def test_ease_never_drops_below_floor(now):
    for sequence in itertools.product(list(Rating), repeat=5):
        card = ReviewCard.baseline("c", now)
        for rating in sequence:
            card = apply_rating(card, rating, now)
            assert card.ease_factor >= 1.3


def test_floor_clamps_single_step(now):
    card = ReviewCard("c", next_review_at=0, ease_factor=1.35)
    assert apply_rating(card, Rating.AGAIN, now).ease_factor == 1.3
    assert apply_rating(card, Rating.HARD, now).ease_factor == 1.3


def test_apply_rating_does_not_mutate_input(fresh, now):
    apply_rating(fresh, Rating.EASY, now)
    assert fresh.repetition_count == 0
    assert fresh.interval_days == 0


def test_rating_parse():
    assert Rating.parse("GOOD") is Rating.GOOD
    assert Rating.parse(" again ") is Rating.AGAIN
    assert Rating.parse(Rating.EASY) is Rating.EASY
    with pytest.raises(UnknownRatingError):
        Rating.parse("meh")


def test_due_card_ids_orders_by_due_time_then_id(now):
    cards = [
        ReviewCard("b", next_review_at=now - 10),
        ReviewCard("a", next_review_at=now - 10),
        ReviewCard("c", next_review_at=now - 100),
        ReviewCard("later", next_review_at=now + 1),
        ReviewCard("exact", next_review_at=now),
    ]

    assert due_card_ids(cards, now) == ["c", "a", "b", "exact"]


def test_resolve_due_items_prefers_questions_then_mastery(
    now, make_question, mastery_layers
):
    question = make_question("q1")
    layers = mastery_layers("q1")
    cards = {
        "q1": ReviewCard("q1", next_review_at=now - 3),
        layers[0].id: ReviewCard(layers[0].id, next_review_at=now - 2),
        "ghost": ReviewCard("ghost", next_review_at=now - 1),
        layers[1].id: ReviewCard(layers[1].id, next_review_at=now + MS_PER_DAY),
    }

    items = resolve_due_items(cards, {"q1": question}, {"q1": layers}, now)

    assert len(items) == 2
    assert isinstance(items[0], DueVignette)
    assert items[0].question is question
    assert isinstance(items[1], DueMasteryCard)
    assert items[1].mastery_card == layers[0]
    assert items[1].type == "mastery"


def test_resolve_due_items_question_wins_on_id_collision(now, make_question):
    question = make_question("shared")
    clash = MasteryCard(id="shared", parent_id="other", kind="Diagnosis", front="f", back="b")

    items = resolve_due_items(
        {"shared": ReviewCard("shared", next_review_at=now)},
        {"shared": question},
        {"other": [clash]},
        now,
    )

    assert [type(i) for i in items] == [DueVignette]


def test_resolve_due_items_empty():
    assert resolve_due_items({}, {}, {}, 0) == []
