from dataclasses import replace

import pytest
from unittest.mock import patch
from hypothesis import given, strategies as st

from vocab.config import DEFAULT_SCHEDULER_CONFIG, SchedulerConfig
from vocab.constants import SECONDS_PER_DAY
from vocab.models import Card, DifficultyLevel, ReviewOutcome
from vocab.scheduler import (
    adjust_ease_for_performance,
    apply_outcome,
    create_card,
    days_until_due,
    describe_history,
    get_difficulty_level,
    get_difficulty_rating,
    get_new_average_response_time,
    get_new_ease_factor,
    get_new_interval,
    get_new_stability,
    get_performance_index,
    get_retention_rate,
    is_difficult,
    is_due,
    is_due_within,
    is_new,
    reset_card,
)

NOW = 1700000000


def replay(card, outcomes, response_time_ms=4000, start=NOW):
    """Apply a sequence of outcomes one day apart."""
    for i, outcome in enumerate(outcomes):
        card = apply_outcome(card, outcome, response_time_ms, now=start + i * SECONDS_PER_DAY)
    return card


# --- Unit Tests ---

def test_create_card_defaults():
    card = create_card(7, 42, now=NOW)

    assert card.user_id == 7
    assert card.word_id == 42
    assert card.interval_days == 1
    assert card.ease_factor == 2.5
    assert card.stability_factor == 1.0
    assert card.due_date == NOW
    assert card.created_at == NOW
    assert card.total_reviews == 0
    assert card.review_history == ()
    assert is_new(card)


@patch('time.time')
def test_create_card_uses_clock(mock_time):
    mock_time.return_value = NOW
    card = create_card(1, 1)
    assert card.due_date == NOW


def test_get_new_interval():
    assert get_new_interval(ReviewOutcome.AGAIN, 30, 2.5) == 1
    assert get_new_interval(ReviewOutcome.HARD, 10, 2.5) == 12
    assert get_new_interval(ReviewOutcome.GOOD, 10, 2.0) == 20
    assert get_new_interval(ReviewOutcome.EASY, 10, 2.0) == 26
    # Truncation never drops below a day
    assert get_new_interval(ReviewOutcome.HARD, 1, 2.5) == 1


def test_get_new_interval_clamped_to_maximum():
    assert get_new_interval(ReviewOutcome.EASY, 300, 2.5) == 365

    config = SchedulerConfig(maximum_interval=30)
    assert get_new_interval(ReviewOutcome.GOOD, 20, 2.5, config) == 30


def test_get_new_ease_factor():
    assert get_new_ease_factor(ReviewOutcome.AGAIN, 2.0) == 1.8
    assert get_new_ease_factor(ReviewOutcome.HARD, 2.0) == 1.85
    assert get_new_ease_factor(ReviewOutcome.GOOD, 2.0) == 2.0
    assert get_new_ease_factor(ReviewOutcome.EASY, 2.0) == 2.1
    # Clamped at both ends
    assert get_new_ease_factor(ReviewOutcome.AGAIN, 1.4) == 1.3
    assert get_new_ease_factor(ReviewOutcome.EASY, 2.45) == 2.5


def test_get_new_stability():
    assert get_new_stability(ReviewOutcome.AGAIN, 1.0) == 0.5
    assert get_new_stability(ReviewOutcome.HARD, 1.0) == 0.8
    assert get_new_stability(ReviewOutcome.GOOD, 1.0) == 1.1
    assert get_new_stability(ReviewOutcome.EASY, 1.0) == 1.3
    assert get_new_stability(ReviewOutcome.AGAIN, 0.15) == 0.1


def test_get_new_average_response_time():
    assert get_new_average_response_time(None, 3000) == 3000
    assert get_new_average_response_time(3000, 5000) == 4000
    assert get_new_average_response_time(3000, 4001) == 3500


def test_get_difficulty_rating():
    assert get_difficulty_rating(1.0, None) == 0.0
    assert get_difficulty_rating(0.5, None) == 0.5
    # Half inaccuracy, half slowness
    assert get_difficulty_rating(0.5, 5000) == 0.5
    # Slowness is capped at the normaliser
    assert get_difficulty_rating(1.0, 60000) == 0.5


def test_get_performance_index():
    assert get_performance_index(0.5, 0, 0) == 50.0
    assert get_performance_index(0.5, 3, 0) == 56.0
    assert get_performance_index(0.5, 0, 2) == 40.0
    assert get_performance_index(1.0, 10, 0) == 100.0
    assert get_performance_index(0.0, 0, 5) == 0.0


def test_retention_rate_needs_enough_reviews():
    card = replay(create_card(1, 1, now=NOW), [ReviewOutcome.GOOD] * 3)
    assert card.retention_rate is None

    card = apply_outcome(card, ReviewOutcome.AGAIN, 4000, now=NOW + 10 * SECONDS_PER_DAY)
    assert card.retention_rate == 0.75


def test_retention_rate_keeps_previous_value_when_not_computable():
    card = Card(user_id=1, word_id=1, retention_rate=0.6)
    assert get_retention_rate(card.review_history, card.total_reviews) is None

    reviewed = apply_outcome(card, ReviewOutcome.GOOD, 4000, now=NOW)
    assert reviewed.retention_rate == 0.6


def test_is_due():
    card = create_card(1, 1, now=NOW)
    assert is_due(card, now=NOW)
    assert not is_due(card, now=NOW - 1)

    reviewed = apply_outcome(card, ReviewOutcome.GOOD, 4000, now=NOW)
    assert not is_due(reviewed, now=NOW + SECONDS_PER_DAY)
    assert is_due(reviewed, now=NOW + 2 * SECONDS_PER_DAY)
    assert is_due_within(reviewed, 48, now=NOW)
    assert days_until_due(reviewed, now=NOW) == 2


def test_difficulty_helpers():
    assert get_difficulty_level(Card(user_id=1, word_id=1)) is None
    assert get_difficulty_level(Card(user_id=1, word_id=1, difficulty_rating=0.2)) == DifficultyLevel.BASIC
    assert get_difficulty_level(Card(user_id=1, word_id=1, difficulty_rating=0.4)) == DifficultyLevel.BEGINNER
    assert get_difficulty_level(Card(user_id=1, word_id=1, difficulty_rating=0.65)) == DifficultyLevel.INTERMEDIATE
    assert get_difficulty_level(Card(user_id=1, word_id=1, difficulty_rating=0.9)) == DifficultyLevel.ADVANCED

    assert is_difficult(Card(user_id=1, word_id=1, difficulty_rating=0.51))
    assert not is_difficult(Card(user_id=1, word_id=1, difficulty_rating=0.5))


def test_adjust_ease_for_performance():
    weak = Card(user_id=1, word_id=1, ease_factor=2.0, performance_index=20.0)
    strong = Card(user_id=1, word_id=1, ease_factor=2.0, performance_index=90.0)
    middling = Card(user_id=1, word_id=1, ease_factor=2.0, performance_index=50.0)
    unscored = Card(user_id=1, word_id=1, ease_factor=2.0)

    assert adjust_ease_for_performance(weak).ease_factor == 1.9
    assert adjust_ease_for_performance(strong).ease_factor == 2.05
    assert adjust_ease_for_performance(middling) == middling
    assert adjust_ease_for_performance(unscored) == unscored

    floor = replace(weak, ease_factor=1.35)
    assert adjust_ease_for_performance(floor).ease_factor == 1.3


def test_apply_outcome_rejects_invalid_outcome():
    card = create_card(1, 1, now=NOW)
    with pytest.raises(ValueError):
        apply_outcome(card, "GOOD", 4000, now=NOW)
    with pytest.raises(ValueError):
        apply_outcome(card, 2, 4000, now=NOW)


@pytest.mark.parametrize("response_time", [-1, 1.5, None, True])
def test_apply_outcome_rejects_invalid_response_time(response_time):
    card = create_card(1, 1, now=NOW)
    with pytest.raises(ValueError):
        apply_outcome(card, ReviewOutcome.GOOD, response_time, now=NOW)


def test_apply_outcome_leaves_input_untouched():
    card = create_card(1, 1, now=NOW)
    apply_outcome(card, ReviewOutcome.EASY, 2000, now=NOW)
    assert card == create_card(1, 1, now=NOW)


def test_apply_outcome_records_history():
    card = create_card(1, 1, now=NOW)
    first = apply_outcome(card, ReviewOutcome.GOOD, 3000, now=NOW)
    second = apply_outcome(first, ReviewOutcome.HARD, 5000, now=NOW + SECONDS_PER_DAY)

    assert len(second.review_history) == 2
    entry = second.review_history[-1]
    assert entry.review_number == 2
    assert entry.outcome == ReviewOutcome.HARD
    assert entry.response_time == 5000
    assert entry.reviewed_at == NOW + SECONDS_PER_DAY
    # Snapshot of the state going into the review
    assert entry.interval_before_review == first.interval_days
    assert entry.ease_factor_before_review == first.ease_factor

    assert second.review_history[0] == first.review_history[0]
    assert second.total_study_time == 8000
    assert second.average_response_time == 4000
    assert second.last_review_outcome == ReviewOutcome.HARD


def test_card_age_days():
    card = create_card(1, 1, now=NOW)
    reviewed = apply_outcome(card, ReviewOutcome.GOOD, 4000, now=NOW + 3 * SECONDS_PER_DAY + 100)
    assert reviewed.card_age_days == 3


def test_reset_card():
    card = replace(replay(create_card(1, 1, now=NOW), [ReviewOutcome.GOOD, ReviewOutcome.AGAIN]), id=9, version=4)
    later = NOW + 10 * SECONDS_PER_DAY
    fresh = reset_card(card, now=later)

    assert fresh.id == 9
    assert fresh.version == 4
    assert fresh.created_at == NOW
    assert fresh.due_date == later
    assert fresh.total_reviews == 0
    assert fresh.review_history == ()
    assert fresh.ease_factor == DEFAULT_SCHEDULER_CONFIG.initial_ease_factor


def test_describe_history():
    card = replay(create_card(1, 1, now=NOW), [ReviewOutcome.GOOD, ReviewOutcome.AGAIN], response_time_ms=2500)
    assert describe_history(card) == ["1: GOOD (2500ms)", "2: AGAIN (2500ms)"]
    assert describe_history(create_card(1, 1, now=NOW)) == []


# --- Scenarios ---

def test_new_card_good():
    card = apply_outcome(create_card(1, 1, now=NOW), ReviewOutcome.GOOD, 4000, now=NOW)

    assert card.interval_days == 2
    assert card.ease_factor == 2.5
    assert card.due_date == NOW + 2 * SECONDS_PER_DAY
    assert card.next_review == card.due_date
    assert card.last_reviewed == NOW
    assert card.total_reviews == 1
    assert card.correct_reviews == 1
    assert card.consecutive_correct == 1
    assert card.review_count_good == 1


def test_mature_card_again():
    card = Card(user_id=1, word_id=1, interval_days=10, ease_factor=2.0, consecutive_correct=4)
    card = apply_outcome(card, ReviewOutcome.AGAIN, 4000, now=NOW)

    assert card.interval_days == 1
    assert card.ease_factor == 1.8
    assert card.consecutive_correct == 0
    assert card.consecutive_incorrect == 1
    assert card.review_count_again == 1


def test_easy_is_capped_at_maximum_ease():
    card = Card(user_id=1, word_id=1, interval_days=5, ease_factor=2.5)
    card = apply_outcome(card, ReviewOutcome.EASY, 4000, now=NOW)

    assert card.interval_days == 16
    assert card.ease_factor == 2.5


def test_retention_over_last_ten_reviews():
    outcomes = [
        ReviewOutcome.AGAIN,
        ReviewOutcome.GOOD,
        ReviewOutcome.AGAIN,
        ReviewOutcome.GOOD,
        ReviewOutcome.HARD,
        ReviewOutcome.AGAIN,
        ReviewOutcome.GOOD,
        ReviewOutcome.EASY,
        ReviewOutcome.GOOD,
        ReviewOutcome.GOOD,
        ReviewOutcome.GOOD,
    ]
    card = replay(create_card(1, 1, now=NOW), outcomes)

    assert card.total_reviews == 11
    assert card.retention_rate == 0.8


# --- Property-Based Tests ---

outcomes = st.sampled_from(list(ReviewOutcome))

cards = st.builds(
    Card,
    user_id=st.just(1),
    word_id=st.just(1),
    interval_days=st.integers(min_value=1, max_value=365),
    ease_factor=st.floats(min_value=1.3, max_value=2.5),
    stability_factor=st.floats(min_value=0.1, max_value=1000),
    created_at=st.just(NOW),
    due_date=st.just(NOW),
)


@given(cards, outcomes, st.integers(min_value=0, max_value=120000))
def test_bounds_hold_after_any_review(card, outcome, response_time):
    updated = apply_outcome(card, outcome, response_time, now=NOW)

    assert 1 <= updated.interval_days <= 365
    assert 1.3 <= updated.ease_factor <= 2.5
    assert updated.stability_factor >= 0.1
    assert 0.0 <= updated.difficulty_rating <= 1.0
    assert 0.0 <= updated.performance_index <= 100.0


@given(cards, st.integers(min_value=0, max_value=120000))
def test_again_resets_interval(card, response_time):
    assert apply_outcome(card, ReviewOutcome.AGAIN, response_time, now=NOW).interval_days == 1


@given(cards)
def test_outcome_ordering(card):
    results = {outcome: apply_outcome(card, outcome, 4000, now=NOW) for outcome in ReviewOutcome}

    easy, good, hard, again = (
        results[ReviewOutcome.EASY],
        results[ReviewOutcome.GOOD],
        results[ReviewOutcome.HARD],
        results[ReviewOutcome.AGAIN],
    )
    assert easy.ease_factor >= good.ease_factor >= hard.ease_factor >= again.ease_factor
    assert easy.interval_days >= good.interval_days >= hard.interval_days >= again.interval_days


@given(st.lists(outcomes, max_size=30))
def test_counters_stay_consistent(sequence):
    card = replay(create_card(1, 1, now=NOW), sequence)

    assert card.total_reviews == len(sequence)
    assert card.total_reviews == card.correct_reviews + card.review_count_again
    assert card.total_reviews == (
        card.review_count_again + card.review_count_hard + card.review_count_good + card.review_count_easy
    )
    assert len(card.review_history) == card.total_reviews
    assert [entry.review_number for entry in card.review_history] == list(range(1, len(sequence) + 1))


@given(st.lists(outcomes, max_size=15))
def test_reset_is_idempotent(sequence):
    card = replay(create_card(1, 1, now=NOW), sequence)
    later = NOW + 100 * SECONDS_PER_DAY

    once = reset_card(card, now=later)
    assert reset_card(once, now=later) == once
