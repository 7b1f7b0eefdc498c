"""
Spaced-repetition scheduling core.

The scheduling functions are pure: they take card values and return new
ones, never touching the database. The current time is passed in as epoch
seconds and defaults to the wall clock. log_card_update is a helper for
callers that want to log a transition.
"""

import logging
import time
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from vocab.config import DEFAULT_SCHEDULER_CONFIG, SchedulerConfig
from vocab.constants import SECONDS_PER_DAY, SECONDS_PER_HOUR
from vocab.models import Card, DifficultyLevel, ReviewHistoryEntry, ReviewOutcome


HARD_INTERVAL_MULTIPLIER = 1.2
EASY_INTERVAL_BONUS = 1.3

EASE_DELTAS = {
    ReviewOutcome.AGAIN: Decimal("-0.20"),
    ReviewOutcome.HARD: Decimal("-0.15"),
    ReviewOutcome.GOOD: Decimal("0"),
    ReviewOutcome.EASY: Decimal("0.10"),
}

STABILITY_MULTIPLIERS = {
    ReviewOutcome.AGAIN: Decimal("0.5"),
    ReviewOutcome.HARD: Decimal("0.8"),
    ReviewOutcome.GOOD: Decimal("1.1"),
    ReviewOutcome.EASY: Decimal("1.3"),
}

CONSECUTIVE_CORRECT_BONUS = 2.0
CONSECUTIVE_INCORRECT_PENALTY = 5.0

# Performance-based ease adjustment
LOW_PERFORMANCE_THRESHOLD = 30.0
HIGH_PERFORMANCE_THRESHOLD = 80.0
LOW_PERFORMANCE_EASE_PENALTY = Decimal("0.1")
HIGH_PERFORMANCE_EASE_BONUS = Decimal("0.05")

TWO_PLACES = Decimal("0.01")


def _round2(value) -> float:
    """Round half-up to two decimal places."""
    return float(Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


def _check_outcome(outcome):
    if not isinstance(outcome, ReviewOutcome):
        raise ValueError(f"Invalid review outcome: {outcome!r}")


def _now(now: Optional[int]) -> int:
    return int(time.time()) if now is None else now


def get_new_interval(outcome: ReviewOutcome, interval_days: int, ease_factor: float,
                     config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> int:
    """Interval after a review, truncated to whole days and clamped."""
    _check_outcome(outcome)

    match outcome:
        case ReviewOutcome.AGAIN:
            new_interval = config.initial_interval
        case ReviewOutcome.HARD:
            new_interval = int(interval_days * HARD_INTERVAL_MULTIPLIER)
        case ReviewOutcome.GOOD:
            new_interval = int(interval_days * ease_factor)
        case ReviewOutcome.EASY:
            new_interval = int(interval_days * ease_factor * EASY_INTERVAL_BONUS)

    return max(1, min(new_interval, config.maximum_interval))


def get_new_ease_factor(outcome: ReviewOutcome, ease_factor: float,
                        config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> float:
    _check_outcome(outcome)

    new_ease = _to_decimal(ease_factor) + EASE_DELTAS[outcome]
    new_ease = max(new_ease, _to_decimal(config.minimum_ease_factor))
    new_ease = min(new_ease, _to_decimal(config.maximum_ease_factor))

    return float(new_ease)


def get_new_stability(outcome: ReviewOutcome, stability_factor: float,
                      config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> float:
    _check_outcome(outcome)

    new_stability = _to_decimal(stability_factor) * STABILITY_MULTIPLIERS[outcome]
    new_stability = max(new_stability, _to_decimal(config.minimum_stability_factor))

    return _round2(new_stability)


def get_new_average_response_time(average_response_time: Optional[int], response_time_ms: int) -> int:
    # Two-point average rather than a running mean; see DESIGN.md.
    if average_response_time is None:
        return response_time_ms
    return (average_response_time + response_time_ms) // 2


def get_accuracy(correct_reviews: int, total_reviews: int) -> float:
    if total_reviews <= 0:
        return 0.0
    return correct_reviews / total_reviews


def get_difficulty_rating(accuracy: float, average_response_time: Optional[int],
                          config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> float:
    """
    Blend of inaccuracy and answer slowness, in [0, 1].

    Without response-time data the rating is the inaccuracy alone.
    """
    difficulty = 1.0 - accuracy

    if average_response_time is not None:
        normalised_time = min(average_response_time / config.response_time_normaliser_ms, 1.0)
        difficulty = (difficulty + normalised_time) / 2.0

    return _round2(difficulty)


def get_performance_index(accuracy: float, consecutive_correct: int, consecutive_incorrect: int) -> float:
    """Score in [0, 100]. Only the final sum is clamped."""
    score = accuracy * 100.0
    score += consecutive_correct * CONSECUTIVE_CORRECT_BONUS
    score -= consecutive_incorrect * CONSECUTIVE_INCORRECT_PENALTY

    return _round2(max(0.0, min(100.0, score)))


def get_retention_rate(history: Sequence[ReviewHistoryEntry], total_reviews: int,
                       config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Optional[float]:
    """
    Fraction of recalled reviews among the most recent ones.

    Returns None until the card has more than `retention_min_reviews` reviews.
    """
    if total_reviews <= config.retention_min_reviews:
        return None

    window_size = min(config.retention_window, total_reviews)
    window = history[-window_size:]
    if not window:
        return None

    recalled = sum(1 for entry in window if entry.outcome.is_correct)
    return _round2(recalled / len(window))


def create_card(user_id: int, word_id: int, now: Optional[int] = None,
                config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Card:
    """A fresh card, due immediately."""
    current_epoch = _now(now)

    return Card(
        user_id=user_id,
        word_id=word_id,
        interval_days=config.initial_interval,
        ease_factor=config.initial_ease_factor,
        stability_factor=config.initial_stability_factor,
        created_at=current_epoch,
        due_date=current_epoch,
        is_active=True,
        is_suspended=False,
    )


def reset_card(card: Card, now: Optional[int] = None,
               config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Card:
    """Back to the defaults of a new card, keeping identity and ownership."""
    fresh = create_card(card.user_id, card.word_id, now=now, config=config)

    return replace(
        fresh,
        id=card.id,
        created_at=card.created_at if card.created_at is not None else fresh.created_at,
        version=card.version,
    )


def apply_outcome(card: Card, outcome: ReviewOutcome, response_time_ms: int,
                  now: Optional[int] = None,
                  config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Card:
    """
    Compute a card's state after one review.

    Args:
        card: Current state; left untouched.
        outcome: How well the user recalled the word.
        response_time_ms: Time taken to answer, in milliseconds.
        now: Review time in epoch seconds (defaults to the current time).
        config: Algorithm constants.

    Returns:
        The updated card.

    Raises:
        ValueError: if the outcome or response time is invalid.
    """
    _check_outcome(outcome)
    if isinstance(response_time_ms, bool) or not isinstance(response_time_ms, int) or response_time_ms < 0:
        raise ValueError(f"Invalid response time: {response_time_ms!r}")

    current_epoch = _now(now)

    # Counters
    total_reviews = card.total_reviews + 1
    again, hard, good, easy = (
        card.review_count_again,
        card.review_count_hard,
        card.review_count_good,
        card.review_count_easy,
    )
    match outcome:
        case ReviewOutcome.AGAIN:
            again += 1
        case ReviewOutcome.HARD:
            hard += 1
        case ReviewOutcome.GOOD:
            good += 1
        case ReviewOutcome.EASY:
            easy += 1

    if outcome.is_correct:
        correct_reviews = card.correct_reviews + 1
        consecutive_correct = card.consecutive_correct + 1
        consecutive_incorrect = 0
    else:
        correct_reviews = card.correct_reviews
        consecutive_correct = 0
        consecutive_incorrect = card.consecutive_incorrect + 1

    # Interval, ease and stability
    interval_days = get_new_interval(outcome, card.interval_days, card.ease_factor, config)
    ease_factor = get_new_ease_factor(outcome, card.ease_factor, config)
    stability_factor = get_new_stability(outcome, card.stability_factor, config)

    # Response time bookkeeping
    average_response_time = get_new_average_response_time(card.average_response_time, response_time_ms)
    total_study_time = card.total_study_time + response_time_ms

    entry = ReviewHistoryEntry(
        review_number=total_reviews,
        outcome=outcome,
        response_time=response_time_ms,
        reviewed_at=current_epoch,
        interval_before_review=card.interval_days,
        ease_factor_before_review=card.ease_factor,
    )
    review_history = tuple(card.review_history) + (entry,)

    # Derived metrics
    accuracy = get_accuracy(correct_reviews, total_reviews)
    retention_rate = get_retention_rate(review_history, total_reviews, config)
    if retention_rate is None:
        retention_rate = card.retention_rate

    next_review = current_epoch + interval_days * SECONDS_PER_DAY

    card_age_days = card.card_age_days
    if card.created_at is not None:
        card_age_days = int((current_epoch - card.created_at) / SECONDS_PER_DAY)

    return replace(
        card,
        interval_days=interval_days,
        ease_factor=ease_factor,
        stability_factor=stability_factor,
        due_date=next_review,
        next_review=next_review,
        last_reviewed=current_epoch,
        total_reviews=total_reviews,
        correct_reviews=correct_reviews,
        consecutive_correct=consecutive_correct,
        consecutive_incorrect=consecutive_incorrect,
        review_count_again=again,
        review_count_hard=hard,
        review_count_good=good,
        review_count_easy=easy,
        difficulty_rating=get_difficulty_rating(accuracy, average_response_time, config),
        performance_index=get_performance_index(accuracy, consecutive_correct, consecutive_incorrect),
        retention_rate=retention_rate,
        average_response_time=average_response_time,
        total_study_time=total_study_time,
        last_review_outcome=outcome,
        card_age_days=card_age_days,
        review_history=review_history,
    )


def adjust_ease_for_performance(card: Card, config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Card:
    """Nudge the ease factor of persistently weak or strong cards."""
    if card.performance_index is None:
        return card

    ease = _to_decimal(card.ease_factor)
    if card.performance_index < LOW_PERFORMANCE_THRESHOLD:
        ease = max(ease - LOW_PERFORMANCE_EASE_PENALTY, _to_decimal(config.minimum_ease_factor))
    elif card.performance_index > HIGH_PERFORMANCE_THRESHOLD:
        ease = min(ease + HIGH_PERFORMANCE_EASE_BONUS, _to_decimal(config.maximum_ease_factor))
    else:
        return card

    return replace(card, ease_factor=float(ease))


def is_due(card: Card, now: Optional[int] = None) -> bool:
    return card.due_date <= _now(now)


def is_due_within(card: Card, hours: int, now: Optional[int] = None) -> bool:
    return card.due_date <= _now(now) + hours * SECONDS_PER_HOUR


def days_until_due(card: Card, now: Optional[int] = None) -> int:
    """Whole days until the card is due; negative when overdue."""
    return int((card.due_date - _now(now)) / SECONDS_PER_DAY)


def is_new(card: Card) -> bool:
    return card.total_reviews == 0


def is_difficult(card: Card, config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> bool:
    return card.difficulty_rating is not None and card.difficulty_rating > config.difficult_card_threshold


def get_difficulty_level(card: Card) -> Optional[DifficultyLevel]:
    rating = card.difficulty_rating
    if rating is None:
        return None
    if rating >= 0.8:
        return DifficultyLevel.ADVANCED
    if rating >= 0.6:
        return DifficultyLevel.INTERMEDIATE
    if rating >= 0.4:
        return DifficultyLevel.BEGINNER
    return DifficultyLevel.BASIC


def describe_history(card: Card) -> List[str]:
    return [
        f"{entry.review_number}: {entry.outcome.name} ({entry.response_time}ms)"
        for entry in card.review_history
    ]


def log_card_update(logger: logging.Logger, before: Card, after: Card, outcome: ReviewOutcome):
    """Log how a review moved a card's schedule."""
    logger.debug(
        f"Card {after.id} ({outcome.name}): "
        f"interval {before.interval_days}d -> {after.interval_days}d, "
        f"ease {before.ease_factor:.2f} -> {after.ease_factor:.2f}, "
        f"stability {before.stability_factor:.2f} -> {after.stability_factor:.2f}"
    )
    logger.debug(
        f"  Reviews: {after.total_reviews} ({after.correct_reviews} correct), "
        f"difficulty={after.difficulty_rating}, performance={after.performance_index}, "
        f"retention={after.retention_rate}"
    )
