"""
Scoring for review sessions and the cards answered in them.

No I/O. The review service calls these after each answer and when a
session ends, and stores the results on the session records.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from vocab.models import Card, ReviewOutcome, ReviewSession, ReviewSessionCard


BASE_ACCURACY_SCORES = {
    ReviewOutcome.EASY: 95.0,
    ReviewOutcome.GOOD: 85.0,
    ReviewOutcome.HARD: 70.0,
    ReviewOutcome.AGAIN: 0.0,
}

# Probability of forgetting the word again soon
RETENTION_RISK = {
    ReviewOutcome.AGAIN: 0.8,
    ReviewOutcome.HARD: 0.4,
    ReviewOutcome.GOOD: 0.1,
    ReviewOutcome.EASY: 0.05,
}

QUICK_RESPONSE_MS = 3000
QUICK_RESPONSE_BONUS = 5.0
SLOW_RESPONSE_MS = 15000
SLOW_RESPONSE_PENALTY = 10.0

OPTIMAL_RESPONSE_MS = 4000.0

PERFORMANCE_CATEGORIES = (
    (90.0, "EXCELLENT"),
    (80.0, "GOOD"),
    (70.0, "FAIR"),
    (50.0, "POOR"),
)
LOWEST_PERFORMANCE_CATEGORY = "NEEDS_WORK"

ACCURACY_BONUSES = ((90.0, 10.0), (80.0, 5.0), (70.0, 2.0))
PACE_BONUSES = ((15.0, 5.0), (10.0, 2.0))  # cards per minute
CONSISTENCY_BONUS = 3.0


def _round(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


# --- Per card ---


def get_card_accuracy_score(outcome: ReviewOutcome, response_time_ms: Optional[int]) -> float:
    score = BASE_ACCURACY_SCORES[outcome]
    if response_time_ms is not None:
        if response_time_ms < QUICK_RESPONSE_MS:
            score += QUICK_RESPONSE_BONUS
        elif response_time_ms > SLOW_RESPONSE_MS:
            score -= SLOW_RESPONSE_PENALTY
    return _round(max(0.0, min(100.0, score)))


def get_performance_category(score: float) -> str:
    for threshold, category in PERFORMANCE_CATEGORIES:
        if score >= threshold:
            return category
    return LOWEST_PERFORMANCE_CATEGORY


def get_learning_gain(ease_before: Optional[float], ease_after: Optional[float]) -> float:
    if ease_before is None or ease_after is None:
        return 0.0
    return _round(Decimal(str(ease_after)) - Decimal(str(ease_before)), places=3)


def record_card_review(session_card: ReviewSessionCard, card_after: Card,
                       outcome: ReviewOutcome, response_time_ms: int, reviewed_at: int):
    """Fill in a session card once it has been answered. Updates in place."""
    session_card.outcome = outcome
    session_card.response_time = response_time_ms
    session_card.reviewed_at = reviewed_at
    session_card.is_correct = outcome.is_correct
    session_card.streak_broken = session_card.consecutive_correct_before > 0 and not outcome.is_correct

    session_card.interval_after_review = card_after.interval_days
    session_card.ease_factor_after_review = card_after.ease_factor
    session_card.difficulty_rating = card_after.difficulty_rating

    session_card.accuracy_score = get_card_accuracy_score(outcome, response_time_ms)
    session_card.performance_category = get_performance_category(session_card.accuracy_score)
    session_card.learning_gain = get_learning_gain(
        session_card.ease_factor_before_review,
        session_card.ease_factor_after_review,
    )
    session_card.retention_risk = RETENTION_RISK[outcome]


# --- Per session ---


def _reviewed_cards(session: ReviewSession) -> List[ReviewSessionCard]:
    """Answered cards in the order they were answered."""
    reviewed = [c for c in session.cards if c.is_reviewed]
    return sorted(reviewed, key=lambda c: (c.reviewed_at or 0, c.position))


def get_accuracy_percentage(session: ReviewSession) -> float:
    if session.completed_cards == 0:
        return 0.0
    return session.correct_answers / session.completed_cards * 100


def get_average_response_time(session: ReviewSession) -> int:
    times = [c.response_time for c in session.cards if c.response_time]
    if not times:
        return 0
    return sum(times) // len(times)


def get_cards_per_minute(completed_cards: int, duration_seconds: Optional[int]) -> Optional[float]:
    if not duration_seconds or duration_seconds <= 0:
        return None
    return _round(completed_cards / (duration_seconds / 60.0))


def get_efficiency_score(accuracy_percentage: float, average_response_time: Optional[int],
                         completed_cards: int) -> float:
    """70% accuracy, 30% closeness of the average answer time to 4 seconds."""
    if completed_cards == 0:
        return 0.0

    speed_score = 100.0
    if average_response_time:
        distance = abs(average_response_time - OPTIMAL_RESPONSE_MS) / OPTIMAL_RESPONSE_MS
        speed_score = max(0.0, 100.0 - distance * 50.0)

    return _round(accuracy_percentage * 0.7 + speed_score * 0.3)


def get_session_difficulty(session: ReviewSession) -> float:
    ratings = [c.difficulty_rating for c in session.cards if c.difficulty_rating is not None]
    if not ratings:
        return 0.0
    return _round(sum(ratings) / len(ratings))


def get_focus_score(session: ReviewSession, average_response_time: Optional[int]) -> float:
    """100 minus the coefficient of variation of answer times, as a percentage."""
    if not average_response_time:
        return 0.0

    times = [c.response_time for c in session.cards if c.response_time is not None]
    if not times:
        return 0.0

    variance = sum((t - average_response_time) ** 2 for t in times) / len(times)
    deviation = math.sqrt(variance)
    return _round(max(0.0, 100.0 - deviation / average_response_time * 100.0))


def get_learning_velocity(session: ReviewSession) -> float:
    """Accuracy in the second half of the answers minus accuracy in the first half."""
    reviewed = _reviewed_cards(session)
    if len(reviewed) < 2:
        return 0.0

    half = len(reviewed) // 2

    def accuracy(cards):
        if not cards:
            return 0.0
        return sum(1 for c in cards if c.outcome.is_correct) / len(cards) * 100.0

    return _round(accuracy(reviewed[half:]) - accuracy(reviewed[:half]))


def get_completion_bonuses(session: ReviewSession) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    """Accuracy, pace and consistency bonuses awarded when a session ends."""
    accuracy = get_accuracy_percentage(session)
    accuracy_bonus = next((bonus for threshold, bonus in ACCURACY_BONUSES if accuracy >= threshold), None)

    pace_bonus = None
    if session.cards_per_minute is not None:
        pace_bonus = next(
            (bonus for threshold, bonus in PACE_BONUSES if session.cards_per_minute > threshold),
            None,
        )

    consistency_bonus = CONSISTENCY_BONUS if session.completed_cards == session.total_cards else None

    return accuracy_bonus, pace_bonus, consistency_bonus


def get_total_session_score(session: ReviewSession) -> float:
    if session.efficiency_score is None:
        return 0.0

    total = session.efficiency_score
    for bonus in (session.accuracy_bonus, session.time_efficiency_bonus, session.consistency_bonus):
        if bonus is not None:
            total += bonus

    return _round(max(0.0, min(100.0, total)))


def update_session_statistics(session: ReviewSession):
    """Recompute the running scores after an answer. Updates in place."""
    session.average_response_time = get_average_response_time(session)
    session.session_accuracy = _round(get_accuracy_percentage(session))
    session.cards_per_minute = get_cards_per_minute(session.completed_cards, session.session_duration)
    session.efficiency_score = get_efficiency_score(
        session.session_accuracy,
        session.average_response_time,
        session.completed_cards,
    )
    session.difficulty_level = get_session_difficulty(session)
    session.focus_score = get_focus_score(session, session.average_response_time)
    session.learning_velocity = get_learning_velocity(session)
    session.total_session_score = get_total_session_score(session)


def finalize_session_statistics(session: ReviewSession, end_time: int):
    """Close out a session: duration, pace, scores and completion bonuses."""
    session.end_time = end_time
    session.session_duration = max(0, end_time - session.start_time)

    update_session_statistics(session)

    (
        session.accuracy_bonus,
        session.time_efficiency_bonus,
        session.consistency_bonus,
    ) = get_completion_bonuses(session)
    session.total_session_score = get_total_session_score(session)
