"""Tests for per-card and per-session scoring."""

import pytest

from vocab.models import (
    Card,
    ReviewMode,
    ReviewOutcome,
    ReviewSession,
    ReviewSessionCard,
)
from vocab.session_scoring import (
    finalize_session_statistics,
    get_average_response_time,
    get_card_accuracy_score,
    get_cards_per_minute,
    get_completion_bonuses,
    get_efficiency_score,
    get_focus_score,
    get_learning_gain,
    get_learning_velocity,
    get_performance_category,
    record_card_review,
    update_session_statistics,
)

START = 1700000000


def make_session_card(position, outcome=None, response_time=None, reviewed_at=None):
    session_card = ReviewSessionCard(
        card_id=position + 1,
        position=position,
        review_number=1,
        interval_before_review=1,
        ease_factor_before_review=2.5,
    )
    session_card.outcome = outcome
    session_card.response_time = response_time
    session_card.reviewed_at = reviewed_at
    return session_card


def make_session(answers, total_cards=None):
    """Session whose first cards are answered with (outcome, response_time) pairs."""
    cards = [
        make_session_card(i, outcome, response_time, START + (i + 1) * 10)
        for i, (outcome, response_time) in enumerate(answers)
    ]
    total = total_cards if total_cards is not None else len(answers)
    cards += [make_session_card(i) for i in range(len(answers), total)]

    return ReviewSession(
        user_id=1,
        mode=ReviewMode.DUE_CARDS,
        start_time=START,
        total_cards=total,
        completed_cards=len(answers),
        correct_answers=sum(1 for outcome, _ in answers if outcome.is_correct),
        cards=cards,
    )


class TestCardScores:
    """Tests for the scores of a single answered card."""

    @pytest.mark.parametrize("outcome,response_time,expected", [
        (ReviewOutcome.EASY, 5000, 95.0),
        (ReviewOutcome.EASY, 2000, 100.0),
        (ReviewOutcome.GOOD, 2999, 90.0),
        (ReviewOutcome.GOOD, 3000, 85.0),
        (ReviewOutcome.HARD, 15001, 60.0),
        (ReviewOutcome.HARD, 15000, 70.0),
        (ReviewOutcome.AGAIN, 1000, 5.0),
        (ReviewOutcome.AGAIN, 20000, 0.0),
    ])
    def test_accuracy_score(self, outcome, response_time, expected):
        assert get_card_accuracy_score(outcome, response_time) == expected

    @pytest.mark.parametrize("score,category", [
        (100.0, "EXCELLENT"),
        (90.0, "EXCELLENT"),
        (85.0, "GOOD"),
        (70.0, "FAIR"),
        (50.0, "POOR"),
        (49.99, "NEEDS_WORK"),
    ])
    def test_performance_category(self, score, category):
        assert get_performance_category(score) == category

    def test_learning_gain(self):
        assert get_learning_gain(2.5, 2.3) == -0.2
        assert get_learning_gain(2.0, 2.1) == 0.1
        assert get_learning_gain(None, 2.1) == 0.0

    def test_record_card_review(self):
        session_card = make_session_card(0)
        session_card.consecutive_correct_before = 3
        card_after = Card(user_id=1, word_id=1, interval_days=1, ease_factor=2.3, difficulty_rating=0.6)

        record_card_review(session_card, card_after, ReviewOutcome.AGAIN, 2000, START + 5)

        assert session_card.is_reviewed
        assert session_card.is_correct is False
        assert session_card.streak_broken is True
        assert session_card.reviewed_at == START + 5
        assert session_card.interval_after_review == 1
        assert session_card.ease_factor_after_review == 2.3
        assert session_card.difficulty_rating == 0.6
        assert session_card.accuracy_score == 5.0
        assert session_card.performance_category == "NEEDS_WORK"
        assert session_card.learning_gain == -0.2
        assert session_card.retention_risk == 0.8


class TestSessionScores:
    """Tests for the session aggregates."""

    def test_average_response_time_ignores_unanswered(self):
        session = make_session([(ReviewOutcome.GOOD, 3000), (ReviewOutcome.GOOD, 5001)], total_cards=4)
        assert get_average_response_time(session) == 4000

    def test_cards_per_minute(self):
        assert get_cards_per_minute(10, 120) == 5.0
        assert get_cards_per_minute(10, 0) is None
        assert get_cards_per_minute(10, None) is None

    def test_efficiency_score(self):
        assert get_efficiency_score(100.0, 4000, 5) == 100.0
        # 8 seconds is one optimum away: speed score 50
        assert get_efficiency_score(50.0, 8000, 5) == 50.0
        assert get_efficiency_score(80.0, None, 5) == 86.0
        assert get_efficiency_score(100.0, 4000, 0) == 0.0

    def test_focus_score(self):
        steady = make_session([(ReviewOutcome.GOOD, 4000)] * 3)
        assert get_focus_score(steady, 4000) == 100.0

        erratic = make_session([(ReviewOutcome.GOOD, 2000), (ReviewOutcome.GOOD, 6000)])
        assert get_focus_score(erratic, 4000) == 50.0
        assert get_focus_score(erratic, 0) == 0.0

    def test_learning_velocity(self):
        improving = make_session([
            (ReviewOutcome.AGAIN, 4000),
            (ReviewOutcome.AGAIN, 4000),
            (ReviewOutcome.GOOD, 4000),
            (ReviewOutcome.GOOD, 4000),
        ])
        assert get_learning_velocity(improving) == 100.0

        assert get_learning_velocity(make_session([(ReviewOutcome.GOOD, 4000)])) == 0.0

    def test_completion_bonuses(self):
        session = make_session([(ReviewOutcome.GOOD, 4000)] * 4)
        session.cards_per_minute = 12.0
        assert get_completion_bonuses(session) == (10.0, 2.0, 3.0)

        partial = make_session([(ReviewOutcome.GOOD, 4000), (ReviewOutcome.AGAIN, 4000)], total_cards=3)
        partial.cards_per_minute = 1.0
        assert get_completion_bonuses(partial) == (None, None, None)

    def test_update_session_statistics(self):
        session = make_session([(ReviewOutcome.GOOD, 4000), (ReviewOutcome.AGAIN, 4000)], total_cards=4)
        session.session_duration = 60

        update_session_statistics(session)

        assert session.session_accuracy == 50.0
        assert session.average_response_time == 4000
        assert session.cards_per_minute == 2.0
        assert session.efficiency_score == 65.0
        assert session.total_session_score == 65.0

    def test_finalize_session_statistics(self):
        session = make_session([(ReviewOutcome.GOOD, 4000)] * 3)

        finalize_session_statistics(session, START + 30)

        assert session.end_time == START + 30
        assert session.session_duration == 30
        assert session.cards_per_minute == 6.0
        assert session.accuracy_bonus == 10.0
        assert session.time_efficiency_bonus is None
        assert session.consistency_bonus == 3.0
        # Bonuses push the score past the cap
        assert session.total_session_score == 100.0
