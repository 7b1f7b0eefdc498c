"""
Data models for the vocabulary review system.

Cards and history entries are immutable values: the scheduler consumes a
card and returns a new one. Sessions are plain mutable records owned by the
review service.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import List, Optional, Tuple

from vocab.constants import (
    INITIAL_EASE_FACTOR,
    INITIAL_INTERVAL,
    INITIAL_STABILITY_FACTOR,
)


@total_ordering
class ReviewOutcome(Enum):
    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    def __lt__(self, other):
        if not isinstance(other, ReviewOutcome):
            return NotImplemented
        return self.value < other.value

    @property
    def is_correct(self) -> bool:
        return self is not ReviewOutcome.AGAIN


class ReviewMode(Enum):
    DUE_CARDS = "due_cards"
    DIFFICULT_CARDS = "difficult_cards"
    RANDOM_REVIEW = "random_review"
    NEW_CARDS = "new_cards"
    TARGETED_REVIEW = "targeted_review"
    ALL_CARDS = "all_cards"


class SessionStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DifficultyLevel(Enum):
    BASIC = "basic"
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class ReviewHistoryEntry:
    """
    One past review of a card.

    Attributes:
        review_number: 1-based position of the review in the card's life.
        outcome: Outcome the user reported.
        response_time: Answer time in milliseconds.
        reviewed_at: Epoch seconds of the review.
        interval_before_review: Interval (days) the card had going in.
        ease_factor_before_review: Ease factor the card had going in.
    """

    review_number: int
    outcome: ReviewOutcome
    response_time: int
    reviewed_at: int
    interval_before_review: int
    ease_factor_before_review: float


@dataclass(frozen=True)
class Card:
    """Spaced-repetition scheduling state for one (user, word) pair."""

    user_id: int
    word_id: int
    id: Optional[int] = None

    interval_days: int = INITIAL_INTERVAL
    ease_factor: float = INITIAL_EASE_FACTOR
    stability_factor: float = INITIAL_STABILITY_FACTOR

    # Epoch seconds
    created_at: Optional[int] = None
    due_date: int = 0
    next_review: Optional[int] = None
    last_reviewed: Optional[int] = None

    total_reviews: int = 0
    correct_reviews: int = 0
    consecutive_correct: int = 0
    consecutive_incorrect: int = 0
    review_count_again: int = 0
    review_count_hard: int = 0
    review_count_good: int = 0
    review_count_easy: int = 0

    difficulty_rating: Optional[float] = None
    performance_index: Optional[float] = None
    retention_rate: Optional[float] = None
    average_response_time: Optional[int] = None  # ms
    total_study_time: int = 0  # ms
    last_review_outcome: Optional[ReviewOutcome] = None

    is_active: bool = True
    is_suspended: bool = False
    card_age_days: int = 0

    review_history: Tuple[ReviewHistoryEntry, ...] = ()

    # Optimistic lock counter, managed by the card store
    version: int = 0


@dataclass
class ReviewSessionCard:
    """A card's slot within a review session, with before/after snapshots."""

    card_id: int
    position: int
    review_number: int
    interval_before_review: int
    ease_factor_before_review: float
    consecutive_correct_before: int = 0
    session_id: Optional[int] = None
    id: Optional[int] = None

    outcome: Optional[ReviewOutcome] = None
    response_time: Optional[int] = None
    reviewed_at: Optional[int] = None
    is_correct: Optional[bool] = None
    interval_after_review: Optional[int] = None
    ease_factor_after_review: Optional[float] = None
    difficulty_rating: Optional[float] = None
    accuracy_score: Optional[float] = None
    performance_category: Optional[str] = None
    learning_gain: Optional[float] = None
    retention_risk: Optional[float] = None
    streak_broken: bool = False

    @property
    def is_reviewed(self) -> bool:
        return self.outcome is not None


@dataclass
class ReviewSession:
    """One study sitting: an ordered batch of cards plus aggregate scores."""

    user_id: int
    mode: ReviewMode
    start_time: int
    status: SessionStatus = SessionStatus.ACTIVE
    id: Optional[int] = None
    end_time: Optional[int] = None

    total_cards: int = 0
    completed_cards: int = 0
    correct_answers: int = 0
    average_response_time: Optional[int] = None

    session_accuracy: Optional[float] = None
    session_duration: Optional[int] = None  # seconds
    cards_per_minute: Optional[float] = None
    efficiency_score: Optional[float] = None
    difficulty_level: Optional[float] = None
    focus_score: Optional[float] = None
    learning_velocity: Optional[float] = None
    accuracy_bonus: Optional[float] = None
    time_efficiency_bonus: Optional[float] = None
    consistency_bonus: Optional[float] = None
    total_session_score: Optional[float] = None

    cards: List[ReviewSessionCard] = field(default_factory=list)

    # Optimistic lock counter, managed by the session store
    version: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)

    @property
    def remaining_cards(self) -> int:
        return self.total_cards - self.completed_cards

    @property
    def progress_percentage(self) -> float:
        if self.total_cards == 0:
            return 0.0
        return self.completed_cards / self.total_cards * 100

    def get_current_card(self) -> Optional[ReviewSessionCard]:
        """Return the first card in the session that has not been reviewed."""
        for session_card in self.cards:
            if not session_card.is_reviewed:
                return session_card
        return None
