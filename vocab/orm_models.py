"""
SQLAlchemy ORM models for the vocabulary review system.

These models are internal to the database layer. The public interface
uses the dataclasses from models.py.
"""

from typing import List, Optional

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from vocab.models import (
    Card,
    ReviewHistoryEntry,
    ReviewMode,
    ReviewOutcome,
    ReviewSession,
    ReviewSessionCard,
    SessionStatus,
)


class Base(DeclarativeBase):
    pass


class CardORM(Base):
    """SQLAlchemy model for cards table."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    word_id: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    stability_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    created_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    due_date: Mapped[int] = mapped_column(Integer, nullable=False)
    next_review: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_reviewed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consecutive_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consecutive_incorrect: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_count_again: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_count_hard: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_count_good: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_count_easy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    difficulty_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    performance_index: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    retention_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_response_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_study_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_review_outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    card_age_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    history: Mapped[List["ReviewHistoryORM"]] = relationship(
        order_by="ReviewHistoryORM.review_number",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "word_id", name="uq_card_user_word"),
        Index("idx_cards_user_due", "user_id", "due_date"),
    )

    # SQLAlchemy bumps the version on every UPDATE and refuses to write a
    # row whose version changed since it was loaded.
    __mapper_args__ = {"version_id_col": version}


class ReviewHistoryORM(Base):
    """SQLAlchemy model for card_review_history table."""

    __tablename__ = "card_review_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id"), nullable=False)
    review_number: Mapped[int] = mapped_column(Integer, nullable=False)
    outcome: Mapped[str] = mapped_column(Text, nullable=False)
    response_time: Mapped[int] = mapped_column(Integer, nullable=False)
    reviewed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_before_review: Mapped[int] = mapped_column(Integer, nullable=False)
    ease_factor_before_review: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("card_id", "review_number", name="uq_history_card_review"),
    )


class ReviewSessionORM(Base):
    """SQLAlchemy model for review_sessions table."""

    __tablename__ = "review_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    mode: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    start_time: Mapped[int] = mapped_column(Integer, nullable=False)
    end_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_cards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_cards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_response_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    session_accuracy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    session_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cards_per_minute: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    efficiency_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    difficulty_level: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    focus_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    learning_velocity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    accuracy_bonus: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    time_efficiency_bonus: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    consistency_bonus: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_session_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    cards: Mapped[List["ReviewSessionCardORM"]] = relationship(
        order_by="ReviewSessionCardORM.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_review_sessions_user_status", "user_id", "status"),
    )

    # The session store sets the next version on every save, so a save that
    # only touches session cards still updates (and checks) this row.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class ReviewSessionCardORM(Base):
    """SQLAlchemy model for review_session_cards table."""

    __tablename__ = "review_session_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("review_sessions.id"), nullable=False)
    # No foreign key: session records outlive deleted cards
    card_id: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    review_number: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_before_review: Mapped[int] = mapped_column(Integer, nullable=False)
    ease_factor_before_review: Mapped[float] = mapped_column(Float, nullable=False)
    consecutive_correct_before: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    interval_after_review: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ease_factor_after_review: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    difficulty_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    accuracy_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    performance_category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    learning_gain: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    retention_risk: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    streak_broken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_review_session_cards_session_id", "session_id"),
    )


# Conversion functions

CARD_FIELDS = (
    "user_id",
    "word_id",
    "interval_days",
    "ease_factor",
    "stability_factor",
    "created_at",
    "due_date",
    "next_review",
    "last_reviewed",
    "total_reviews",
    "correct_reviews",
    "consecutive_correct",
    "consecutive_incorrect",
    "review_count_again",
    "review_count_hard",
    "review_count_good",
    "review_count_easy",
    "difficulty_rating",
    "performance_index",
    "retention_rate",
    "average_response_time",
    "total_study_time",
    "is_active",
    "is_suspended",
    "card_age_days",
)

SESSION_FIELDS = (
    "user_id",
    "start_time",
    "end_time",
    "total_cards",
    "completed_cards",
    "correct_answers",
    "average_response_time",
    "session_accuracy",
    "session_duration",
    "cards_per_minute",
    "efficiency_score",
    "difficulty_level",
    "focus_score",
    "learning_velocity",
    "accuracy_bonus",
    "time_efficiency_bonus",
    "consistency_bonus",
    "total_session_score",
)

SESSION_CARD_FIELDS = (
    "card_id",
    "position",
    "review_number",
    "interval_before_review",
    "ease_factor_before_review",
    "consecutive_correct_before",
    "response_time",
    "reviewed_at",
    "is_correct",
    "interval_after_review",
    "ease_factor_after_review",
    "difficulty_rating",
    "accuracy_score",
    "performance_category",
    "learning_gain",
    "retention_risk",
    "streak_broken",
)


def _outcome_or_none(name: Optional[str]) -> Optional[ReviewOutcome]:
    return ReviewOutcome[name] if name else None


def history_orm_to_dataclass(orm: ReviewHistoryORM) -> ReviewHistoryEntry:
    """Convert a ReviewHistoryORM instance to a ReviewHistoryEntry dataclass."""
    return ReviewHistoryEntry(
        review_number=orm.review_number,
        outcome=ReviewOutcome[orm.outcome],
        response_time=orm.response_time,
        reviewed_at=orm.reviewed_at,
        interval_before_review=orm.interval_before_review,
        ease_factor_before_review=orm.ease_factor_before_review,
    )


def history_dataclass_to_orm(entry: ReviewHistoryEntry) -> ReviewHistoryORM:
    """Convert a ReviewHistoryEntry dataclass to a ReviewHistoryORM instance."""
    return ReviewHistoryORM(
        review_number=entry.review_number,
        outcome=entry.outcome.name,
        response_time=entry.response_time,
        reviewed_at=entry.reviewed_at,
        interval_before_review=entry.interval_before_review,
        ease_factor_before_review=entry.ease_factor_before_review,
    )


def card_orm_to_dataclass(orm: CardORM) -> Card:
    """Convert a CardORM instance (with its history) to a Card dataclass."""
    values = {name: getattr(orm, name) for name in CARD_FIELDS}
    return Card(
        id=orm.id,
        last_review_outcome=_outcome_or_none(orm.last_review_outcome),
        review_history=tuple(history_orm_to_dataclass(h) for h in orm.history),
        version=orm.version or 0,
        **values,
    )


def copy_card_to_orm(card: Card, orm: CardORM):
    """Write a Card's scalar fields onto an ORM row. History is handled separately."""
    for name in CARD_FIELDS:
        setattr(orm, name, getattr(card, name))
    orm.last_review_outcome = card.last_review_outcome.name if card.last_review_outcome else None


def card_dataclass_to_orm(card: Card) -> CardORM:
    """Convert a Card dataclass to a new CardORM instance."""
    orm = CardORM()
    copy_card_to_orm(card, orm)
    orm.history = [history_dataclass_to_orm(entry) for entry in card.review_history]
    return orm


def session_card_orm_to_dataclass(orm: ReviewSessionCardORM) -> ReviewSessionCard:
    """Convert a ReviewSessionCardORM instance to a ReviewSessionCard dataclass."""
    values = {name: getattr(orm, name) for name in SESSION_CARD_FIELDS}
    return ReviewSessionCard(
        id=orm.id,
        session_id=orm.session_id,
        outcome=_outcome_or_none(orm.outcome),
        **values,
    )


def copy_session_card_to_orm(session_card: ReviewSessionCard, orm: ReviewSessionCardORM):
    for name in SESSION_CARD_FIELDS:
        setattr(orm, name, getattr(session_card, name))
    orm.outcome = session_card.outcome.name if session_card.outcome else None


def session_orm_to_dataclass(orm: ReviewSessionORM) -> ReviewSession:
    """Convert a ReviewSessionORM instance (with its cards) to a ReviewSession dataclass."""
    values = {name: getattr(orm, name) for name in SESSION_FIELDS}
    return ReviewSession(
        id=orm.id,
        mode=ReviewMode(orm.mode),
        status=SessionStatus(orm.status),
        cards=[session_card_orm_to_dataclass(c) for c in orm.cards],
        version=orm.version or 0,
        **values,
    )


def copy_session_to_orm(session: ReviewSession, orm: ReviewSessionORM):
    """Write a ReviewSession's fields and cards onto an ORM row."""
    for name in SESSION_FIELDS:
        setattr(orm, name, getattr(session, name))
    orm.mode = session.mode.value
    orm.status = session.status.value

    existing = {c.id: c for c in orm.cards if c.id is not None}
    for session_card in session.cards:
        card_orm = existing.get(session_card.id) if session_card.id is not None else None
        if card_orm is None:
            card_orm = ReviewSessionCardORM()
            orm.cards.append(card_orm)
        copy_session_card_to_orm(session_card, card_orm)
