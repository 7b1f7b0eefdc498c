"""
Card store and session store for the vocabulary review system.

Uses SQLAlchemy ORM for database access. The public API uses the dataclasses
from models.py, with conversion to/from ORM models handled internally. Every
function runs in its own transaction.
"""

import time
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from vocab import scheduler
from vocab.config import DEFAULT_SCHEDULER_CONFIG, SchedulerConfig
from vocab.db_engine import get_engine, get_session
from vocab.exceptions import CardNotFoundError, SessionNotFoundError, StaleCardError, StaleSessionError
from vocab.models import Card, ReviewHistoryEntry, ReviewSession, SessionStatus
from vocab.orm_models import (
    Base,
    CardORM,
    ReviewSessionORM,
    card_dataclass_to_orm,
    card_orm_to_dataclass,
    copy_card_to_orm,
    copy_session_to_orm,
    history_dataclass_to_orm,
    session_orm_to_dataclass,
)
from util.logging_util import setup_logger

logger = setup_logger(__name__)

UNFINISHED_STATUSES = (SessionStatus.ACTIVE.value, SessionStatus.PAUSED.value)

CONSECUTIVE_INCORRECT_ATTENTION_THRESHOLD = 2
LOW_PERFORMANCE_MIN_REVIEWS = 5


def init_db():
    """Initialize the database schema."""
    engine = get_engine()
    Base.metadata.create_all(engine)


# --- Cards ---


def _active_cards(user_id: int):
    """Base query: the user's cards that are active and not suspended."""
    return select(CardORM).where(
        CardORM.user_id == user_id,
        CardORM.is_active.is_(True),
        CardORM.is_suspended.is_(False),
    )


def _fetch_cards(stmt, limit: Optional[int] = None) -> List[Card]:
    if limit is not None:
        stmt = stmt.limit(limit)
    with get_session() as session:
        orms = session.execute(stmt).scalars().all()
        return [card_orm_to_dataclass(orm) for orm in orms]


def _count(stmt) -> int:
    with get_session() as session:
        return session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()


def _load_card_orm(session: Session, card_id: int, for_update: bool = False) -> CardORM:
    stmt = select(CardORM).where(CardORM.id == card_id)
    if for_update:
        stmt = stmt.with_for_update()
    orm = session.execute(stmt).scalar_one_or_none()
    if orm is None:
        raise CardNotFoundError(card_id)
    return orm


def _sync_history(session: Session, orm: CardORM, history: Sequence[ReviewHistoryEntry]):
    """Bring the stored history in line with the card's append-only log.

    Stored rows that are a prefix of `history` are kept and the rest is
    appended. Otherwise the card was reset since the rows were written, and
    the stored log is replaced.
    """
    stored = [(h.review_number, h.reviewed_at, h.outcome) for h in orm.history]
    incoming = [(e.review_number, e.reviewed_at, e.outcome.name) for e in history[:len(stored)]]
    if stored != incoming:
        orm.history.clear()
        session.flush()
        stored = []

    for entry in history[len(stored):]:
        orm.history.append(history_dataclass_to_orm(entry))


def add_card(card: Card) -> Card:
    """Store a new card. Returns it with its id and version assigned."""
    with get_session() as session:
        orm = card_dataclass_to_orm(card)
        session.add(orm)
        session.flush()
        logger.info(f"Created card {orm.id} for user {card.user_id} and word {card.word_id}")
        return card_orm_to_dataclass(orm)


def get_card(card_id: int) -> Card:
    """Get a card by id, raising CardNotFoundError if it does not exist."""
    with get_session() as session:
        return card_orm_to_dataclass(_load_card_orm(session, card_id))


def find_card(user_id: int, word_id: int) -> Optional[Card]:
    """Get the card for a (user, word) pair, if there is one."""
    with get_session() as session:
        stmt = select(CardORM).where(CardORM.user_id == user_id, CardORM.word_id == word_id)
        orm = session.execute(stmt).scalar_one_or_none()
        if orm is None:
            return None
        return card_orm_to_dataclass(orm)


def get_or_create_card(user_id: int, word_id: int, now: Optional[int] = None,
                       config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Card:
    """Get the card for a (user, word) pair, creating a fresh one if needed."""
    card = find_card(user_id, word_id)
    if card is not None:
        return card
    return add_card(scheduler.create_card(user_id, word_id, now=now, config=config))


def bulk_create_cards(user_id: int, word_ids: Iterable[int], now: Optional[int] = None,
                      config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> List[Card]:
    """Create cards for every word the user does not have a card for yet."""
    word_ids = list(dict.fromkeys(word_ids))
    with get_session() as session:
        stmt = select(CardORM.word_id).where(
            CardORM.user_id == user_id,
            CardORM.word_id.in_(word_ids),
        )
        existing = set(session.execute(stmt).scalars().all())

        orms = [
            card_dataclass_to_orm(scheduler.create_card(user_id, word_id, now=now, config=config))
            for word_id in word_ids
            if word_id not in existing
        ]
        session.add_all(orms)
        session.flush()

        logger.info(
            f"Created {len(orms)} cards for user {user_id} "
            f"(skipped {len(existing)} existing)"
        )
        return [card_orm_to_dataclass(orm) for orm in orms]


def save_card(card: Card) -> Card:
    """Persist an updated card.

    The row is locked for the duration of the write, and the write only
    succeeds if nobody else saved the card since `card` was loaded.

    Raises:
        CardNotFoundError: if the card no longer exists.
        StaleCardError: if the stored version differs from `card.version`.
    """
    if card.id is None:
        raise ValueError("Cannot save a card without an id; use add_card for new cards")

    with get_session() as session:
        return card_orm_to_dataclass(_write_card(session, card))


def _write_card(session: Session, card: Card) -> CardORM:
    orm = _load_card_orm(session, card.id, for_update=True)
    if orm.version != card.version:
        raise StaleCardError(card.id, card.version, orm.version)

    copy_card_to_orm(card, orm)
    try:
        _sync_history(session, orm, card.review_history)
        session.flush()
    except StaleDataError as e:
        raise StaleCardError(card.id, card.version) from e
    return orm


def delete_card(card_id: int):
    """Delete a card and its review history."""
    with get_session() as session:
        orm = _load_card_orm(session, card_id)
        session.delete(orm)
    logger.info(f"Deleted card {card_id}")


def _set_suspended(card_id: int, suspended: bool) -> Card:
    with get_session() as session:
        orm = _load_card_orm(session, card_id, for_update=True)
        orm.is_suspended = suspended
        session.flush()
        return card_orm_to_dataclass(orm)


def suspend_card(card_id: int) -> Card:
    """Exclude a card from every selection query, keeping its state."""
    return _set_suspended(card_id, True)


def unsuspend_card(card_id: int) -> Card:
    return _set_suspended(card_id, False)


def reset_card(card_id: int, now: Optional[int] = None,
               config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> Card:
    """Reset a stored card to new-card defaults and clear its history."""
    card = get_card(card_id)
    reset = save_card(scheduler.reset_card(card, now=now, config=config))
    logger.info(f"Reset card {card_id}")
    return reset


def adjust_difficulty_for_user(user_id: int,
                               config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> int:
    """Apply the performance-based ease adjustment to all of a user's active cards.

    Returns the number of cards whose ease factor changed.
    """
    changed = 0
    with get_session() as session:
        orms = session.execute(_active_cards(user_id)).scalars().all()
        for orm in orms:
            card = card_orm_to_dataclass(orm)
            adjusted = scheduler.adjust_ease_for_performance(card, config)
            if adjusted.ease_factor != card.ease_factor:
                orm.ease_factor = adjusted.ease_factor
                changed += 1

    logger.info(f"Adjusted ease factor of {changed} cards for user {user_id}")
    return changed


def find_due_cards(user_id: int, now: Optional[int] = None, limit: Optional[int] = None) -> List[Card]:
    """Cards due at `now`, most overdue first."""
    current_epoch = int(time.time()) if now is None else now
    stmt = (
        _active_cards(user_id)
        .where(CardORM.due_date <= current_epoch)
        .order_by(CardORM.due_date.asc(), CardORM.id.asc())
    )
    return _fetch_cards(stmt, limit)


def find_new_cards(user_id: int, limit: Optional[int] = None) -> List[Card]:
    """Cards that have never been reviewed, oldest first."""
    stmt = (
        _active_cards(user_id)
        .where(CardORM.total_reviews == 0)
        .order_by(CardORM.id.asc())
    )
    return _fetch_cards(stmt, limit)


def find_difficult_cards(user_id: int, limit: Optional[int] = None,
                         config: SchedulerConfig = DEFAULT_SCHEDULER_CONFIG) -> List[Card]:
    """Cards rated above the difficulty threshold, hardest and weakest first."""
    stmt = (
        _active_cards(user_id)
        .where(
            CardORM.difficulty_rating.is_not(None),
            CardORM.difficulty_rating > config.difficult_card_threshold,
        )
        .order_by(
            CardORM.difficulty_rating.desc(),
            CardORM.performance_index.asc(),
            CardORM.id.asc(),
        )
    )
    return _fetch_cards(stmt, limit)


def find_random_cards(user_id: int, limit: Optional[int] = None) -> List[Card]:
    """Previously reviewed cards in random order."""
    stmt = (
        _active_cards(user_id)
        .where(CardORM.total_reviews > 0)
        .order_by(func.random())
    )
    return _fetch_cards(stmt, limit)


def find_active_cards(user_id: int, limit: Optional[int] = None) -> List[Card]:
    stmt = _active_cards(user_id).order_by(CardORM.due_date.asc(), CardORM.id.asc())
    return _fetch_cards(stmt, limit)


def find_suspended_cards(user_id: int) -> List[Card]:
    stmt = (
        select(CardORM)
        .where(CardORM.user_id == user_id, CardORM.is_suspended.is_(True))
        .order_by(CardORM.id.asc())
    )
    return _fetch_cards(stmt)


def find_low_performing_cards(user_id: int, min_reviews: int,
                              below: Optional[float] = None) -> List[Card]:
    """Active cards with at least `min_reviews` reviews, weakest first.

    With `below`, only cards whose performance index is under it are returned.
    """
    stmt = select(CardORM).where(
        CardORM.user_id == user_id,
        CardORM.is_active.is_(True),
        CardORM.total_reviews >= min_reviews,
    )
    if below is not None:
        stmt = stmt.where(CardORM.performance_index < below)
    stmt = stmt.order_by(CardORM.performance_index.asc(), CardORM.id.asc())
    return _fetch_cards(stmt)


def find_high_performing_cards(user_id: int, threshold: float) -> List[Card]:
    stmt = (
        select(CardORM)
        .where(
            CardORM.user_id == user_id,
            CardORM.is_active.is_(True),
            CardORM.performance_index >= threshold,
        )
        .order_by(CardORM.performance_index.desc(), CardORM.id.asc())
    )
    return _fetch_cards(stmt)


def find_cards_with_consecutive_incorrect(user_id: int, threshold: int) -> List[Card]:
    stmt = (
        select(CardORM)
        .where(
            CardORM.user_id == user_id,
            CardORM.is_active.is_(True),
            CardORM.consecutive_incorrect >= threshold,
        )
        .order_by(CardORM.consecutive_incorrect.desc(), CardORM.id.asc())
    )
    return _fetch_cards(stmt)


def find_cards_needing_attention(user_id: int) -> List[Card]:
    """Cards failing repeatedly plus persistently weak cards, without duplicates."""
    cards = find_cards_with_consecutive_incorrect(user_id, CONSECUTIVE_INCORRECT_ATTENTION_THRESHOLD)
    cards += find_low_performing_cards(
        user_id,
        LOW_PERFORMANCE_MIN_REVIEWS,
        below=scheduler.LOW_PERFORMANCE_THRESHOLD,
    )

    seen = set()
    unique = []
    for card in cards:
        if card.id not in seen:
            seen.add(card.id)
            unique.append(card)
    return unique


def count_due_cards(user_id: int, now: Optional[int] = None) -> int:
    current_epoch = int(time.time()) if now is None else now
    return _count(_active_cards(user_id).where(CardORM.due_date <= current_epoch))


def count_new_cards(user_id: int) -> int:
    return _count(_active_cards(user_id).where(CardORM.total_reviews == 0))


def count_active_cards(user_id: int) -> int:
    return _count(_active_cards(user_id))


# --- Review sessions ---


def add_review_session(review_session: ReviewSession) -> ReviewSession:
    """Store a new review session with its cards."""
    with get_session() as session:
        orm = ReviewSessionORM(version=1)
        copy_session_to_orm(review_session, orm)
        session.add(orm)
        session.flush()
        return session_orm_to_dataclass(orm)


def _load_session_orm(session: Session, session_id: int, for_update: bool = False) -> ReviewSessionORM:
    stmt = select(ReviewSessionORM).where(ReviewSessionORM.id == session_id)
    if for_update:
        stmt = stmt.with_for_update()
    orm = session.execute(stmt).scalar_one_or_none()
    if orm is None:
        raise SessionNotFoundError(session_id)
    return orm


def _write_review_session(session: Session, review_session: ReviewSession) -> ReviewSessionORM:
    orm = _load_session_orm(session, review_session.id, for_update=True)
    if orm.version != review_session.version:
        raise StaleSessionError(review_session.id, review_session.version, orm.version)

    copy_session_to_orm(review_session, orm)
    orm.version = review_session.version + 1
    try:
        session.flush()
    except StaleDataError as e:
        raise StaleSessionError(review_session.id, review_session.version) from e
    return orm


def get_review_session(session_id: int) -> ReviewSession:
    """Get a review session by id, raising SessionNotFoundError if missing."""
    with get_session() as session:
        return session_orm_to_dataclass(_load_session_orm(session, session_id))


def save_review_session(review_session: ReviewSession) -> ReviewSession:
    """Persist an updated review session and its cards.

    Like save_card, the write only succeeds if nobody else saved the session
    since `review_session` was loaded.

    Raises:
        SessionNotFoundError: if the session no longer exists.
        StaleSessionError: if the stored version differs from `review_session.version`.
    """
    if review_session.id is None:
        raise ValueError("Cannot save a session without an id; use add_review_session")

    with get_session() as session:
        return session_orm_to_dataclass(_write_review_session(session, review_session))


def save_card_review(card: Card, review_session: ReviewSession) -> Tuple[Card, ReviewSession]:
    """Persist a reviewed card and the session that recorded the review.

    Both rows are locked and version-checked in a single transaction, so the
    review is stored on both or on neither.

    Raises:
        StaleSessionError: if the session was saved since it was loaded.
        StaleCardError: if the card was saved since it was loaded.
    """
    if card.id is None or review_session.id is None:
        raise ValueError("Both the card and the session must already be stored")

    with get_session() as session:
        session_orm = _write_review_session(session, review_session)
        card_orm = _write_card(session, card)
        return card_orm_to_dataclass(card_orm), session_orm_to_dataclass(session_orm)


def _fetch_sessions(stmt) -> List[ReviewSession]:
    with get_session() as session:
        orms = session.execute(stmt).scalars().all()
        return [session_orm_to_dataclass(orm) for orm in orms]


def find_active_sessions(user_id: int) -> List[ReviewSession]:
    """The user's active or paused sessions, most recent first."""
    stmt = (
        select(ReviewSessionORM)
        .where(
            ReviewSessionORM.user_id == user_id,
            ReviewSessionORM.status.in_(UNFINISHED_STATUSES),
        )
        .order_by(ReviewSessionORM.start_time.desc(), ReviewSessionORM.id.desc())
    )
    return _fetch_sessions(stmt)


def find_user_sessions(user_id: int, limit: Optional[int] = None, offset: int = 0) -> List[ReviewSession]:
    """All of the user's sessions, most recent first."""
    stmt = (
        select(ReviewSessionORM)
        .where(ReviewSessionORM.user_id == user_id)
        .order_by(ReviewSessionORM.start_time.desc(), ReviewSessionORM.id.desc())
        .offset(offset)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return _fetch_sessions(stmt)


def find_completed_sessions(user_id: int, limit: Optional[int] = None) -> List[ReviewSession]:
    stmt = (
        select(ReviewSessionORM)
        .where(
            ReviewSessionORM.user_id == user_id,
            ReviewSessionORM.status == SessionStatus.COMPLETED.value,
        )
        .order_by(ReviewSessionORM.end_time.desc(), ReviewSessionORM.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return _fetch_sessions(stmt)


def find_expired_sessions(cutoff: int) -> List[ReviewSession]:
    """Unfinished sessions of any user started before `cutoff` (epoch seconds)."""
    stmt = (
        select(ReviewSessionORM)
        .where(
            ReviewSessionORM.status.in_(UNFINISHED_STATUSES),
            ReviewSessionORM.start_time < cutoff,
        )
        .order_by(ReviewSessionORM.start_time.asc(), ReviewSessionORM.id.asc())
    )
    return _fetch_sessions(stmt)
