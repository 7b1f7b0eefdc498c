"""
Review session orchestration.

Picks cards for a session, applies review outcomes through the scheduler,
and keeps the session's running statistics up to date.
"""

import time
from typing import Callable, Dict, List, Optional

from vocab import scheduler
from vocab.config import DEFAULT_CONFIG, VocabConfig
from vocab.constants import SECONDS_PER_HOUR
from vocab.database import (
    add_review_session,
    count_active_cards,
    count_due_cards,
    count_new_cards,
    find_active_sessions,
    find_difficult_cards,
    find_due_cards,
    find_expired_sessions,
    find_new_cards,
    find_random_cards,
    get_card,
    get_review_session,
    save_card_review,
    save_review_session,
)
from vocab.exceptions import (
    ActiveSessionExistsError,
    CardNotInSessionError,
    NoCardsAvailableError,
    SessionStateError,
)
from vocab.models import (
    Card,
    ReviewMode,
    ReviewOutcome,
    ReviewSession,
    ReviewSessionCard,
    SessionStatus,
)
from vocab.session_scoring import (
    finalize_session_statistics,
    record_card_review,
    update_session_statistics,
)
from util.logging_util import log_review_submitted, log_session_finished, setup_logger

logger = setup_logger(__name__)


def _now(now: Optional[int]) -> int:
    return int(time.time()) if now is None else now


# --- Card selection ---


def _dedupe(cards: List[Card]) -> List[Card]:
    seen = set()
    unique = []
    for card in cards:
        if card.id not in seen:
            seen.add(card.id)
            unique.append(card)
    return unique


def _select_cards(user_id: int, mode: ReviewMode, limit: int, now: int, config: VocabConfig) -> List[Card]:
    match mode:
        case ReviewMode.DUE_CARDS:
            return find_due_cards(user_id, now=now, limit=limit)
        case ReviewMode.NEW_CARDS:
            return find_new_cards(user_id, limit=min(limit, config.sessions.new_card_limit))
        case ReviewMode.DIFFICULT_CARDS:
            return find_difficult_cards(user_id, limit=limit, config=config.scheduler)
        case ReviewMode.RANDOM_REVIEW:
            return find_random_cards(user_id, limit=limit)
        case ReviewMode.ALL_CARDS:
            share = max(1, limit // 3)
            cards = (
                find_due_cards(user_id, now=now, limit=share)
                + find_new_cards(user_id, limit=share)
                + find_random_cards(user_id, limit=share)
            )
            return _dedupe(cards)[:limit]
        case ReviewMode.TARGETED_REVIEW:
            fallbacks: List[Callable[[], List[Card]]] = [
                lambda: find_due_cards(user_id, now=now, limit=limit),
                lambda: find_new_cards(user_id, limit=min(limit, config.sessions.new_card_limit)),
                lambda: find_random_cards(user_id, limit=limit),
            ]
            for fetch in fallbacks:
                cards = fetch()
                if cards:
                    return cards
            return []
        case _:
            raise ValueError(f"Unknown review mode: {mode}")


def _snapshot(card: Card, position: int) -> ReviewSessionCard:
    """The card's pre-review state, as recorded in the session."""
    return ReviewSessionCard(
        card_id=card.id,
        position=position,
        review_number=card.total_reviews + 1,
        interval_before_review=card.interval_days,
        ease_factor_before_review=card.ease_factor,
        consecutive_correct_before=card.consecutive_correct,
    )


# --- Session lifecycle ---


def get_active_session(user_id: int) -> Optional[ReviewSession]:
    """The user's unfinished (active or paused) session, if any."""
    sessions = find_active_sessions(user_id)
    return sessions[0] if sessions else None


def start_review_session(user_id: int, mode: ReviewMode, limit: Optional[int] = None,
                         now: Optional[int] = None, config: VocabConfig = DEFAULT_CONFIG) -> ReviewSession:
    """
    Start a new review session for a user.

    Args:
        user_id: Owner of the session
        mode: Which cards to pick
        limit: Requested number of cards; capped by the session goal
        now: Epoch seconds, defaults to the current time
        config: Scheduler and session limits

    Returns:
        The stored session with its cards in review order

    Raises:
        ActiveSessionExistsError: if the user has an unfinished session
        NoCardsAvailableError: if no card matches the mode
    """
    if limit is not None and limit < 1:
        raise ValueError(f"Session limit must be at least 1, got {limit}")

    existing = get_active_session(user_id)
    if existing is not None:
        raise ActiveSessionExistsError(user_id, existing.id)

    current_epoch = _now(now)
    goal = config.sessions.session_goal
    effective_limit = min(limit or goal, goal, config.sessions.max_session_limit)

    cards = _select_cards(user_id, mode, effective_limit, current_epoch, config)
    if not cards:
        raise NoCardsAvailableError(mode)

    review_session = ReviewSession(
        user_id=user_id,
        mode=mode,
        start_time=current_epoch,
        status=SessionStatus.ACTIVE,
        total_cards=len(cards),
        cards=[_snapshot(card, position) for position, card in enumerate(cards)],
    )
    stored = add_review_session(review_session)

    logger.info(
        f"Started review session {stored.id} for user {user_id} "
        f"({mode.value}, {stored.total_cards} cards)"
    )
    return stored


def _log_finished(review_session: ReviewSession):
    log_session_finished(
        logger,
        review_session.id,
        review_session.user_id,
        review_session.total_cards,
        review_session.session_accuracy,
    )


def submit_review(session_id: int, card_id: int, outcome: ReviewOutcome, response_time_ms: int,
                  now: Optional[int] = None, config: VocabConfig = DEFAULT_CONFIG) -> ReviewSession:
    """
    Record the answer to one card of an active session.

    The card is rescheduled, the session card gets its post-review state and
    scores, and the session is completed once every card has been answered.
    Card and session are saved together, so a concurrent answer to the same
    session fails with StaleSessionError and leaves the card untouched.

    Raises:
        SessionNotFoundError: if the session does not exist
        CardNotFoundError: if the card does not exist
        SessionStateError: if the session is not active, the card belongs to
            another user, is suspended or inactive, or was already answered
            in this session
        CardNotInSessionError: if the card is not part of the session
        StaleSessionError: if the session was saved concurrently
        StaleCardError: if the card was changed concurrently
        ValueError: for an invalid outcome or response time
    """
    current_epoch = _now(now)
    review_session = get_review_session(session_id)
    if review_session.status is not SessionStatus.ACTIVE:
        raise SessionStateError(
            f"Review session {session_id} is {review_session.status.value}, not active"
        )

    card = get_card(card_id)
    if card.user_id != review_session.user_id:
        raise SessionStateError(f"Card {card_id} does not belong to user {review_session.user_id}")
    if card.is_suspended or not card.is_active:
        raise SessionStateError(f"Card {card_id} is suspended or inactive and cannot be reviewed")

    session_card = next((c for c in review_session.cards if c.card_id == card_id), None)
    if session_card is None:
        raise CardNotInSessionError(session_id, card_id)
    if session_card.is_reviewed:
        raise SessionStateError(f"Card {card_id} was already reviewed in session {session_id}")

    updated = scheduler.apply_outcome(card, outcome, response_time_ms, now=current_epoch, config=config.scheduler)

    record_card_review(session_card, updated, outcome, response_time_ms, current_epoch)
    review_session.completed_cards += 1
    if outcome.is_correct:
        review_session.correct_answers += 1
    review_session.session_duration = max(0, current_epoch - review_session.start_time)
    update_session_statistics(review_session)

    finished = review_session.completed_cards >= review_session.total_cards
    if finished:
        finalize_session_statistics(review_session, current_epoch)
        review_session.status = SessionStatus.COMPLETED

    saved, stored = save_card_review(updated, review_session)
    scheduler.log_card_update(logger, card, saved, outcome)
    log_review_submitted(logger, session_id, card_id, outcome.name, response_time_ms)
    if finished:
        _log_finished(stored)

    return stored


def complete_session(session_id: int, now: Optional[int] = None) -> ReviewSession:
    """Finish a session early (or on timeout) and compute its final scores."""
    review_session = get_review_session(session_id)
    if review_session.is_finished:
        raise SessionStateError(
            f"Review session {session_id} is already {review_session.status.value}"
        )

    finalize_session_statistics(review_session, _now(now))
    review_session.status = SessionStatus.COMPLETED
    stored = save_review_session(review_session)
    _log_finished(stored)
    return stored


def pause_session(session_id: int) -> ReviewSession:
    review_session = get_review_session(session_id)
    if review_session.status is not SessionStatus.ACTIVE:
        raise SessionStateError(f"Only active sessions can be paused (session {session_id})")

    review_session.status = SessionStatus.PAUSED
    logger.info(f"Paused review session {session_id}")
    return save_review_session(review_session)


def resume_session(session_id: int) -> ReviewSession:
    review_session = get_review_session(session_id)
    if review_session.status is not SessionStatus.PAUSED:
        raise SessionStateError(f"Only paused sessions can be resumed (session {session_id})")

    review_session.status = SessionStatus.ACTIVE
    logger.info(f"Resumed review session {session_id}")
    return save_review_session(review_session)


def cancel_session(session_id: int, now: Optional[int] = None) -> ReviewSession:
    """Abandon a session. Answers already given stay applied to their cards."""
    review_session = get_review_session(session_id)
    if review_session.is_finished:
        raise SessionStateError(
            f"Review session {session_id} is already {review_session.status.value}"
        )

    current_epoch = _now(now)
    review_session.status = SessionStatus.CANCELLED
    review_session.end_time = current_epoch
    review_session.session_duration = max(0, current_epoch - review_session.start_time)
    logger.info(f"Cancelled review session {session_id}")
    return save_review_session(review_session)


def get_available_review_modes(user_id: int, now: Optional[int] = None,
                               config: VocabConfig = DEFAULT_CONFIG) -> List[ReviewMode]:
    """Modes that would yield at least one card for the user right now."""
    current_epoch = _now(now)
    active = count_active_cards(user_id)
    if active == 0:
        return []

    new = count_new_cards(user_id)
    available: Dict[ReviewMode, bool] = {
        ReviewMode.DUE_CARDS: count_due_cards(user_id, now=current_epoch) > 0,
        ReviewMode.NEW_CARDS: new > 0,
        ReviewMode.DIFFICULT_CARDS: bool(find_difficult_cards(user_id, limit=1, config=config.scheduler)),
        ReviewMode.RANDOM_REVIEW: active - new > 0,
        ReviewMode.TARGETED_REVIEW: True,
        ReviewMode.ALL_CARDS: True,
    }
    return [mode for mode in ReviewMode if available[mode]]


def timeout_expired_sessions(now: Optional[int] = None, config: VocabConfig = DEFAULT_CONFIG) -> List[int]:
    """Complete every unfinished session older than the session timeout.

    Returns:
        Ids of the sessions that were closed
    """
    current_epoch = _now(now)
    cutoff = current_epoch - config.sessions.session_timeout_hours * SECONDS_PER_HOUR

    closed = []
    for review_session in find_expired_sessions(cutoff):
        complete_session(review_session.id, now=current_epoch)
        closed.append(review_session.id)

    if closed:
        logger.info(f"Timed out {len(closed)} expired review sessions")
    else:
        logger.debug("No expired review sessions")
    return closed
