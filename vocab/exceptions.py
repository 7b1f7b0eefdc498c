"""
Errors raised by the card store and the review service.

Invalid arguments to the pure scheduler functions raise ValueError instead.
"""

from typing import Optional


class VocabError(Exception):
    pass


class CardNotFoundError(VocabError, LookupError):
    def __init__(self, card_id: int):
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id


class SessionNotFoundError(VocabError, LookupError):
    def __init__(self, session_id: int):
        super().__init__(f"Review session {session_id} not found")
        self.session_id = session_id


class CardNotInSessionError(VocabError, LookupError):
    def __init__(self, session_id: int, card_id: int):
        super().__init__(f"Card {card_id} is not part of review session {session_id}")
        self.session_id = session_id
        self.card_id = card_id


class StaleCardError(VocabError):
    """The card was modified by someone else since it was loaded."""

    def __init__(self, card_id: int, expected_version: int, actual_version: Optional[int] = None):
        found = f", found {actual_version}" if actual_version is not None else ""
        super().__init__(
            f"Card {card_id} was modified concurrently "
            f"(expected version {expected_version}{found})"
        )
        self.card_id = card_id


class StaleSessionError(VocabError):
    """The review session was saved by someone else since it was loaded."""

    def __init__(self, session_id: int, expected_version: int, actual_version: Optional[int] = None):
        found = f", found {actual_version}" if actual_version is not None else ""
        super().__init__(
            f"Review session {session_id} was modified concurrently "
            f"(expected version {expected_version}{found})"
        )
        self.session_id = session_id


class SessionStateError(VocabError):
    """The requested operation is not allowed in the session's current state."""


class ActiveSessionExistsError(SessionStateError):
    def __init__(self, user_id: int, session_id: int):
        super().__init__(f"User {user_id} already has an active review session ({session_id})")
        self.user_id = user_id
        self.session_id = session_id


class NoCardsAvailableError(SessionStateError):
    def __init__(self, mode):
        super().__init__(f"No cards available for review in mode: {mode.name}")
        self.mode = mode
