import logging
import sys
from typing import Optional

# Configure logging format
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, level=logging.INFO) -> logging.Logger:
    """
    Sets up a logger with consistent formatting.

    Args:
        name: Name of the logger (typically __name__ from the calling module)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

    return logger

def log_review_submitted(logger: logging.Logger, session_id: int, card_id: int,
                         outcome: str, response_time_ms: int):
    """
    Logs a single review submitted within a session.

    Args:
        logger: Logger instance to use
        session_id: Review session the answer belongs to
        card_id: Card that was reviewed
        outcome: Name of the review outcome
        response_time_ms: Time the user took to answer
    """
    logger.debug(
        f"Review submitted - Session: {session_id}, Card: {card_id}, "
        f"Outcome: {outcome}, Response time: {response_time_ms}ms"
    )

def log_session_finished(logger: logging.Logger, session_id: int, user_id: int,
                         total_cards: int, accuracy: Optional[float]):
    """
    Logs the end of a review session.

    Args:
        logger: Logger instance to use
        session_id: Session that finished
        user_id: Owner of the session
        total_cards: Number of cards in the session
        accuracy: Final accuracy percentage, if any card was answered
    """
    accuracy_str = f"{accuracy:.2f}%" if accuracy is not None else "n/a"
    logger.info(
        f"Review session completed - Session: {session_id}, User: {user_id}, "
        f"Cards: {total_cards}, Accuracy: {accuracy_str}"
    )
