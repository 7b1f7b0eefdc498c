"""
Tunable parameters for the scheduler and the review sessions.

Defaults live in constants.py; a YAML file can override any of them:

    scheduler:
      maximum_interval: 180
    sessions:
      session_goal: 30
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from vocab import constants
from vocab.constants import CONFIG_PATH
from util.logging_util import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class SchedulerConfig:
    """Algorithm constants consumed by the scheduler core."""
    minimum_ease_factor: float = constants.MINIMUM_EASE_FACTOR
    maximum_ease_factor: float = constants.MAXIMUM_EASE_FACTOR
    initial_ease_factor: float = constants.INITIAL_EASE_FACTOR
    initial_interval: int = constants.INITIAL_INTERVAL
    maximum_interval: int = constants.MAXIMUM_INTERVAL
    initial_stability_factor: float = constants.INITIAL_STABILITY_FACTOR
    minimum_stability_factor: float = constants.MINIMUM_STABILITY_FACTOR
    response_time_normaliser_ms: int = constants.RESPONSE_TIME_NORMALISER_MS
    retention_window: int = constants.RETENTION_WINDOW
    retention_min_reviews: int = constants.RETENTION_MIN_REVIEWS
    difficult_card_threshold: float = constants.DIFFICULT_CARD_THRESHOLD

    def __post_init__(self):
        if not 0 < self.minimum_ease_factor <= self.maximum_ease_factor:
            raise ValueError(
                f"Invalid ease bounds: [{self.minimum_ease_factor}, {self.maximum_ease_factor}]"
            )
        if not self.minimum_ease_factor <= self.initial_ease_factor <= self.maximum_ease_factor:
            raise ValueError(f"Initial ease factor {self.initial_ease_factor} is out of bounds")
        if not 1 <= self.initial_interval <= self.maximum_interval:
            raise ValueError(
                f"Invalid interval bounds: initial={self.initial_interval}, "
                f"maximum={self.maximum_interval}"
            )
        if self.minimum_stability_factor <= 0:
            raise ValueError("Minimum stability factor must be positive")
        if self.initial_stability_factor < self.minimum_stability_factor:
            raise ValueError(f"Initial stability {self.initial_stability_factor} is below the minimum")
        if self.response_time_normaliser_ms <= 0:
            raise ValueError("Response time normaliser must be positive")
        if self.retention_window < 1:
            raise ValueError("Retention window must hold at least one review")


@dataclass(frozen=True)
class SessionConfig:
    """Limits applied by the review service when building sessions."""
    session_goal: int = constants.DEFAULT_SESSION_GOAL
    max_session_limit: int = constants.MAX_SESSION_LIMIT
    new_card_limit: int = constants.DEFAULT_NEW_CARD_LIMIT
    session_timeout_hours: int = constants.SESSION_TIMEOUT_HOURS

    def __post_init__(self):
        for f in fields(self):
            if getattr(self, f.name) < 1:
                raise ValueError(f"{f.name} must be at least 1")


@dataclass(frozen=True)
class VocabConfig:
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)


DEFAULT_SCHEDULER_CONFIG = SchedulerConfig()
DEFAULT_SESSION_CONFIG = SessionConfig()
DEFAULT_CONFIG = VocabConfig()


def _override(base, section_name: str, values: dict | None):
    """Return `base` with the keys from a YAML section applied."""
    if not values:
        return base
    if not isinstance(values, dict):
        raise ValueError(f"Config section '{section_name}' must be a mapping")

    known = {f.name for f in fields(base)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{section_name}': {sorted(unknown)}")

    return replace(base, **values)


def load_config(config_path: Path = CONFIG_PATH) -> VocabConfig:
    """Load scheduler and session configuration from a YAML file."""
    if not config_path.exists():
        logger.warning(f"Config not found at {config_path}, using defaults")
        return VocabConfig()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    unknown_sections = set(data) - {"scheduler", "sessions"}
    if unknown_sections:
        raise ValueError(f"Unknown config sections: {sorted(unknown_sections)}")

    config = VocabConfig(
        scheduler=_override(DEFAULT_SCHEDULER_CONFIG, "scheduler", data.get("scheduler")),
        sessions=_override(DEFAULT_SESSION_CONFIG, "sessions", data.get("sessions")),
    )
    logger.info(f"Loaded config from {config_path}")
    return config
