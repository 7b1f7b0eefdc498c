"""
Constants for the vocabulary review system.
"""

from pathlib import Path

MODULE_ROOT = Path(__file__).parent

DATA_DIR = MODULE_ROOT / "data"

CONFIG_PATH = DATA_DIR / "config.yaml"

DB_NAME = "vocab_review.db"
DATABASE_URL_ENV = "VOCAB_DATABASE_URL"

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_HOUR = 60 * 60

# Scheduler defaults
MINIMUM_EASE_FACTOR = 1.3
MAXIMUM_EASE_FACTOR = 2.5
INITIAL_EASE_FACTOR = 2.5
INITIAL_INTERVAL = 1
MAXIMUM_INTERVAL = 365
INITIAL_STABILITY_FACTOR = 1.0
MINIMUM_STABILITY_FACTOR = 0.1

# Response time at which a card counts as maximally slow (10 seconds)
RESPONSE_TIME_NORMALISER_MS = 10_000

RETENTION_WINDOW = 10
RETENTION_MIN_REVIEWS = 3

DIFFICULT_CARD_THRESHOLD = 0.5

# Session defaults
DEFAULT_SESSION_GOAL = 20
MAX_SESSION_LIMIT = 100
DEFAULT_NEW_CARD_LIMIT = 10
SESSION_TIMEOUT_HOURS = 24
