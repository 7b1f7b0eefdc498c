"""Tests for the maintenance CLI."""

import time

import pytest
from sqlalchemy import create_engine, inspect

from vocab import db_engine
from vocab.constants import SECONDS_PER_HOUR
from vocab.models import ReviewMode, SessionStatus
from vocab.orm_models import Base

USER = 7


@pytest.fixture
def empty_db():
    """An in-memory database without any tables."""
    test_engine = create_engine("sqlite:///:memory:")
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


@pytest.fixture
def temp_db(empty_db):
    Base.metadata.create_all(empty_db)
    return empty_db


def test_init_db(empty_db, capsys):
    from vocab.maintenance import main

    assert main(["init-db"]) == 0

    tables = set(inspect(empty_db).get_table_names())
    assert {"cards", "card_review_history", "review_sessions", "review_session_cards"} <= tables
    assert "Database schema created" in capsys.readouterr().out


def test_sweep_sessions(temp_db, tmp_path, capsys):
    from vocab.database import bulk_create_cards, get_review_session
    from vocab.maintenance import main
    from vocab.review_service import start_review_session

    started = int(time.time()) - 3 * SECONDS_PER_HOUR
    bulk_create_cards(USER, [1, 2], now=started)
    session = start_review_session(USER, ReviewMode.DUE_CARDS, now=started)

    config_path = tmp_path / "config.yaml"
    config_path.write_text("sessions:\n  session_timeout_hours: 2\n")

    assert main(["sweep-sessions", "--config", str(config_path)]) == 0

    assert get_review_session(session.id).status == SessionStatus.COMPLETED
    assert "Closed 1 expired review sessions" in capsys.readouterr().out


def test_sweep_sessions_keeps_recent(temp_db, tmp_path, capsys):
    from vocab.database import bulk_create_cards, get_review_session
    from vocab.maintenance import main
    from vocab.review_service import start_review_session

    now = int(time.time())
    bulk_create_cards(USER, [1], now=now)
    session = start_review_session(USER, ReviewMode.DUE_CARDS, now=now)

    assert main(["sweep-sessions", "--config", str(tmp_path / "missing.yaml")]) == 0

    assert get_review_session(session.id).status == SessionStatus.ACTIVE
    assert "Closed 0 expired review sessions" in capsys.readouterr().out


def test_sweep_sessions_invalid_config(temp_db, tmp_path):
    from vocab.maintenance import main

    config_path = tmp_path / "config.yaml"
    config_path.write_text("sessions:\n  session_goal: 0\n")

    assert main(["sweep-sessions", "--config", str(config_path)]) == 1


def test_command_required():
    from vocab.maintenance import main

    with pytest.raises(SystemExit):
        main([])
