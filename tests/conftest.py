"""
Pytest fixtures for the charges test suite.

Provides:
- Structured logging at DEBUG for the whole session, with LogContext
  cleared between tests
- ``captured_logs`` for asserting on emitted JSON records
- A DeterministicClock
- An in-memory SQLite session (fresh schema per test)
- A clean active configuration per test
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from charges_config import reset_active_config
from charges_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from charges_kernel.domain.clock import DeterministicClock
from charges_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def _fresh_active_config():
    reset_active_config()
    yield
    reset_active_config()


@pytest.fixture
def captured_logs():
    """
    Capture charges logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.create_charge(...)
            logs = captured_logs()
            assert any(r["message"] == "charge_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("charges")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session():
    """A session over a fresh in-memory SQLite schema."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    db_session = get_session()
    yield db_session
    db_session.rollback()
    db_session.close()
    drop_tables()
    reset_engine()
