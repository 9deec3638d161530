"""Pytest configuration and shared fixtures.

This module provides fixtures for testing gameshare: an in-memory
database, a fixed clock, seeded accounts and games, and the engines wired
to them.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

from gameshare.borrowing import BorrowRequestCreate, BorrowRequestManager
from gameshare.clock import FixedClock
from gameshare.config import reset_config
from gameshare.db import (
    AccountCreate,
    AccountDirectory,
    AccountResponse,
    AccountRole,
    Catalog,
    Database,
    GameCreate,
    GameResponse,
    reset_db,
)
from gameshare.events import EventManager
from gameshare.lending import LendingManager
from gameshare.notifications import RecordingNotifier


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db() -> Generator[Database, None, None]:
    """Create an in-memory database for testing."""
    reset_db()
    reset_config()

    database = Database(":memory:")
    database.create_tables()
    yield database

    database.engine.dispose()


@pytest.fixture
def file_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a file-backed database, needed when several threads write."""
    database = Database(str(tmp_path / "gameshare.db"), busy_timeout=10.0)
    database.create_tables()
    yield database

    database.engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2024-01-01 09:00 UTC."""
    return FixedClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def directory(db: Database, clock: FixedClock) -> AccountDirectory:
    return AccountDirectory(db, clock=clock)


@pytest.fixture
def catalog(db: Database, clock: FixedClock) -> Catalog:
    return Catalog(db, clock=clock)


@pytest.fixture
def owner(directory: AccountDirectory) -> AccountResponse:
    """O1: a game owner."""
    return directory.create_account(
        AccountCreate(display_name="Olivia Owner", email="olivia@example.com", role=AccountRole.GAME_OWNER)
    )


@pytest.fixture
def borrower(directory: AccountDirectory) -> AccountResponse:
    """U1: a plain user who borrows."""
    return directory.create_account(
        AccountCreate(display_name="Uma User", email="uma@example.com")
    )


@pytest.fixture
def stranger(directory: AccountDirectory) -> AccountResponse:
    """U2: a plain user with no stake in anything."""
    return directory.create_account(
        AccountCreate(display_name="Sam Stranger", email="sam@example.com")
    )


@pytest.fixture
def game(catalog: Catalog, owner: AccountResponse) -> GameResponse:
    """G1: owned by O1."""
    return catalog.create_game(
        GameCreate(name="Carcassonne", owner_id=owner.id, min_players=2, max_players=5, category="Tile")
    )


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def borrow_manager(db: Database, clock: FixedClock, notifier: RecordingNotifier) -> BorrowRequestManager:
    return BorrowRequestManager(db, clock=clock, notifier=notifier)


@pytest.fixture
def lending_manager(db: Database, clock: FixedClock, notifier: RecordingNotifier) -> LendingManager:
    return LendingManager(db, clock=clock, notifier=notifier, page_size=10, max_page_size=100)


@pytest.fixture
def event_manager(db: Database, clock: FixedClock, notifier: RecordingNotifier) -> EventManager:
    return EventManager(db, clock=clock, notifier=notifier)


@pytest.fixture
def pending_request(borrow_manager, borrower, game):
    """U1 asks for G1 from 2024-01-01 to 2024-01-07."""
    return borrow_manager.create_request(
        BorrowRequestCreate(
            requester_id=borrower.id,
            game_id=game.id,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 7),
        )
    )


@pytest.fixture
def approved_request(borrow_manager, owner, pending_request):
    """The pending request, approved by O1."""
    return borrow_manager.approve(pending_request.id, owner.id)


@pytest.fixture
def record(lending_manager, approved_request):
    """The ACTIVE lending record opened by the approval."""
    return lending_manager.get_record(approved_request.lending_record_id)
