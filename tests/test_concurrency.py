"""Race tests: concurrent callers against a shared SQLite file.

Each test releases its threads through a barrier so the competing calls
overlap as closely as possible, then checks that exactly the allowed number
of them won.
"""

import threading
from datetime import date, datetime, timezone

import pytest

from gameshare.borrowing import BorrowRequestCreate, BorrowRequestManager, BorrowRequestStatus
from gameshare.clock import FixedClock
from gameshare.db import AccountCreate, AccountDirectory, AccountRole, Catalog, GameCreate
from gameshare.errors import ConflictError
from gameshare.events import EventCreate, EventManager
from gameshare.lending import LendingManager, LendingStatus


def race(callables):
    """Run callables in parallel; return (results, errors)."""
    barrier = threading.Barrier(len(callables))
    results, errors = [], []
    lock = threading.Lock()

    def run(fn):
        barrier.wait()
        try:
            value = fn()
        except Exception as exc:  # noqa: BLE001
            with lock:
                errors.append(exc)
        else:
            with lock:
                results.append(value)

    threads = [threading.Thread(target=run, args=(fn,)) for fn in callables]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


@pytest.fixture
def world(file_db):
    clock = FixedClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
    directory = AccountDirectory(file_db, clock=clock)
    owner = directory.create_account(
        AccountCreate(display_name="Olivia", email="olivia@example.com", role=AccountRole.GAME_OWNER)
    )
    users = [
        directory.create_account(AccountCreate(display_name=f"User {i}", email=f"user{i}@example.com"))
        for i in range(6)
    ]
    game = Catalog(file_db, clock=clock).create_game(GameCreate(name="Catan", owner_id=owner.id))
    return {
        "db": file_db,
        "clock": clock,
        "owner": owner,
        "users": users,
        "game": game,
        "borrowing": BorrowRequestManager(file_db, clock=clock),
        "lending": LendingManager(file_db, clock=clock, page_size=10, max_page_size=100),
        "events": EventManager(file_db, clock=clock),
    }


def test_overlapping_approvals_only_one_wins(world):
    """Two overlapping requests approved at once: one lending record, one conflict."""
    borrowing, owner, game = world["borrowing"], world["owner"], world["game"]
    requests = [
        borrowing.create_request(
            BorrowRequestCreate(
                requester_id=user.id,
                game_id=game.id,
                start_date=date(2024, 1, 1),
                end_date=date(2024, 1, 7),
            )
        )
        for user in world["users"][:2]
    ]

    results, errors = race([lambda r=r: borrowing.approve(r.id, owner.id) for r in requests])

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ConflictError)
    assert len(borrowing.find_by_status(BorrowRequestStatus.APPROVED)) == 1
    assert len(world["lending"].list_by_owner(owner.id)) == 1


def test_double_approval_consumes_request_once(world):
    borrowing, owner = world["borrowing"], world["owner"]
    request = borrowing.create_request(
        BorrowRequestCreate(
            requester_id=world["users"][0].id,
            game_id=world["game"].id,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 7),
        )
    )

    results, errors = race([lambda: borrowing.approve(request.id, owner.id)] * 2)

    assert len(results) == 1
    assert all(isinstance(e, ConflictError) for e in errors)
    assert len(world["lending"].list_by_owner(owner.id)) == 1


def test_concurrent_registrations_respect_capacity(world):
    """Six attendees race for two places."""
    events = world["events"]
    event = events.create_event(
        EventCreate(title="Finals", date_time=datetime(2024, 2, 1, 18, 0), max_participants=2),
        world["owner"].id,
    )

    results, errors = race([lambda u=u: events.register(u.id, event.id) for u in world["users"]])

    assert len(results) == 2
    assert len(errors) == 4
    assert all(isinstance(e, ConflictError) for e in errors)
    assert events.get_event(event.id).current_participants == 2
    assert events.registered_count(event.id) == 2


def test_concurrent_close_only_one_wins(world):
    borrowing, lending, owner = world["borrowing"], world["lending"], world["owner"]
    request = borrowing.create_request(
        BorrowRequestCreate(
            requester_id=world["users"][0].id,
            game_id=world["game"].id,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 7),
        )
    )
    record_id = borrowing.approve(request.id, owner.id).lending_record_id

    results, errors = race([lambda: lending.close(record_id, owner.id)] * 3)

    assert len(results) == 1
    assert len(errors) == 2
    assert all(isinstance(e, ConflictError) for e in errors)
    assert lending.get_record(record_id).status == LendingStatus.CLOSED
