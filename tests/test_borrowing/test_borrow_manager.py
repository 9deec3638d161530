"""Tests for BorrowRequestManager."""

from datetime import date

import pytest

from gameshare.borrowing import BorrowRequestCreate, BorrowRequestStatus
from gameshare.db import AccountCreate, AccountRole
from gameshare.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from gameshare.lending import LendingStatus


def make_request(borrow_manager, requester_id, game_id, start, end):
    return borrow_manager.create_request(
        BorrowRequestCreate(
            requester_id=requester_id,
            game_id=game_id,
            start_date=start,
            end_date=end,
        )
    )


class TestCreateRequest:
    """Tests for creating borrow requests."""

    def test_create_request_is_pending(self, pending_request, borrower, game, clock):
        """A new request starts PENDING with the clock's timestamp."""
        assert pending_request.id is not None
        assert pending_request.status == BorrowRequestStatus.PENDING
        assert pending_request.requester_id == borrower.id
        assert pending_request.game_id == game.id
        assert pending_request.start_date == date(2024, 1, 1)
        assert pending_request.end_date == date(2024, 1, 7)
        assert pending_request.request_date == clock.now()
        assert pending_request.lending_record_id is None

    def test_single_day_request(self, borrow_manager, borrower, game):
        """Start equal to end is allowed."""
        request = make_request(borrow_manager, borrower.id, game.id, date(2024, 2, 1), date(2024, 2, 1))
        assert request.status == BorrowRequestStatus.PENDING

    def test_start_after_end_rejected(self, borrow_manager, borrower, game):
        """Test that an inverted date range is a validation error."""
        with pytest.raises(ValidationError):
            make_request(borrow_manager, borrower.id, game.id, date(2024, 1, 8), date(2024, 1, 7))

    def test_unknown_requester_rejected(self, borrow_manager, game):
        with pytest.raises(ValidationError, match="Requester"):
            make_request(borrow_manager, 999, game.id, date(2024, 1, 1), date(2024, 1, 2))

    def test_unknown_game_rejected(self, borrow_manager, borrower):
        with pytest.raises(ValidationError, match="Game"):
            make_request(borrow_manager, borrower.id, 999, date(2024, 1, 1), date(2024, 1, 2))

    def test_owner_cannot_request_own_game(self, borrow_manager, owner, game):
        """Test that owners cannot borrow from themselves."""
        with pytest.raises(ValidationError, match="own game"):
            make_request(borrow_manager, owner.id, game.id, date(2024, 1, 1), date(2024, 1, 2))

    def test_overlap_with_approved_request_rejected(
        self, borrow_manager, approved_request, stranger, game
    ):
        """Test that a request overlapping an approved loan is a conflict."""
        with pytest.raises(ConflictError, match="unavailable"):
            make_request(borrow_manager, stranger.id, game.id, date(2024, 1, 5), date(2024, 1, 10))

    def test_overlap_with_pending_request_allowed(self, borrow_manager, pending_request, stranger, game):
        """Only APPROVED requests block a period."""
        request = make_request(borrow_manager, stranger.id, game.id, date(2024, 1, 3), date(2024, 1, 4))
        assert request.status == BorrowRequestStatus.PENDING

    def test_create_notifies_owner(self, pending_request, notifier, owner):
        name, payload = notifier.events[-1]
        assert name == "borrow_request.created"
        assert payload["owner_id"] == owner.id


class TestApprove:
    """Tests for approving requests."""

    def test_approve_opens_lending_record(self, borrow_manager, lending_manager, owner, pending_request):
        """Approval yields APPROVED and an ACTIVE record with the same dates."""
        approved = borrow_manager.approve(pending_request.id, owner.id)

        assert approved.status == BorrowRequestStatus.APPROVED
        assert approved.responder_id == owner.id
        assert approved.lending_record_id is not None

        record = lending_manager.get_record(approved.lending_record_id)
        assert record.status == LendingStatus.ACTIVE
        assert record.request_id == pending_request.id
        assert record.owner_id == owner.id
        assert record.borrower_id == pending_request.requester_id
        assert record.start_date == date(2024, 1, 1)
        assert record.end_date == date(2024, 1, 7)

    def test_approve_missing_request(self, borrow_manager, owner):
        with pytest.raises(NotFoundError):
            borrow_manager.approve(999, owner.id)

    def test_approve_by_non_owner_forbidden(self, borrow_manager, stranger, pending_request):
        """Test that only the game owner can approve."""
        with pytest.raises(ForbiddenError):
            borrow_manager.approve(pending_request.id, stranger.id)

        assert borrow_manager.find_by_id(pending_request.id).status == BorrowRequestStatus.PENDING

    def test_approve_by_requester_forbidden(self, borrow_manager, borrower, pending_request):
        with pytest.raises(ForbiddenError):
            borrow_manager.approve(pending_request.id, borrower.id)

    def test_forbidden_checked_before_status(self, borrow_manager, stranger, approved_request):
        """A non-owner gets ForbiddenError even when the request is no longer pending."""
        with pytest.raises(ForbiddenError):
            borrow_manager.approve(approved_request.id, stranger.id)

    def test_approve_twice_conflicts(self, borrow_manager, owner, approved_request, lending_manager):
        """Test that approval consumes the request exactly once."""
        with pytest.raises(ConflictError):
            borrow_manager.approve(approved_request.id, owner.id)

        assert len(lending_manager.list_by_owner(owner.id)) == 1

    def test_approve_declined_conflicts(self, borrow_manager, owner, pending_request):
        borrow_manager.decline(pending_request.id, owner.id)
        with pytest.raises(ConflictError):
            borrow_manager.approve(pending_request.id, owner.id)

    def test_approve_overlapping_pending_requests(self, borrow_manager, owner, borrower, stranger, game):
        """Two pending requests may overlap; only the first approval wins."""
        first = make_request(borrow_manager, borrower.id, game.id, date(2024, 3, 1), date(2024, 3, 10))
        second = make_request(borrow_manager, stranger.id, game.id, date(2024, 3, 5), date(2024, 3, 12))

        borrow_manager.approve(first.id, owner.id)
        with pytest.raises(ConflictError, match="overlapping"):
            borrow_manager.approve(second.id, owner.id)

        assert borrow_manager.find_by_id(second.id).status == BorrowRequestStatus.PENDING

    def test_owner_without_role_cannot_approve(self, borrow_manager, db, borrower, game):
        """An account that owns the row but lost the game owner role is refused."""
        from gameshare.db.models import Account

        request = make_request(borrow_manager, borrower.id, game.id, date(2024, 4, 1), date(2024, 4, 2))
        with db.get_session() as session:
            session.get(Account, game.owner_id).role = AccountRole.USER.value

        with pytest.raises(ForbiddenError):
            borrow_manager.approve(request.id, game.owner_id)

    def test_approve_notifies_requester(self, approved_request, notifier, borrower):
        name, payload = notifier.events[-1]
        assert name == "borrow_request.approved"
        assert payload["requester_id"] == borrower.id
        assert payload["lending_record_id"] == approved_request.lending_record_id


class TestDecline:
    """Tests for declining requests."""

    def test_decline(self, borrow_manager, owner, pending_request, lending_manager):
        declined = borrow_manager.decline(pending_request.id, owner.id)

        assert declined.status == BorrowRequestStatus.DECLINED
        assert declined.responder_id == owner.id
        assert lending_manager.list_by_owner(owner.id) == []

    def test_decline_by_non_owner_forbidden(self, borrow_manager, stranger, pending_request):
        with pytest.raises(ForbiddenError):
            borrow_manager.decline(pending_request.id, stranger.id)

    def test_decline_approved_conflicts(self, borrow_manager, owner, approved_request):
        """Terminal states cannot move again."""
        with pytest.raises(ConflictError):
            borrow_manager.decline(approved_request.id, owner.id)

    def test_decline_missing(self, borrow_manager, owner):
        with pytest.raises(NotFoundError):
            borrow_manager.decline(12345, owner.id)


class TestDelete:
    """Tests for deleting requests."""

    def test_requester_deletes_pending(self, borrow_manager, borrower, pending_request):
        borrow_manager.delete(pending_request.id, borrower.id)

        with pytest.raises(NotFoundError):
            borrow_manager.find_by_id(pending_request.id)

    def test_other_account_cannot_delete(self, borrow_manager, owner, stranger, pending_request):
        """Neither the owner nor a stranger may withdraw someone else's request."""
        for account in (owner, stranger):
            with pytest.raises(ForbiddenError):
                borrow_manager.delete(pending_request.id, account.id)

    def test_cannot_delete_approved(self, borrow_manager, borrower, approved_request):
        with pytest.raises(ForbiddenError, match="PENDING"):
            borrow_manager.delete(approved_request.id, borrower.id)

    def test_delete_missing(self, borrow_manager, borrower):
        with pytest.raises(NotFoundError):
            borrow_manager.delete(999, borrower.id)


class TestQueries:
    """Tests for request queries."""

    def test_find_by_requester_and_status(self, borrow_manager, owner, borrower, stranger, game):
        a = make_request(borrow_manager, borrower.id, game.id, date(2024, 5, 1), date(2024, 5, 2))
        b = make_request(borrow_manager, stranger.id, game.id, date(2024, 6, 1), date(2024, 6, 2))
        borrow_manager.approve(b.id, owner.id)

        assert [r.id for r in borrow_manager.find_by_requester(borrower.id)] == [a.id]
        assert [r.id for r in borrow_manager.find_by_status(BorrowRequestStatus.APPROVED)] == [b.id]
        assert len(borrow_manager.list_requests()) == 2

    def test_find_pending_for_owner(self, borrow_manager, directory, catalog, owner, borrower, game):
        from gameshare.db import GameCreate

        other_owner = directory.create_account(
            AccountCreate(display_name="Otto", email="otto@example.com", role=AccountRole.GAME_OWNER)
        )
        other_game = catalog.create_game(GameCreate(name="Azul", owner_id=other_owner.id))

        mine = make_request(borrow_manager, borrower.id, game.id, date(2024, 5, 1), date(2024, 5, 2))
        make_request(borrow_manager, borrower.id, other_game.id, date(2024, 5, 1), date(2024, 5, 2))

        assert [r.id for r in borrow_manager.find_pending_for_owner(owner.id)] == [mine.id]

    def test_find_by_id_includes_record(self, borrow_manager, approved_request):
        found = borrow_manager.find_by_id(approved_request.id)
        assert found.lending_record_id == approved_request.lending_record_id

    def test_check_for_overlaps(self, borrow_manager, approved_request, game):
        """True means the period is free."""
        assert borrow_manager.check_for_overlaps(game.id, date(2024, 1, 8), date(2024, 1, 9))
        assert not borrow_manager.check_for_overlaps(game.id, date(2024, 1, 7), date(2024, 1, 9))
        assert borrow_manager.check_for_overlaps(
            game.id, date(2024, 1, 2), date(2024, 1, 3), exclude_request_id=approved_request.id
        )
