"""Tests for the authorization gate."""

import pytest

from gameshare.auth import Action, Principal, Resource, can_transition, load_principal, require
from gameshare.db import AccountRole
from gameshare.errors import ForbiddenError

OWNER = Principal(account_id=1, role=AccountRole.GAME_OWNER)
BORROWER = Principal(account_id=2)
STRANGER = Principal(account_id=3)
LOAN = Resource.of(1, 2)


class TestCanTransition:
    """Tests for the pure permission decision."""

    @pytest.mark.parametrize(
        "action",
        [
            Action.APPROVE_REQUEST,
            Action.DECLINE_REQUEST,
            Action.CREATE_RECORD,
            Action.CLOSE_RECORD,
            Action.EXTEND_RECORD,
        ],
    )
    def test_game_owner_actions(self, action):
        assert can_transition(OWNER, LOAN, action)
        assert not can_transition(BORROWER, LOAN, action)
        assert not can_transition(STRANGER, LOAN, action)

    def test_game_owner_actions_need_role(self):
        """Owning the resource without the game owner role is not enough."""
        demoted = Principal(account_id=1, role=AccountRole.USER)
        assert not can_transition(demoted, LOAN, Action.CLOSE_RECORD)

    def test_role_without_ownership_is_not_enough(self):
        other_owner = Principal(account_id=9, role=AccountRole.GAME_OWNER)
        assert not can_transition(other_owner, LOAN, Action.APPROVE_REQUEST)

    @pytest.mark.parametrize(
        "action", [Action.DELETE_REQUEST, Action.DELETE_REGISTRATION, Action.MARK_RETURNED]
    )
    def test_party_actions(self, action):
        assert can_transition(BORROWER, LOAN, action)
        assert not can_transition(OWNER, LOAN, action)
        assert not can_transition(STRANGER, LOAN, action)

    def test_dispute_either_side(self):
        assert can_transition(OWNER, LOAN, Action.DISPUTE_RECORD)
        assert can_transition(BORROWER, LOAN, Action.DISPUTE_RECORD)
        assert not can_transition(STRANGER, LOAN, Action.DISPUTE_RECORD)

    def test_event_host_needs_no_role(self):
        hosted = Resource.of(2)
        assert can_transition(BORROWER, hosted, Action.UPDATE_EVENT)
        assert can_transition(BORROWER, hosted, Action.DELETE_EVENT)
        assert not can_transition(OWNER, hosted, Action.UPDATE_EVENT)

    def test_resource_without_owner(self):
        assert not can_transition(OWNER, Resource.of(None, 2), Action.CLOSE_RECORD)


class TestRequire:
    """Tests for require and load_principal."""

    def test_require_raises_forbidden(self):
        with pytest.raises(ForbiddenError, match="close record"):
            require(STRANGER, LOAN, Action.CLOSE_RECORD)

    def test_require_passes(self):
        require(OWNER, LOAN, Action.CLOSE_RECORD)

    def test_load_principal(self, db, owner, borrower):
        with db.get_session() as session:
            assert load_principal(session, owner.id).is_game_owner
            assert not load_principal(session, borrower.id).is_game_owner

    def test_load_unknown_principal(self, db):
        with db.get_session() as session:
            principal = load_principal(session, 404)

        assert principal.account_id == 404
        assert principal.role == AccountRole.USER
