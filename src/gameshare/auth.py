"""Authorization gate.

A pure decision over (principal, resource, action). The engines build a
``Resource`` from the rows they already loaded and ask ``require`` before
writing anything; no ownership comparison lives anywhere else.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from .db.models import Account
from .db.schemas import AccountRole
from .errors import ForbiddenError


class Action(str, Enum):
    """Transitions and mutations guarded by the gate."""

    APPROVE_REQUEST = "approve_request"
    DECLINE_REQUEST = "decline_request"
    DELETE_REQUEST = "delete_request"
    CREATE_RECORD = "create_record"
    MARK_RETURNED = "mark_returned"
    DISPUTE_RECORD = "dispute_record"
    CLOSE_RECORD = "close_record"
    EXTEND_RECORD = "extend_record"
    UPDATE_EVENT = "update_event"
    DELETE_EVENT = "delete_event"
    DELETE_REGISTRATION = "delete_registration"


# Only the resource owner; the owner must also hold the game owner role
GAME_OWNER_ACTIONS = frozenset(
    {
        Action.APPROVE_REQUEST,
        Action.DECLINE_REQUEST,
        Action.CREATE_RECORD,
        Action.CLOSE_RECORD,
        Action.EXTEND_RECORD,
    }
)

# Only the resource owner, any role
OWNER_ACTIONS = frozenset({Action.UPDATE_EVENT, Action.DELETE_EVENT})

# Only the requesting/attending/borrowing party
PARTY_ACTIONS = frozenset(
    {Action.DELETE_REQUEST, Action.DELETE_REGISTRATION, Action.MARK_RETURNED}
)

# Either side
OWNER_OR_PARTY_ACTIONS = frozenset({Action.DISPUTE_RECORD})


@dataclass(frozen=True)
class Principal:
    """The account on whose behalf an operation runs."""

    account_id: int
    role: AccountRole = AccountRole.USER

    @property
    def is_game_owner(self) -> bool:
        return self.role == AccountRole.GAME_OWNER


@dataclass(frozen=True)
class Resource:
    """Ownership facts about the target of an action.

    ``owner_id`` is the game owner (for requests and records) or the host
    (for events). ``party_ids`` are the accounts on the other side: the
    requester, the borrower or the attendee.
    """

    owner_id: Optional[int] = None
    party_ids: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def of(cls, owner_id: Optional[int] = None, *party_ids: int) -> "Resource":
        return cls(owner_id=owner_id, party_ids=frozenset(party_ids))


def can_transition(principal: Principal, resource: Resource, action: Action) -> bool:
    """Decide whether ``principal`` may perform ``action`` on ``resource``."""
    is_owner = resource.owner_id is not None and principal.account_id == resource.owner_id
    is_party = principal.account_id in resource.party_ids

    if action in GAME_OWNER_ACTIONS:
        return is_owner and principal.is_game_owner
    if action in OWNER_ACTIONS:
        return is_owner
    if action in PARTY_ACTIONS:
        return is_party
    if action in OWNER_OR_PARTY_ACTIONS:
        return is_owner or is_party
    return False


def load_principal(session: Session, account_id: int) -> Principal:
    """Principal for an account id; unknown ids get no privileges."""
    account = session.get(Account, account_id)
    if not account:
        return Principal(account_id=account_id)
    return Principal(account_id=account.id, role=AccountRole(account.role))


def require(principal: Principal, resource: Resource, action: Action) -> None:
    """Raise ForbiddenError unless ``can_transition`` allows the action."""
    if not can_transition(principal, resource, action):
        raise ForbiddenError(
            f"Account {principal.account_id} is not allowed to {action.value.replace('_', ' ')}"
        )
