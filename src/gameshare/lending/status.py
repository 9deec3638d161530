"""Lending record state machine.

Pure functions only: the derived OVERDUE status and the table of which
stored statuses each action may start from.
"""

from datetime import date, datetime
from typing import Union

from .schemas import LendingStatus

# Stored statuses each action accepts. OVERDUE never appears here because it
# is stored as ACTIVE.
TRANSITIONS: dict[str, frozenset[LendingStatus]] = {
    "mark_returned": frozenset({LendingStatus.ACTIVE}),
    "dispute": frozenset({LendingStatus.ACTIVE, LendingStatus.RETURN_PENDING}),
    "close": frozenset(
        {LendingStatus.ACTIVE, LendingStatus.RETURN_PENDING, LendingStatus.DISPUTED}
    ),
    "extend": frozenset(
        {LendingStatus.ACTIVE, LendingStatus.RETURN_PENDING, LendingStatus.DISPUTED}
    ),
}

TARGETS: dict[str, LendingStatus] = {
    "mark_returned": LendingStatus.RETURN_PENDING,
    "dispute": LendingStatus.DISPUTED,
    "close": LendingStatus.CLOSED,
}


def _as_date(moment: Union[date, datetime]) -> date:
    return moment.date() if isinstance(moment, datetime) else moment


def is_overdue(status: LendingStatus, end_date: date, now: Union[date, datetime]) -> bool:
    """An ACTIVE record is overdue once its end date lies before today."""
    return status == LendingStatus.ACTIVE and end_date < _as_date(now)


def effective_status(
    status: LendingStatus, end_date: date, now: Union[date, datetime]
) -> LendingStatus:
    """Status as a caller sees it at ``now``."""
    if is_overdue(status, end_date, now):
        return LendingStatus.OVERDUE
    return status


def days_overdue(status: LendingStatus, end_date: date, now: Union[date, datetime]) -> int:
    """Whole days past the end date (0 if not overdue)."""
    if not is_overdue(status, end_date, now):
        return 0
    return (_as_date(now) - end_date).days


def allowed_from(action: str) -> frozenset[LendingStatus]:
    return TRANSITIONS[action]
