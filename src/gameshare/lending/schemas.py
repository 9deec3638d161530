"""Pydantic schemas for lending records."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LendingStatus(str, Enum):
    """Status of a lending record.

    OVERDUE is never stored; it is how an ACTIVE record past its end date
    reads.
    """

    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    RETURN_PENDING = "RETURN_PENDING"
    DISPUTED = "DISPUTED"
    CLOSED = "CLOSED"


class DamageSeverity(int, Enum):
    """Damage assessed when a game comes back."""

    NONE = 0
    MINOR = 1
    MODERATE = 2
    SEVERE = 3


class CloseRequest(BaseModel):
    """Owner's confirmation that a game came back."""

    damaged: bool = False
    damage_notes: Optional[str] = None
    damage_severity: int = 0
    reason: Optional[str] = Field(None, max_length=500)


class LendingRecordFilter(BaseModel):
    """Composable filters for lending history; unset fields are ignored."""

    status: Optional[LendingStatus] = None
    owner_id: Optional[int] = None
    borrower_id: Optional[int] = None
    game_id: Optional[int] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None


class LendingRecordResponse(BaseModel):
    """Schema for lending record responses."""

    id: int
    request_id: int
    owner_id: int
    borrower_id: int
    game_id: int
    start_date: date
    end_date: date
    stored_status: LendingStatus
    status: LendingStatus
    is_overdue: bool
    days_overdue: int

    returned_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None
    disputed_by: Optional[int] = None
    disputed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    closing_reason: Optional[str] = None

    damaged: bool = False
    damage_notes: Optional[str] = None
    damage_severity: int = 0
    damage_assessed_at: Optional[datetime] = None

    last_modified_by: Optional[int] = None
    last_modified_at: Optional[datetime] = None
    status_change_reason: Optional[str] = None
    created_at: datetime


class LendingRecordPage(BaseModel):
    """One page of filtered lending records."""

    items: list[LendingRecordResponse]
    total_items: int
    total_pages: int
    current_page: int
    page_size: int


class OverdueSummary(BaseModel):
    """Summary of an overdue record for reports."""

    id: int
    game_id: int
    borrower_id: int
    owner_id: int
    end_date: date
    days_overdue: int


class OverdueReport(BaseModel):
    """Report of overdue records as of a given instant."""

    as_of: datetime
    records: list[OverdueSummary]
    total_overdue: int
    oldest_overdue_days: int
