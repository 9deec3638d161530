"""Pydantic schemas for borrow requests."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class BorrowRequestStatus(str, Enum):
    """Status of a borrow request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"

    @property
    def is_terminal(self) -> bool:
        return self != BorrowRequestStatus.PENDING


class BorrowRequestCreate(BaseModel):
    """Schema for creating a borrow request."""

    requester_id: int
    game_id: int
    start_date: date
    end_date: date


class BorrowRequestResponse(BaseModel):
    """Schema for borrow request responses."""

    id: int
    requester_id: int
    game_id: int
    start_date: date
    end_date: date
    status: BorrowRequestStatus
    request_date: datetime
    responder_id: Optional[int] = None
    responded_at: Optional[datetime] = None

    # Set on approval (populated by manager)
    lending_record_id: Optional[int] = None

    model_config = {"from_attributes": True}
