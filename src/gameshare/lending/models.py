"""SQLAlchemy models for lending records.

Tables:
- lending_records: One loan per approved borrow request
"""

from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..borrowing.models import BorrowRequest
from ..db.models import Base
from . import status as lifecycle
from .schemas import LendingStatus


class LendingRecord(Base):
    """Lending record model - tracks an active loan through to its close."""

    __tablename__ = "lending_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Originating request, consumed exactly once
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("borrow_requests.id"), nullable=False, unique=True
    )

    # Parties
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    borrower_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id"), nullable=False, index=True
    )

    # Dates
    start_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    end_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    # Stored status (never OVERDUE)
    status: Mapped[str] = mapped_column(
        String(20), default=LendingStatus.ACTIVE.value, index=True
    )

    # Return and dispute tracking
    returned_at: Mapped[Optional[str]] = mapped_column(String(32))
    dispute_reason: Mapped[Optional[str]] = mapped_column(Text)
    disputed_by: Mapped[Optional[int]] = mapped_column(Integer)
    disputed_at: Mapped[Optional[str]] = mapped_column(String(32))

    # Closing
    closed_at: Mapped[Optional[str]] = mapped_column(String(32))
    closed_by: Mapped[Optional[int]] = mapped_column(Integer)
    closing_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Damage assessment, written only on close
    damaged: Mapped[bool] = mapped_column(Boolean, default=False)
    damage_notes: Mapped[Optional[str]] = mapped_column(Text)
    damage_severity: Mapped[int] = mapped_column(Integer, default=0)
    damage_assessed_at: Mapped[Optional[str]] = mapped_column(String(32))

    # Audit
    last_modified_by: Mapped[Optional[int]] = mapped_column(Integer)
    last_modified_at: Mapped[Optional[str]] = mapped_column(String(32))
    status_change_reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[str] = mapped_column(String(32), nullable=False)

    # Relationships
    request: Mapped["BorrowRequest"] = relationship("BorrowRequest")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_record_dates_ordered"),
        CheckConstraint(
            "damage_severity BETWEEN 0 AND 3", name="check_damage_severity_range"
        ),
    )

    def __repr__(self) -> str:
        return f"<LendingRecord(id={self.id}, request_id={self.request_id}, status={self.status})>"

    @classmethod
    def from_request(
        cls, request: BorrowRequest, owner_id: int, created_at: str
    ) -> "LendingRecord":
        """Build the ACTIVE record for an approved request."""
        return cls(
            request_id=request.id,
            owner_id=owner_id,
            borrower_id=request.requester_id,
            game_id=request.game_id,
            start_date=request.start_date,
            end_date=request.end_date,
            status=LendingStatus.ACTIVE.value,
            damaged=False,
            damage_severity=0,
            last_modified_by=owner_id,
            last_modified_at=created_at,
            status_change_reason="Created from approved borrow request",
            created_at=created_at,
        )

    @property
    def stored_status(self) -> LendingStatus:
        return LendingStatus(self.status)

    @property
    def end(self) -> date:
        return date.fromisoformat(self.end_date)

    @property
    def is_closed(self) -> bool:
        return self.status == LendingStatus.CLOSED.value

    def is_overdue(self, now: Union[date, datetime]) -> bool:
        return lifecycle.is_overdue(self.stored_status, self.end, now)

    def effective_status(self, now: Union[date, datetime]) -> LendingStatus:
        return lifecycle.effective_status(self.stored_status, self.end, now)

    def days_overdue(self, now: Union[date, datetime]) -> int:
        return lifecycle.days_overdue(self.stored_status, self.end, now)

    @property
    def duration_days(self) -> int:
        return (self.end - date.fromisoformat(self.start_date)).days
