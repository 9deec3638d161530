"""SQLAlchemy models for borrow requests."""

from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Account, Base, Game
from .schemas import BorrowRequestStatus


class BorrowRequest(Base):
    """Borrow request model - a proposal to borrow a game for a date range."""

    __tablename__ = "borrow_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id"), nullable=False, index=True
    )

    # Dates
    start_date: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO date
    end_date: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO date
    request_date: Mapped[str] = mapped_column(String(32), nullable=False)  # ISO datetime

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=BorrowRequestStatus.PENDING.value, index=True
    )

    # Owner response
    responder_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("accounts.id"))
    responded_at: Mapped[Optional[str]] = mapped_column(String(32))

    # Relationships
    requester: Mapped["Account"] = relationship("Account", foreign_keys=[requester_id])
    game: Mapped["Game"] = relationship("Game")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_request_dates_ordered"),
    )

    def __repr__(self) -> str:
        return f"<BorrowRequest(id={self.id}, game_id={self.game_id}, status={self.status})>"

    @property
    def is_pending(self) -> bool:
        return self.status == BorrowRequestStatus.PENDING.value
