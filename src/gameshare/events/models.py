"""SQLAlchemy models for events.

Tables:
- events: Game nights with a participant cap
- registrations: One row per attendee per event
"""

from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Account, Base, Game


class Event(Base):
    """Event model - a hosted session around a featured game."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    date_time: Mapped[str] = mapped_column(String(32), nullable=False, index=True)  # ISO datetime
    location: Mapped[Optional[str]] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Capacity; current_participants mirrors the registration count
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    host_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    featured_game_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("games.id"), index=True
    )
    created_at: Mapped[str] = mapped_column(String(32), nullable=False)

    # Relationships
    host: Mapped["Account"] = relationship("Account")
    featured_game: Mapped[Optional["Game"]] = relationship("Game")
    registrations: Mapped[list["Registration"]] = relationship(
        "Registration", back_populates="event", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("max_participants >= 1", name="check_max_participants_positive"),
        CheckConstraint(
            "current_participants >= 0 AND current_participants <= max_participants",
            name="check_participants_within_capacity",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title='{self.title}', "
            f"participants={self.current_participants}/{self.max_participants})>"
        )

    @property
    def is_full(self) -> bool:
        return self.current_participants >= self.max_participants


class Registration(Base):
    """Registration model - an attendee's place at an event."""

    __tablename__ = "registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attendee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    registration_date: Mapped[str] = mapped_column(String(32), nullable=False)

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("attendee_id", "event_id", name="uq_registration_attendee_event"),
    )

    def __repr__(self) -> str:
        return f"<Registration(id={self.id}, attendee_id={self.attendee_id}, event_id={self.event_id})>"
