"""SQLAlchemy ORM models for the account directory and the game catalog.

Tables:
- accounts: Identity records with a role flag
- games: Catalog entries owned by game owners
"""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import AccountRole


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Account(Base):
    """Account model - a user, optionally holding the game owner role."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), default=AccountRole.USER.value)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), nullable=False)

    # Relationships
    games: Mapped[list["Game"]] = relationship("Game", back_populates="owner")

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name='{self.display_name}', role={self.role})>"

    @property
    def is_game_owner(self) -> bool:
        return self.role == AccountRole.GAME_OWNER.value


class Game(Base):
    """Game model - a board game in the catalog."""

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id"), nullable=False, index=True
    )
    min_players: Mapped[int] = mapped_column(Integer, default=1)
    max_players: Mapped[int] = mapped_column(Integer, default=4)
    category: Mapped[Optional[str]] = mapped_column(String(100))

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), nullable=False)

    # Relationships
    owner: Mapped["Account"] = relationship("Account", back_populates="games")

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"
