"""Account directory and game catalog.

Both are leaf collaborators: the engines only resolve ids through them and
never mutate what they hold.
"""

from typing import Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..clock import Clock, SystemClock
from ..errors import ConflictError, NotFoundError, ValidationError
from .models import Account, Game
from .schemas import (
    AccountCreate,
    AccountResponse,
    AccountRole,
    GameCreate,
    GameResponse,
)
from .sqlite import Database


class AccountDirectory:
    """Identity records and role lookups."""

    def __init__(self, db: Database, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()

    def create_account(self, data: AccountCreate) -> AccountResponse:
        """Create a new account.

        Raises:
            ConflictError: The email is already registered
        """
        with self.db.get_session() as session:
            existing = session.execute(
                select(Account).where(func.lower(Account.email) == data.email.lower())
            ).scalar_one_or_none()
            if existing:
                raise ConflictError(f"An account with email {data.email} already exists")

            account = Account(
                display_name=data.display_name,
                email=data.email,
                role=data.role.value,
                created_at=self.clock.now().isoformat(),
            )
            session.add(account)
            try:
                session.flush()
            except IntegrityError as exc:
                raise ConflictError(f"An account with email {data.email} already exists") from exc

            logger.info("Created account {} ({})", account.id, account.role)
            return AccountResponse.model_validate(account)

    def resolve_account(self, account_id: int) -> AccountResponse:
        """Resolve an account by id.

        Raises:
            NotFoundError: No such account
        """
        with self.db.get_session() as session:
            account = session.get(Account, account_id)
            if not account:
                raise NotFoundError(f"No account found with ID {account_id}")
            return AccountResponse.model_validate(account)

    def find_by_email(self, email: str) -> Optional[AccountResponse]:
        with self.db.get_session() as session:
            account = session.execute(
                select(Account).where(func.lower(Account.email) == email.lower())
            ).scalar_one_or_none()
            return AccountResponse.model_validate(account) if account else None

    def list_accounts(self, role: Optional[AccountRole] = None) -> list[AccountResponse]:
        with self.db.get_session() as session:
            stmt = select(Account).order_by(Account.id)
            if role:
                stmt = stmt.where(Account.role == role.value)
            return [
                AccountResponse.model_validate(a)
                for a in session.execute(stmt).scalars().all()
            ]


class Catalog:
    """Game records and their owner references."""

    def __init__(self, db: Database, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()

    def create_game(self, data: GameCreate) -> GameResponse:
        """Add a game to the catalog.

        Raises:
            ValidationError: Owner missing or not a game owner, bad player range
        """
        if data.min_players > data.max_players:
            raise ValidationError("min_players cannot exceed max_players")

        with self.db.get_session() as session:
            owner = session.get(Account, data.owner_id)
            if not owner:
                raise ValidationError(f"No account found with ID {data.owner_id}")
            if not owner.is_game_owner:
                raise ValidationError(f"Account {data.owner_id} is not a game owner")

            game = Game(
                name=data.name,
                owner_id=data.owner_id,
                min_players=data.min_players,
                max_players=data.max_players,
                category=data.category,
                created_at=self.clock.now().isoformat(),
            )
            session.add(game)
            session.flush()

            logger.info("Added game {} for owner {}", game.id, game.owner_id)
            return GameResponse.model_validate(game)

    def resolve_game(self, game_id: int) -> GameResponse:
        """Resolve a game by id.

        Raises:
            NotFoundError: No such game
        """
        with self.db.get_session() as session:
            game = session.get(Game, game_id)
            if not game:
                raise NotFoundError(f"No game found with ID {game_id}")
            return GameResponse.model_validate(game)

    def list_games(self, owner_id: Optional[int] = None) -> list[GameResponse]:
        with self.db.get_session() as session:
            stmt = select(Game).order_by(Game.name)
            if owner_id is not None:
                stmt = stmt.where(Game.owner_id == owner_id)
            return [
                GameResponse.model_validate(g)
                for g in session.execute(stmt).scalars().all()
            ]
