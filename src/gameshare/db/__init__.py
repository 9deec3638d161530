"""Database module: SQLite storage, account directory and game catalog."""

from .directory import AccountDirectory, Catalog
from .models import Account, Base, Game
from .schemas import AccountCreate, AccountResponse, AccountRole, GameCreate, GameResponse
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Account",
    "AccountCreate",
    "AccountDirectory",
    "AccountResponse",
    "AccountRole",
    "Base",
    "Catalog",
    "Database",
    "Game",
    "GameCreate",
    "GameResponse",
    "get_db",
    "reset_db",
]
