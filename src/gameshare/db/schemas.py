"""Pydantic schemas for accounts and catalog games."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AccountRole(str, Enum):
    """Role carried by an account."""

    USER = "USER"
    GAME_OWNER = "GAME_OWNER"


class AccountCreate(BaseModel):
    """Schema for creating an account."""

    display_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=200)
    role: AccountRole = AccountRole.USER


class AccountResponse(BaseModel):
    """Schema for account responses."""

    id: int
    display_name: str
    email: str
    role: AccountRole
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_game_owner(self) -> bool:
        return self.role == AccountRole.GAME_OWNER


class GameCreate(BaseModel):
    """Schema for adding a game to the catalog."""

    name: str = Field(..., min_length=1, max_length=200)
    owner_id: int
    min_players: int = Field(1, ge=1)
    max_players: int = Field(4, ge=1)
    category: Optional[str] = Field(None, max_length=100)


class GameResponse(BaseModel):
    """Schema for game responses."""

    id: int
    name: str
    owner_id: int
    min_players: int
    max_players: int
    category: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
