"""Pydantic schemas for events and registrations."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    """Schema for creating an event."""

    title: str = Field(..., max_length=200)
    date_time: datetime
    location: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    max_participants: int
    featured_game_id: Optional[int] = None


class EventUpdate(BaseModel):
    """Schema for updating an event. All fields optional."""

    title: Optional[str] = Field(None, max_length=200)
    date_time: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    max_participants: Optional[int] = None
    featured_game_id: Optional[int] = None


class EventResponse(BaseModel):
    """Schema for event responses."""

    id: int
    title: str
    date_time: datetime
    location: Optional[str] = None
    description: Optional[str] = None
    max_participants: int
    current_participants: int
    host_id: int
    featured_game_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_full(self) -> bool:
        return self.current_participants >= self.max_participants

    @property
    def spots_left(self) -> int:
        return max(0, self.max_participants - self.current_participants)


class RegistrationResponse(BaseModel):
    """Schema for registration responses."""

    id: int
    attendee_id: int
    event_id: int
    registration_date: datetime

    model_config = {"from_attributes": True}
