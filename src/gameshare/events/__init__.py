"""Event and registration module.

Provides functionality for:
- Hosting events around a featured game
- Capacity-checked registration
- Host-only updates and deletion
"""

from .manager import EventManager
from .models import Event, Registration
from .schemas import EventCreate, EventResponse, EventUpdate, RegistrationResponse

__all__ = [
    "EventManager",
    "Event",
    "Registration",
    "EventCreate",
    "EventResponse",
    "EventUpdate",
    "RegistrationResponse",
]
