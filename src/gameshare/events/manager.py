"""Event manager: event CRUD and capacity-checked registration."""

from datetime import date
from typing import Optional

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Action, Resource, load_principal, require
from ..clock import Clock, SystemClock, as_utc
from ..db.models import Account, Game
from ..db.sqlite import Database
from ..errors import (
    CapacityExceededError,
    ConflictError,
    DuplicateRegistrationError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..notifications import Notifier, dispatch
from .models import Event, Registration
from .schemas import EventCreate, EventResponse, EventUpdate, RegistrationResponse


class EventManager:
    """Manages events and their registrations.

    ``current_participants`` is only ever changed by a conditional UPDATE, so
    the count can never pass ``max_participants`` even under concurrent
    registrations.
    """

    def __init__(
        self,
        db: Database,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.notifier = notifier

    # -------------------------------------------------------------------------
    # Event CRUD
    # -------------------------------------------------------------------------

    def create_event(self, data: EventCreate, host_id: int) -> EventResponse:
        """Create an event hosted by ``host_id``.

        Raises:
            ValidationError: Empty title, capacity below 1, unknown host or
                featured game
        """
        if not data.title or not data.title.strip():
            raise ValidationError("Event title cannot be empty")
        if data.max_participants < 1:
            raise ValidationError("Max participants must be at least 1")

        with self.db.get_session() as session:
            if not session.get(Account, host_id):
                raise ValidationError(f"Host {host_id} not found")
            self._check_game(session, data.featured_game_id)

            event = Event(
                title=data.title.strip(),
                date_time=as_utc(data.date_time).isoformat(),
                location=data.location,
                description=data.description,
                max_participants=data.max_participants,
                current_participants=0,
                host_id=host_id,
                featured_game_id=data.featured_game_id,
                created_at=self.clock.now().isoformat(),
            )
            session.add(event)
            session.flush()
            response = EventResponse.model_validate(event)

        logger.info("Event {} created by host {}", response.id, host_id)
        return response

    def update_event(
        self, event_id: int, data: EventUpdate, acting_principal_id: int
    ) -> EventResponse:
        """Update an event. Only its host may do this.

        Raises:
            NotFoundError: No such event
            ForbiddenError: The principal is not the host
            ValidationError: Bad title or capacity, or capacity below the
                number of registrations
        """
        update_data = data.model_dump(exclude_unset=True)

        with self.db.get_session() as session:
            event = self._get(session, event_id)
            self._require_host(session, event, acting_principal_id, Action.UPDATE_EVENT)

            if "title" in update_data and not (update_data["title"] or "").strip():
                raise ValidationError("Event title cannot be empty")
            if "max_participants" in update_data:
                new_max = update_data["max_participants"]
                if new_max is None or new_max < 1:
                    raise ValidationError("Max participants must be at least 1")
            if "featured_game_id" in update_data:
                self._check_game(session, update_data["featured_game_id"])
            if "date_time" in update_data:
                if update_data["date_time"] is None:
                    raise ValidationError("Event date cannot be null")
                update_data["date_time"] = as_utc(update_data["date_time"]).isoformat()
            if "title" in update_data:
                update_data["title"] = update_data["title"].strip()

            if update_data:
                stmt = update(Event).where(Event.id == event_id)
                if "max_participants" in update_data:
                    # Re-checked here so a registration landing between the
                    # read above and this write is still counted
                    stmt = stmt.where(Event.current_participants <= update_data["max_participants"])
                result = session.execute(
                    stmt.values(**update_data).execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ValidationError(
                        "Max participants cannot be below the current number of registrations"
                    )
                session.refresh(event)

            response = EventResponse.model_validate(event)

        logger.info("Event {} updated by host {}", event_id, acting_principal_id)
        return response

    def delete_event(self, event_id: int, acting_principal_id: int) -> None:
        """Delete an event and its registrations. Only its host may do this.

        Raises:
            NotFoundError: No such event
            ForbiddenError: The principal is not the host
        """
        with self.db.get_session() as session:
            event = self._get(session, event_id)
            self._require_host(session, event, acting_principal_id, Action.DELETE_EVENT)

            session.execute(
                delete(Registration)
                .where(Registration.event_id == event_id)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False)
            )

        logger.info("Event {} deleted by host {}", event_id, acting_principal_id)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, attendee_id: int, event_id: int) -> RegistrationResponse:
        """Register an attendee for an event.

        Raises:
            NotFoundError: No such event
            ValidationError: Unknown attendee
            DuplicateRegistrationError: Already registered
            CapacityExceededError: The event is full
        """
        with self.db.get_session() as session:
            self._get(session, event_id)
            if not session.get(Account, attendee_id):
                raise ValidationError(f"Attendee {attendee_id} not found")

            existing = session.execute(
                select(Registration.id).where(
                    Registration.attendee_id == attendee_id,
                    Registration.event_id == event_id,
                )
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicateRegistrationError(
                    f"Account {attendee_id} is already registered for event {event_id}"
                )

            result = session.execute(
                update(Event)
                .where(
                    Event.id == event_id,
                    Event.current_participants < Event.max_participants,
                )
                .values(current_participants=Event.current_participants + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning("Event {} is full; account {} turned away", event_id, attendee_id)
                raise CapacityExceededError(f"Event {event_id} is at capacity")

            # a concurrent duplicate trips the unique constraint and rolls
            # back the increment with it
            registration = Registration(
                attendee_id=attendee_id,
                event_id=event_id,
                registration_date=self.clock.now().isoformat(),
            )
            session.add(registration)
            try:
                session.flush()
            except IntegrityError as exc:
                raise DuplicateRegistrationError(
                    f"Account {attendee_id} is already registered for event {event_id}"
                ) from exc

            response = RegistrationResponse.model_validate(registration)

        logger.info("Account {} registered for event {}", attendee_id, event_id)
        dispatch(
            self.notifier,
            "event.registered",
            event_id=event_id,
            attendee_id=attendee_id,
            registration_id=response.id,
        )
        return response

    def unregister(self, registration_id: int, acting_principal_id: int) -> None:
        """Remove a registration. Only its attendee may do this.

        Raises:
            NotFoundError: No such registration
            ForbiddenError: The principal is not the attendee
            ConflictError: The registration was removed concurrently
        """
        with self.db.get_session() as session:
            registration = session.get(Registration, registration_id)
            if not registration:
                raise NotFoundError(f"No registration found with ID {registration_id}")

            principal = load_principal(session, acting_principal_id)
            try:
                require(
                    principal,
                    Resource.of(None, registration.attendee_id),
                    Action.DELETE_REGISTRATION,
                )
            except ForbiddenError:
                logger.warning(
                    "Account {} refused removal of registration {}",
                    acting_principal_id,
                    registration_id,
                )
                raise

            event_id = registration.event_id
            result = session.execute(
                delete(Registration)
                .where(Registration.id == registration_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError(f"Registration {registration_id} was already removed")

            session.execute(
                update(Event)
                .where(Event.id == event_id, Event.current_participants > 0)
                .values(current_participants=Event.current_participants - 1)
                .execution_options(synchronize_session=False)
            )

        logger.info("Registration {} removed from event {}", registration_id, event_id)
        dispatch(
            self.notifier,
            "event.unregistered",
            event_id=event_id,
            registration_id=registration_id,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_event(self, event_id: int) -> EventResponse:
        """Get an event by ID.

        Raises:
            NotFoundError: No such event
        """
        with self.db.get_session() as session:
            return EventResponse.model_validate(self._get(session, event_id))

    def list_events(self, upcoming_only: bool = False) -> list[EventResponse]:
        criteria = []
        if upcoming_only:
            criteria.append(Event.date_time >= as_utc(self.clock.now()).isoformat())
        return self._list_events(*criteria)

    def find_events_by_game(self, game_id: int) -> list[EventResponse]:
        return self._list_events(Event.featured_game_id == game_id)

    def find_events_by_host(self, host_id: int) -> list[EventResponse]:
        return self._list_events(Event.host_id == host_id)

    def find_events_by_location(self, location: str) -> list[EventResponse]:
        """Events whose location contains ``location`` (case-insensitive)."""
        return self._list_events(Event.location.ilike(f"%{location}%"))

    def find_events_on_date(self, day: date) -> list[EventResponse]:
        """Events starting on ``day`` (UTC calendar date)."""
        return self._list_events(Event.date_time.startswith(day.isoformat()))

    def find_events_by_game_name(self, game_name: str) -> list[EventResponse]:
        """Events featuring a game with exactly this name.

        Raises:
            ValidationError: Empty name
        """
        if not game_name or not game_name.strip():
            raise ValidationError("Game name cannot be empty")
        games = select(Game.id).where(Game.name == game_name.strip())
        return self._list_events(Event.featured_game_id.in_(games))

    def find_events_by_host_name(self, host_name: str) -> list[EventResponse]:
        """Events hosted by an account with exactly this display name.

        Raises:
            ValidationError: Empty name
        """
        if not host_name or not host_name.strip():
            raise ValidationError("Host name cannot be empty")
        hosts = select(Account.id).where(Account.display_name == host_name.strip())
        return self._list_events(Event.host_id.in_(hosts))

    def find_events_by_game_min_players(self, min_players: int) -> list[EventResponse]:
        """Events whose featured game needs at least ``min_players`` players.

        Raises:
            ValidationError: ``min_players`` below 1
        """
        if min_players < 1:
            raise ValidationError("Minimum players must be greater than 0")
        games = select(Game.id).where(Game.min_players >= min_players)
        return self._list_events(Event.featured_game_id.in_(games))

    def list_registrations_for_event(self, event_id: int) -> list[RegistrationResponse]:
        return self._list_registrations(Registration.event_id == event_id)

    def list_registrations_for_attendee(self, attendee_id: int) -> list[RegistrationResponse]:
        return self._list_registrations(Registration.attendee_id == attendee_id)

    def list_registrations_for_email(self, email: str) -> list[RegistrationResponse]:
        """Registrations of the account with this email; empty if there is none."""
        attendees = select(Account.id).where(Account.email == email)
        return self._list_registrations(Registration.attendee_id.in_(attendees))

    def registered_count(self, event_id: int) -> int:
        """Number of registration rows for an event."""
        with self.db.get_session() as session:
            return session.execute(
                select(func.count(Registration.id)).where(Registration.event_id == event_id)
            ).scalar() or 0

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _list_events(self, *criteria) -> list[EventResponse]:
        with self.db.get_session() as session:
            stmt = select(Event).where(*criteria).order_by(Event.date_time, Event.id)
            return [EventResponse.model_validate(e) for e in session.execute(stmt).scalars().all()]

    def _list_registrations(self, *criteria) -> list[RegistrationResponse]:
        with self.db.get_session() as session:
            stmt = select(Registration).where(*criteria).order_by(Registration.id)
            return [
                RegistrationResponse.model_validate(r)
                for r in session.execute(stmt).scalars().all()
            ]

    @staticmethod
    def _get(session: Session, event_id: int) -> Event:
        event = session.get(Event, event_id)
        if not event:
            raise NotFoundError(f"No event found with ID {event_id}")
        return event

    @staticmethod
    def _check_game(session: Session, game_id: Optional[int]) -> None:
        if game_id is not None and not session.get(Game, game_id):
            raise ValidationError(f"Game {game_id} not found")

    @staticmethod
    def _require_host(
        session: Session, event: Event, acting_principal_id: int, action: Action
    ) -> None:
        principal = load_principal(session, acting_principal_id)
        try:
            require(principal, Resource.of(event.host_id), action)
        except ForbiddenError:
            logger.warning(
                "Account {} refused {} on event {}", acting_principal_id, action.value, event.id
            )
            raise
