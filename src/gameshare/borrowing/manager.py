"""Borrow request manager.

Requests start PENDING and move once, to APPROVED or DECLINED. Approval
creates the lending record in the same transaction.
"""

from datetime import date
from typing import Optional

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..auth import Action, Resource, load_principal, require
from ..clock import Clock, SystemClock
from ..db.models import Account, Game
from ..db.sqlite import Database
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..lending.models import LendingRecord
from ..notifications import Notifier, dispatch
from .models import BorrowRequest
from .schemas import BorrowRequestCreate, BorrowRequestResponse, BorrowRequestStatus


class BorrowRequestManager:
    """Manages borrow request operations."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize borrow request manager.

        Args:
            db: Database instance
            clock: Time provider for request and response timestamps
            notifier: Receives lifecycle events after commit
        """
        self.db = db
        self.clock = clock or SystemClock()
        self.notifier = notifier

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_request(self, data: BorrowRequestCreate) -> BorrowRequestResponse:
        """Create a PENDING borrow request.

        Args:
            data: Requester, game and date range

        Returns:
            Created request

        Raises:
            ValidationError: Bad date range, unknown requester or game, or the
                requester owns the game
            ConflictError: The game is already lent out for an overlapping period
        """
        if data.start_date > data.end_date:
            raise ValidationError("Start date cannot be after end date")

        with self.db.get_session() as session:
            requester = session.get(Account, data.requester_id)
            if not requester:
                raise ValidationError(f"Requester {data.requester_id} not found")

            game = session.get(Game, data.game_id)
            if not game:
                raise ValidationError(f"Game {data.game_id} not found")

            if game.owner_id == requester.id:
                raise ValidationError("Owners cannot request their own game")

            if self._overlapping_approved(session, game.id, data.start_date, data.end_date):
                raise ConflictError("Game is unavailable for the requested period")

            request = BorrowRequest(
                requester_id=requester.id,
                game_id=game.id,
                start_date=data.start_date.isoformat(),
                end_date=data.end_date.isoformat(),
                status=BorrowRequestStatus.PENDING.value,
                request_date=self.clock.now().isoformat(),
            )
            session.add(request)
            session.flush()

            response = BorrowRequestResponse.model_validate(request)
            owner_id = game.owner_id

        logger.info(
            "Borrow request {} created by account {} for game {}",
            response.id,
            response.requester_id,
            response.game_id,
        )
        dispatch(
            self.notifier,
            "borrow_request.created",
            request_id=response.id,
            owner_id=owner_id,
        )
        return response

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def approve(self, request_id: int, acting_principal_id: int) -> BorrowRequestResponse:
        """Approve a PENDING request and open its lending record.

        Args:
            request_id: Borrow request ID
            acting_principal_id: Account performing the approval

        Returns:
            Approved request, with ``lending_record_id`` set

        Raises:
            NotFoundError: No such request
            ForbiddenError: The principal does not own the game
            ConflictError: Not PENDING, or overlaps an approved request
        """
        with self.db.get_session() as session:
            request, game = self._load_for_owner_action(
                session, request_id, acting_principal_id, Action.APPROVE_REQUEST
            )
            self._require_pending(request, "approve")

            now = self.clock.now().isoformat()
            self._compare_and_set(
                session, request_id, BorrowRequestStatus.APPROVED, acting_principal_id, now
            )

            # Checked after the conditional update so a concurrent approval of
            # an overlapping request has already committed or is still waiting
            start = date.fromisoformat(request.start_date)
            end = date.fromisoformat(request.end_date)
            if self._overlapping_approved(session, game.id, start, end, exclude_request_id=request_id):
                logger.warning("Borrow request {} overlaps an approved request", request_id)
                raise ConflictError("Cannot approve request due to overlapping approved requests")

            session.refresh(request)
            record = LendingRecord.from_request(request, game.owner_id, now)
            session.add(record)
            session.flush()

            response = BorrowRequestResponse.model_validate(request)
            response.lending_record_id = record.id

        logger.info(
            "Borrow request {} approved by {}; lending record {} opened",
            request_id,
            acting_principal_id,
            response.lending_record_id,
        )
        dispatch(
            self.notifier,
            "borrow_request.approved",
            request_id=request_id,
            requester_id=response.requester_id,
            lending_record_id=response.lending_record_id,
        )
        return response

    def decline(self, request_id: int, acting_principal_id: int) -> BorrowRequestResponse:
        """Decline a PENDING request.

        Raises:
            NotFoundError: No such request
            ForbiddenError: The principal does not own the game
            ConflictError: Not PENDING
        """
        with self.db.get_session() as session:
            request, _ = self._load_for_owner_action(
                session, request_id, acting_principal_id, Action.DECLINE_REQUEST
            )
            self._require_pending(request, "decline")

            self._compare_and_set(
                session,
                request_id,
                BorrowRequestStatus.DECLINED,
                acting_principal_id,
                self.clock.now().isoformat(),
            )
            session.refresh(request)
            response = BorrowRequestResponse.model_validate(request)

        logger.info("Borrow request {} declined by {}", request_id, acting_principal_id)
        dispatch(
            self.notifier,
            "borrow_request.declined",
            request_id=request_id,
            requester_id=response.requester_id,
        )
        return response

    def delete(self, request_id: int, acting_principal_id: int) -> None:
        """Withdraw a PENDING request. Only its requester may do this.

        Raises:
            NotFoundError: No such request
            ForbiddenError: Not the requester, or the request is no longer PENDING
        """
        with self.db.get_session() as session:
            request = session.get(BorrowRequest, request_id)
            if not request:
                raise NotFoundError(f"No borrow request found with ID {request_id}")

            principal = load_principal(session, acting_principal_id)
            require(principal, Resource.of(None, request.requester_id), Action.DELETE_REQUEST)

            if not request.is_pending:
                raise ForbiddenError("Only PENDING requests can be deleted")

            result = session.execute(
                delete(BorrowRequest)
                .where(
                    BorrowRequest.id == request_id,
                    BorrowRequest.status == BorrowRequestStatus.PENDING.value,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ForbiddenError("Only PENDING requests can be deleted")

        logger.info("Borrow request {} deleted by requester", request_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def find_by_id(self, request_id: int) -> BorrowRequestResponse:
        """Get a request by ID.

        Raises:
            NotFoundError: No such request
        """
        with self.db.get_session() as session:
            request = session.get(BorrowRequest, request_id)
            if not request:
                raise NotFoundError(f"No borrow request found with ID {request_id}")
            response = BorrowRequestResponse.model_validate(request)
            response.lending_record_id = session.execute(
                select(LendingRecord.id).where(LendingRecord.request_id == request_id)
            ).scalar_one_or_none()
            return response

    def find_by_requester(self, requester_id: int) -> list[BorrowRequestResponse]:
        return self._list(BorrowRequest.requester_id == requester_id)

    def find_by_status(self, status: BorrowRequestStatus) -> list[BorrowRequestResponse]:
        return self._list(BorrowRequest.status == status.value)

    def find_pending_for_owner(self, owner_id: int) -> list[BorrowRequestResponse]:
        """Pending requests for any game the owner holds."""
        owned_games = select(Game.id).where(Game.owner_id == owner_id)
        return self._list(
            BorrowRequest.status == BorrowRequestStatus.PENDING.value,
            BorrowRequest.game_id.in_(owned_games),
        )

    def list_requests(self) -> list[BorrowRequestResponse]:
        return self._list()

    def check_for_overlaps(
        self,
        game_id: int,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[int] = None,
    ) -> bool:
        """Return True when no approved request for the game overlaps the period."""
        with self.db.get_session() as session:
            return not self._overlapping_approved(
                session, game_id, start_date, end_date, exclude_request_id
            )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _list(self, *criteria) -> list[BorrowRequestResponse]:
        with self.db.get_session() as session:
            stmt = select(BorrowRequest).where(*criteria).order_by(BorrowRequest.id)
            return [
                BorrowRequestResponse.model_validate(r)
                for r in session.execute(stmt).scalars().all()
            ]

    def _load_for_owner_action(
        self, session: Session, request_id: int, acting_principal_id: int, action: Action
    ) -> tuple[BorrowRequest, Game]:
        request = session.get(BorrowRequest, request_id)
        if not request:
            raise NotFoundError(f"No borrow request found with ID {request_id}")

        game = session.get(Game, request.game_id)
        if not game:
            raise NotFoundError(f"No game found with ID {request.game_id}")

        principal = load_principal(session, acting_principal_id)
        try:
            require(principal, Resource.of(game.owner_id, request.requester_id), action)
        except ForbiddenError:
            logger.warning(
                "Account {} refused {} on borrow request {}",
                acting_principal_id,
                action.value,
                request_id,
            )
            raise
        return request, game

    @staticmethod
    def _require_pending(request: BorrowRequest, verb: str) -> None:
        if not request.is_pending:
            raise ConflictError(
                f"Can only {verb} PENDING requests (request {request.id} is {request.status})"
            )

    @staticmethod
    def _compare_and_set(
        session: Session,
        request_id: int,
        new_status: BorrowRequestStatus,
        responder_id: int,
        responded_at: str,
    ) -> None:
        result = session.execute(
            update(BorrowRequest)
            .where(
                BorrowRequest.id == request_id,
                BorrowRequest.status == BorrowRequestStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                responder_id=responder_id,
                responded_at=responded_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("Borrow request {} changed concurrently", request_id)
            raise ConflictError(f"Borrow request {request_id} is no longer PENDING")

    @staticmethod
    def _overlapping_approved(
        session: Session,
        game_id: int,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[int] = None,
    ) -> bool:
        stmt = select(BorrowRequest.id).where(
            BorrowRequest.game_id == game_id,
            BorrowRequest.status == BorrowRequestStatus.APPROVED.value,
            BorrowRequest.start_date <= end_date.isoformat(),
            BorrowRequest.end_date >= start_date.isoformat(),
        )
        if exclude_request_id is not None:
            stmt = stmt.where(BorrowRequest.id != exclude_request_id)
        return session.execute(stmt.limit(1)).first() is not None
