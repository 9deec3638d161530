"""Lending manager for loan lifecycle operations."""

import math
from datetime import date, datetime
from typing import Any, Callable, Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Action, Resource, load_principal, require
from ..borrowing.models import BorrowRequest
from ..borrowing.schemas import BorrowRequestStatus
from ..clock import Clock, SystemClock
from ..config import get_config
from ..db.models import Game
from ..db.sqlite import Database
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..notifications import Notifier, dispatch
from .models import LendingRecord
from .schemas import (
    DamageSeverity,
    LendingRecordFilter,
    LendingRecordPage,
    LendingRecordResponse,
    LendingStatus,
    OverdueReport,
    OverdueSummary,
)
from .status import TARGETS, allowed_from


class LendingManager:
    """Manages lending records from approval to close."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        page_size: Optional[int] = None,
        max_page_size: Optional[int] = None,
    ):
        """Initialize lending manager.

        Args:
            db: Database instance
            clock: Time provider used for overdue checks and close timestamps
            notifier: Receives lifecycle events after commit
            page_size: Default page size for filtered listings
            max_page_size: Upper bound for any requested page size
        """
        self.db = db
        self.clock = clock or SystemClock()
        self.notifier = notifier

        if page_size is None or max_page_size is None:
            config = get_config()
            page_size = page_size or config.page_size
            max_page_size = max_page_size or config.max_page_size
        self.page_size = page_size
        self.max_page_size = max_page_size

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_record(self, request_id: int, acting_principal_id: int) -> LendingRecordResponse:
        """Open the lending record for an APPROVED request.

        Approval already does this; the explicit path exists for owners
        whose request was approved without a record.

        Raises:
            NotFoundError: No such request or game
            ForbiddenError: The principal does not own the game
            ConflictError: Request not APPROVED or already consumed
        """
        with self.db.get_session() as session:
            request = session.get(BorrowRequest, request_id)
            if not request:
                raise NotFoundError(f"No borrow request found with ID {request_id}")
            game = session.get(Game, request.game_id)
            if not game:
                raise NotFoundError(f"No game found with ID {request.game_id}")

            principal = load_principal(session, acting_principal_id)
            require(principal, Resource.of(game.owner_id, request.requester_id), Action.CREATE_RECORD)

            if request.status != BorrowRequestStatus.APPROVED.value:
                raise ConflictError("Only APPROVED requests can open a lending record")

            existing = session.execute(
                select(LendingRecord.id).where(LendingRecord.request_id == request_id)
            ).scalar_one_or_none()
            if existing is not None:
                raise ConflictError(f"Borrow request {request_id} already has lending record {existing}")

            record = LendingRecord.from_request(request, game.owner_id, self.clock.now().isoformat())
            session.add(record)
            try:
                session.flush()
            except IntegrityError as exc:
                raise ConflictError(f"Borrow request {request_id} already has a lending record") from exc

            response = self._to_response(record, self.clock.now())

        logger.info("Lending record {} opened for request {}", response.id, request_id)
        return response

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def mark_returned(self, record_id: int, acting_principal_id: int) -> LendingRecordResponse:
        """Borrower reports the game as handed back; the owner still has to confirm.

        Raises:
            NotFoundError: No such record
            ForbiddenError: The principal is not the borrower
            ConflictError: Record not ACTIVE/OVERDUE
        """
        now = self.clock.now()
        return self._transition(
            record_id,
            acting_principal_id,
            "mark_returned",
            Action.MARK_RETURNED,
            {
                "returned_at": now.isoformat(),
                "status_change_reason": "Borrower marked game as returned",
            },
        )

    def dispute(
        self, record_id: int, acting_principal_id: int, reason: str
    ) -> LendingRecordResponse:
        """Raise a dispute about a loan. Either party may do this.

        Raises:
            NotFoundError: No such record
            ForbiddenError: The principal is neither owner nor borrower
            ValidationError: Empty reason
            ConflictError: Record already DISPUTED or CLOSED
        """
        reason = (reason or "").strip()

        def check_reason(record: LendingRecord) -> None:
            if not reason:
                raise ValidationError("A dispute needs a reason")

        now = self.clock.now()
        return self._transition(
            record_id,
            acting_principal_id,
            "dispute",
            Action.DISPUTE_RECORD,
            {
                "dispute_reason": reason,
                "disputed_by": acting_principal_id,
                "disputed_at": now.isoformat(),
                "status_change_reason": "Dispute raised",
            },
            check=check_reason,
        )

    def close(
        self,
        record_id: int,
        acting_principal_id: int,
        damaged: bool = False,
        damage_notes: Optional[str] = None,
        damage_severity: int = 0,
        reason: Optional[str] = None,
    ) -> LendingRecordResponse:
        """Owner confirms the return and closes the record.

        Args:
            record_id: Lending record ID
            acting_principal_id: Account confirming the return
            damaged: Whether the game came back damaged
            damage_notes: Description of the damage
            damage_severity: 0 (none) to 3 (severe)
            reason: Free-text closing reason

        Returns:
            The CLOSED record, ``closed_at`` set from the clock

        Raises:
            NotFoundError: No such record
            ForbiddenError: The principal is not the owner
            ValidationError: Inconsistent damage assessment
            ConflictError: Record already closed
        """

        def check_damage(record: LendingRecord) -> None:
            try:
                severity = DamageSeverity(damage_severity)
            except ValueError as exc:
                raise ValidationError("Damage severity must be between 0 and 3") from exc
            if not damaged and (damage_notes or severity != DamageSeverity.NONE):
                raise ValidationError("Damage notes and severity require damaged=True")

        now = self.clock.now().isoformat()
        return self._transition(
            record_id,
            acting_principal_id,
            "close",
            Action.CLOSE_RECORD,
            {
                "closed_at": now,
                "closed_by": acting_principal_id,
                "closing_reason": reason,
                "damaged": damaged,
                "damage_notes": damage_notes if damaged else None,
                "damage_severity": damage_severity,
                "damage_assessed_at": now,
                "status_change_reason": f"Record closed: {reason}" if reason else "Record closed",
            },
            check=check_damage,
        )

    def extend(
        self, record_id: int, acting_principal_id: int, new_end_date: date
    ) -> LendingRecordResponse:
        """Owner moves the end date of an open record.

        Raises:
            ValidationError: Missing end date, or one before the start date
            NotFoundError: No such record
            ForbiddenError: The principal is not the owner
            ConflictError: Record closed
        """
        if new_end_date is None:
            raise ValidationError("New end date cannot be null")

        def check_dates(record: LendingRecord) -> None:
            if new_end_date < date.fromisoformat(record.start_date):
                raise ValidationError("New end date cannot be before start date")

        return self._transition(
            record_id,
            acting_principal_id,
            "extend",
            Action.EXTEND_RECORD,
            {
                "end_date": new_end_date.isoformat(),
                "status_change_reason": f"End date changed to {new_end_date.isoformat()}",
            },
            check=check_dates,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_record(self, record_id: int) -> LendingRecordResponse:
        """Get a record by ID with its status as of now.

        Raises:
            NotFoundError: No such record
        """
        with self.db.get_session() as session:
            return self._to_response(self._get(session, record_id), self.clock.now())

    def find_overdue_records(self) -> list[LendingRecordResponse]:
        """All ACTIVE records whose end date lies before today, recomputed per call."""
        now = self.clock.now()
        with self.db.get_session() as session:
            stmt = (
                select(LendingRecord)
                .where(*self._status_criteria(LendingStatus.OVERDUE, now.date()))
                .order_by(LendingRecord.end_date, LendingRecord.id)
            )
            return [self._to_response(r, now) for r in session.execute(stmt).scalars().all()]

    def get_overdue_report(self) -> OverdueReport:
        """Get report of overdue records.

        Returns:
            OverdueReport with per-record days overdue
        """
        now = self.clock.now()
        records = self.find_overdue_records()
        summaries = [
            OverdueSummary(
                id=r.id,
                game_id=r.game_id,
                borrower_id=r.borrower_id,
                owner_id=r.owner_id,
                end_date=r.end_date,
                days_overdue=r.days_overdue,
            )
            for r in records
        ]
        return OverdueReport(
            as_of=now,
            records=summaries,
            total_overdue=len(summaries),
            oldest_overdue_days=max((s.days_overdue for s in summaries), default=0),
        )

    def filter_records(
        self,
        filters: Optional[LendingRecordFilter] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> LendingRecordPage:
        """List records matching every given filter, one page at a time.

        Args:
            filters: Status, owner, borrower, game and inclusive start-date range
            page: 1-based page index
            page_size: Items per page (default from config, capped)

        Returns:
            LendingRecordPage with totals

        Raises:
            ValidationError: Bad page, page size or date range
        """
        filters = filters or LendingRecordFilter()
        size = page_size if page_size is not None else self.page_size
        if page < 1:
            raise ValidationError("Page index starts at 1")
        if size < 1:
            raise ValidationError("Page size must be at least 1")
        size = min(size, self.max_page_size)
        if filters.from_date and filters.to_date and filters.from_date > filters.to_date:
            raise ValidationError("from_date cannot be after to_date")

        now = self.clock.now()
        criteria = self._filter_criteria(filters, now.date())

        with self.db.get_session() as session:
            total = session.execute(
                select(func.count()).select_from(LendingRecord).where(*criteria)
            ).scalar() or 0

            stmt = (
                select(LendingRecord)
                .where(*criteria)
                .order_by(LendingRecord.start_date.desc(), LendingRecord.id.desc())
                .offset((page - 1) * size)
                .limit(size)
            )
            items = [self._to_response(r, now) for r in session.execute(stmt).scalars().all()]

        return LendingRecordPage(
            items=items,
            total_items=total,
            total_pages=math.ceil(total / size),
            current_page=page,
            page_size=size,
        )

    def list_by_owner(self, owner_id: int) -> list[LendingRecordResponse]:
        return self._all(LendingRecordFilter(owner_id=owner_id))

    def list_by_borrower(self, borrower_id: int) -> list[LendingRecordResponse]:
        return self._all(LendingRecordFilter(borrower_id=borrower_id))

    def list_by_date_range(self, from_date: date, to_date: date) -> list[LendingRecordResponse]:
        return self._all(LendingRecordFilter(from_date=from_date, to_date=to_date))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _all(self, filters: LendingRecordFilter) -> list[LendingRecordResponse]:
        now = self.clock.now()
        with self.db.get_session() as session:
            stmt = (
                select(LendingRecord)
                .where(*self._filter_criteria(filters, now.date()))
                .order_by(LendingRecord.start_date.desc(), LendingRecord.id.desc())
            )
            return [self._to_response(r, now) for r in session.execute(stmt).scalars().all()]

    def _transition(
        self,
        record_id: int,
        acting_principal_id: int,
        action_key: str,
        gate_action: Action,
        values: dict[str, Any],
        check: Optional[Callable[[LendingRecord], None]] = None,
    ) -> LendingRecordResponse:
        """Run one guarded status change.

        Order of failures: NotFoundError, ForbiddenError, then ``check``
        (ValidationError), then ConflictError from the current status.
        """
        allowed = allowed_from(action_key)
        now = self.clock.now()

        with self.db.get_session() as session:
            record = self._get(session, record_id)

            principal = load_principal(session, acting_principal_id)
            try:
                require(principal, Resource.of(record.owner_id, record.borrower_id), gate_action)
            except ForbiddenError:
                logger.warning(
                    "Account {} refused {} on lending record {}",
                    acting_principal_id,
                    gate_action.value,
                    record_id,
                )
                raise

            if check is not None:
                check(record)

            previous = record.effective_status(now)
            self._require_status(record, action_key, allowed, now)

            new_values = dict(values)
            if action_key in TARGETS:
                new_values["status"] = TARGETS[action_key].value
            new_values["last_modified_by"] = acting_principal_id
            new_values["last_modified_at"] = now.isoformat()

            result = session.execute(
                update(LendingRecord)
                .where(
                    LendingRecord.id == record_id,
                    LendingRecord.status.in_([s.value for s in allowed]),
                )
                .values(**new_values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.refresh(record)
                logger.warning("Lending record {} changed concurrently", record_id)
                self._require_status(record, action_key, allowed, now)
                raise ConflictError(f"Lending record {record_id} changed concurrently")

            session.refresh(record)
            response = self._to_response(record, now)

        logger.info(
            "Lending record {} {}: {} -> {} by {}",
            record_id,
            action_key,
            previous.value,
            response.status.value,
            acting_principal_id,
        )
        dispatch(
            self.notifier,
            f"lending_record.{action_key}",
            record_id=record_id,
            owner_id=response.owner_id,
            borrower_id=response.borrower_id,
            previous_status=previous.value,
            status=response.status.value,
        )
        return response

    @staticmethod
    def _require_status(
        record: LendingRecord,
        action_key: str,
        allowed: frozenset[LendingStatus],
        now: datetime,
    ) -> None:
        if record.is_closed:
            raise ConflictError("Lending record is already closed")
        if record.stored_status not in allowed:
            raise ConflictError(
                f"Cannot {action_key.replace('_', ' ')} a record that is "
                f"{record.effective_status(now).value}"
            )

    @staticmethod
    def _get(session: Session, record_id: int) -> LendingRecord:
        record = session.get(LendingRecord, record_id)
        if not record:
            raise NotFoundError(f"No lending record found with ID {record_id}")
        return record

    @staticmethod
    def _status_criteria(status: LendingStatus, today: date) -> list:
        if status == LendingStatus.OVERDUE:
            return [
                LendingRecord.status == LendingStatus.ACTIVE.value,
                LendingRecord.end_date < today.isoformat(),
            ]
        if status == LendingStatus.ACTIVE:
            return [
                LendingRecord.status == LendingStatus.ACTIVE.value,
                LendingRecord.end_date >= today.isoformat(),
            ]
        return [LendingRecord.status == status.value]

    def _filter_criteria(self, filters: LendingRecordFilter, today: date) -> list:
        criteria = []
        if filters.status:
            criteria.extend(self._status_criteria(filters.status, today))
        if filters.owner_id is not None:
            criteria.append(LendingRecord.owner_id == filters.owner_id)
        if filters.borrower_id is not None:
            criteria.append(LendingRecord.borrower_id == filters.borrower_id)
        if filters.game_id is not None:
            criteria.append(LendingRecord.game_id == filters.game_id)
        if filters.from_date:
            criteria.append(LendingRecord.start_date >= filters.from_date.isoformat())
        if filters.to_date:
            criteria.append(LendingRecord.start_date <= filters.to_date.isoformat())
        return criteria

    @staticmethod
    def _to_response(record: LendingRecord, now: datetime) -> LendingRecordResponse:
        return LendingRecordResponse(
            id=record.id,
            request_id=record.request_id,
            owner_id=record.owner_id,
            borrower_id=record.borrower_id,
            game_id=record.game_id,
            start_date=record.start_date,
            end_date=record.end_date,
            stored_status=record.stored_status,
            status=record.effective_status(now),
            is_overdue=record.is_overdue(now),
            days_overdue=record.days_overdue(now),
            returned_at=record.returned_at,
            dispute_reason=record.dispute_reason,
            disputed_by=record.disputed_by,
            disputed_at=record.disputed_at,
            closed_at=record.closed_at,
            closed_by=record.closed_by,
            closing_reason=record.closing_reason,
            damaged=bool(record.damaged),
            damage_notes=record.damage_notes,
            damage_severity=record.damage_severity or 0,
            damage_assessed_at=record.damage_assessed_at,
            last_modified_by=record.last_modified_by,
            last_modified_at=record.last_modified_at,
            status_change_reason=record.status_change_reason,
            created_at=record.created_at,
        )
