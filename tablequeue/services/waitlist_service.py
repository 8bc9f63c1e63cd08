"""
Waitlist queue engine.

Owns queue positions, status transitions, the remote check-in lifecycle and
next-customer selection. Every mutation for a restaurant runs under that
restaurant's in-process lock and inside a single transaction.

Across worker processes the restaurant row is locked with ``FOR UPDATE``
before queue positions are read or a party is claimed. A join that still
collides on its queue position is retried, and a party is only claimed by a
conditional update on its current status.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, FrozenSet, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.config import Settings, get_settings
from tablequeue.errors import (
    ConflictError,
    InvalidConfirmationCodeError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
    WaitlistError,
)
from tablequeue.models.restaurant import Restaurant
from tablequeue.models.waitlist import WaitlistEntry
from tablequeue.schemas.waitlist import WaitlistStatus
from tablequeue.services.analytics_service import AnalyticsService
from tablequeue.services.demand_estimator import estimate_wait_time
from tablequeue.services.table_optimizer import find_best_table_match
from tablequeue.services.table_type_service import TableTypeService

logger = logging.getLogger(__name__)

# No 0/O or 1/I, codes get read aloud at the host stand
CONFIRMATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

ALLOWED_TRANSITIONS: Dict[WaitlistStatus, FrozenSet[WaitlistStatus]] = {
    WaitlistStatus.WAITING: frozenset({
        WaitlistStatus.NOTIFIED,
        WaitlistStatus.SEATED,
        WaitlistStatus.CANCELLED,
    }),
    WaitlistStatus.NOTIFIED: frozenset({
        WaitlistStatus.SEATED,
        WaitlistStatus.CANCELLED,
    }),
    WaitlistStatus.PROCESSING: frozenset({
        WaitlistStatus.NOTIFIED,
        WaitlistStatus.SEATED,
        WaitlistStatus.CANCELLED,
    }),
    WaitlistStatus.REMOTE_PENDING: frozenset({
        WaitlistStatus.REMOTE_CONFIRMED,
        WaitlistStatus.CANCELLED,
    }),
    WaitlistStatus.REMOTE_CONFIRMED: frozenset({
        WaitlistStatus.SEATED,
        WaitlistStatus.CANCELLED,
    }),
}

ACTIVE_STATUSES = (
    WaitlistStatus.WAITING.value,
    WaitlistStatus.NOTIFIED.value,
    WaitlistStatus.PROCESSING.value,
    WaitlistStatus.REMOTE_PENDING.value,
    WaitlistStatus.REMOTE_CONFIRMED.value,
)

ACTIVE_REMOTE_STATUSES = (
    WaitlistStatus.REMOTE_PENDING.value,
    WaitlistStatus.REMOTE_CONFIRMED.value,
)


class RestaurantLocks:
    """Process-wide registry of one asyncio.Lock per restaurant."""

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def get(self, restaurant_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(restaurant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[restaurant_id] = lock
        return lock


restaurant_locks = RestaurantLocks()


def generate_confirmation_code(length: int = 6) -> str:
    return "".join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(length))


def restaurant_row_lock(restaurant_id: UUID) -> Select:
    """SELECT ... FOR UPDATE on the restaurant row, the cross-process queue lock."""
    return (
        select(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .execution_options(populate_existing=True)
        .with_for_update()
    )


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class WaitlistService:
    """Service for waitlist queue operations."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        analytics: Optional[AnalyticsService] = None,
        table_type_service: Optional[TableTypeService] = None,
        locks: Optional[RestaurantLocks] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.table_type_service = table_type_service or TableTypeService(session)
        self.analytics = analytics or AnalyticsService(session, self.table_type_service)
        self.locks = locks or restaurant_locks

    @asynccontextmanager
    async def _transaction(self, restaurant_id: UUID) -> AsyncIterator[None]:
        """
        Serialize a mutation for one restaurant and commit it atomically.

        Every failure rolls back, so row locks taken while checking are
        released and a half-made reservation is never visible to other
        callers. A unique-constraint violation surfaces as ``ConflictError``,
        any other database failure as ``StorageError``.
        """
        async with self.locks.get(restaurant_id):
            try:
                yield
                await self.session.commit()
            except WaitlistError:
                await self.session.rollback()
                raise
            except IntegrityError as exc:
                await self.session.rollback()
                logger.warning("Waitlist write conflict for restaurant %s: %s", restaurant_id, exc)
                raise ConflictError() from exc
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.error("Waitlist write failed for restaurant %s: %s", restaurant_id, exc)
                raise StorageError() from exc
            except BaseException:
                await self.session.rollback()
                raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entry(self, entry_id: int) -> WaitlistEntry:
        entry = await self.session.get(WaitlistEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Waitlist entry {entry_id} not found")
        return entry

    async def list_entries(
        self,
        restaurant_id: UUID,
        statuses: Optional[Sequence[str]] = None,
    ) -> Sequence[WaitlistEntry]:
        """Entries for a restaurant in queue order, optionally filtered by status."""
        stmt = (
            select(WaitlistEntry)
            .where(WaitlistEntry.restaurant_id == restaurant_id)
            .order_by(WaitlistEntry.queue_position)
        )
        if statuses:
            stmt = stmt.where(WaitlistEntry.status.in_(list(statuses)))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_queue(self, restaurant_id: UUID, now: Optional[datetime] = None) -> List[dict]:
        """Active queue with each party's place in line and minutes waited so far."""
        now = now or datetime.utcnow()
        entries = await self.list_entries(restaurant_id, ACTIVE_STATUSES)

        return [
            {
                "place_in_line": index + 1,
                "entry_id": entry.id,
                "customer_name": entry.customer_name,
                "party_size": entry.party_size,
                "status": entry.status,
                "is_remote": entry.is_remote,
                "queue_position": entry.queue_position,
                "estimated_wait_time": entry.estimated_wait_time,
                "wait_so_far_minutes": int((now - entry.created_at).total_seconds() / 60),
            }
            for index, entry in enumerate(entries)
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        restaurant_id: UUID,
        customer_name: str,
        party_size: int,
        *,
        phone_number: Optional[str] = None,
        email: Optional[str] = None,
        dietary_requirements: Optional[str] = None,
        notes: Optional[str] = None,
        is_remote: bool = False,
        expected_arrival_time: Optional[datetime] = None,
        table_type_id: Optional[UUID] = None,
        preferred_table_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WaitlistEntry:
        """
        Add a party to the end of the restaurant's queue.

        The party gets the next queue position, a quoted wait and a table type
        hint. Remote parties also get a confirmation code and start out as
        ``remote_pending`` until they check in.
        """
        if not customer_name or not customer_name.strip():
            raise ValidationError("Customer name is required")
        if party_size is None or party_size < 1:
            raise ValidationError("Party size must be at least 1")
        if is_remote and expected_arrival_time is None:
            raise ValidationError("Expected arrival time is required for remote joins")

        now = now or datetime.utcnow()
        fields = dict(
            customer_name=customer_name.strip(),
            party_size=party_size,
            phone_number=phone_number,
            email=email,
            dietary_requirements=dietary_requirements,
            notes=notes,
            is_remote=is_remote,
        )

        attempts = max(1, self.settings.enqueue_attempts)
        for attempt in range(1, attempts + 1):
            try:
                entry = await self._insert_entry(
                    restaurant_id,
                    fields,
                    expected_arrival_time=expected_arrival_time,
                    table_type_id=table_type_id,
                    preferred_table_type=preferred_table_type,
                    now=now,
                )
                break
            except ConflictError:
                if attempt == attempts:
                    logger.error(
                        "Gave up queueing %s for restaurant %s after %d attempts",
                        fields["customer_name"],
                        restaurant_id,
                        attempts,
                    )
                    raise
                logger.warning(
                    "Queue position taken for restaurant %s, retrying (attempt %d of %d)",
                    restaurant_id,
                    attempt + 1,
                    attempts,
                )

        logger.info(
            "Queued %s (party of %d) at position %d for restaurant %s, remote=%s",
            entry.customer_name,
            entry.party_size,
            entry.queue_position,
            restaurant_id,
            is_remote,
        )
        return entry

    async def _insert_entry(
        self,
        restaurant_id: UUID,
        fields: dict,
        *,
        expected_arrival_time: Optional[datetime],
        table_type_id: Optional[UUID],
        preferred_table_type: Optional[str],
        now: datetime,
    ) -> WaitlistEntry:
        party_size = fields["party_size"]
        is_remote = fields["is_remote"]

        async with self._transaction(restaurant_id):
            restaurant = await self._require_restaurant(restaurant_id, for_update=True)
            table_types = await self.table_type_service.list_table_types(
                restaurant_id, active_only=True
            )
            active = await self.list_entries(restaurant_id, ACTIVE_STATUSES)

            if table_type_id is not None:
                table_type = await self.table_type_service.get_table_type(table_type_id)
                if table_type.restaurant_id != restaurant_id:
                    raise NotFoundError(f"Table type {table_type_id} not found")
            else:
                match = find_best_table_match(
                    table_types, party_size, active, preferred_table_type
                )
                if match is not None:
                    table_type_id = match.table_type_id

            samples = await self.analytics.get_historical_samples(restaurant_id, reference=now)
            estimate = estimate_wait_time(
                party_size,
                table_types,
                active,
                wait_status=restaurant.current_wait_status,
                custom_wait_time=restaurant.custom_wait_time,
                historical_samples=samples,
                now=now,
            )

            entry = WaitlistEntry(
                restaurant_id=restaurant_id,
                queue_position=await self._next_queue_position(restaurant_id),
                estimated_wait_time=estimate.estimated_wait_time,
                status=WaitlistStatus.WAITING.value,
                table_type_id=table_type_id,
                created_at=now,
                **fields,
            )
            if is_remote:
                entry.status = WaitlistStatus.REMOTE_PENDING.value
                entry.expected_arrival_time = as_naive_utc(expected_arrival_time)
                entry.confirmation_code = await self._unique_confirmation_code(restaurant_id)

            self.session.add(entry)

        return entry

    async def update_status(
        self,
        entry_id: int,
        new_status: str,
        now: Optional[datetime] = None,
    ) -> WaitlistEntry:
        """Move an entry to ``new_status`` and stamp the matching timestamp."""
        try:
            requested = WaitlistStatus(new_status)
        except ValueError as exc:
            raise ValidationError(f"Unknown status: {new_status}") from exc

        now = now or datetime.utcnow()
        entry = await self.get_entry(entry_id)

        async with self._transaction(entry.restaurant_id):
            await self.session.refresh(entry, with_for_update=True)
            current = WaitlistStatus(entry.status)
            if requested not in ALLOWED_TRANSITIONS.get(current, frozenset()):
                raise InvalidTransitionError(current.value, requested.value)

            entry.status = requested.value
            if requested is WaitlistStatus.NOTIFIED:
                entry.notified_at = now
            elif requested is WaitlistStatus.REMOTE_CONFIRMED:
                entry.arrived_at = now
            elif requested is WaitlistStatus.SEATED:
                entry.seated_at = now
                await self.analytics.record_seating(entry)

        logger.info("Entry %d: %s -> %s", entry.id, current.value, requested.value)
        return entry

    async def check_in(
        self,
        restaurant_id: UUID,
        confirmation_code: str,
        now: Optional[datetime] = None,
    ) -> WaitlistEntry:
        """
        Confirm a remote party has arrived.

        The entry keeps its original queue position; arriving late in the
        day does not send a party to the back of the line.
        """
        code = (confirmation_code or "").strip().upper()
        if not code:
            raise InvalidConfirmationCodeError("Confirmation code is required")

        now = now or datetime.utcnow()

        async with self._transaction(restaurant_id):
            result = await self.session.execute(
                select(WaitlistEntry)
                .where(WaitlistEntry.restaurant_id == restaurant_id)
                .where(WaitlistEntry.is_remote == True)  # noqa: E712
                .where(WaitlistEntry.confirmation_code == code)
                .where(WaitlistEntry.status.in_(ACTIVE_REMOTE_STATUSES))
                .where(WaitlistEntry.arrived_at.is_(None))
                .execution_options(populate_existing=True)
                .with_for_update()
            )
            entry = result.scalars().first()
            if entry is None:
                raise InvalidConfirmationCodeError("Invalid or already used confirmation code")

            entry.arrived_at = now
            entry.status = WaitlistStatus.REMOTE_CONFIRMED.value

        logger.info(
            "Remote entry %d checked in at position %d", entry.id, entry.queue_position
        )
        return entry

    async def expire_stale_remote_entries(
        self,
        restaurant_id: UUID,
        grace_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[WaitlistEntry]:
        """Cancel remote entries that never showed up within the grace window."""
        if grace_minutes is None:
            grace_minutes = self.settings.remote_grace_minutes
        now = now or datetime.utcnow()
        cutoff = now - timedelta(minutes=grace_minutes)

        async with self._transaction(restaurant_id):
            result = await self.session.execute(
                select(WaitlistEntry)
                .where(WaitlistEntry.restaurant_id == restaurant_id)
                .where(WaitlistEntry.status == WaitlistStatus.REMOTE_PENDING.value)
                .where(WaitlistEntry.expected_arrival_time < cutoff)
                .order_by(WaitlistEntry.queue_position)
                .execution_options(populate_existing=True)
                .with_for_update()
            )
            expired = list(result.scalars().all())
            for entry in expired:
                entry.status = WaitlistStatus.CANCELLED.value

        if expired:
            logger.info(
                "Expired %d remote entries for restaurant %s", len(expired), restaurant_id
            )
        return expired

    async def select_next_customer(
        self,
        restaurant_id: UUID,
        prioritize_physical: bool = True,
    ) -> Optional[WaitlistEntry]:
        """
        Reserve the next party to seat, or return None when nobody is eligible.

        Physical parties are served in arrival order, remote parties in their
        original queue order. The chosen entry is marked ``processing`` and
        the mark is committed before this returns.

        Candidates are claimed one at a time with an update conditioned on
        their current status. A candidate another worker already took is
        skipped, so the next eligible party is returned instead of None.
        """
        physical = (
            select(WaitlistEntry.id)
            .where(WaitlistEntry.restaurant_id == restaurant_id)
            .where(WaitlistEntry.is_remote == False)  # noqa: E712
            .where(WaitlistEntry.status == WaitlistStatus.WAITING.value)
            .order_by(WaitlistEntry.created_at, WaitlistEntry.id)
        )
        remote = (
            select(WaitlistEntry.id)
            .where(WaitlistEntry.restaurant_id == restaurant_id)
            .where(WaitlistEntry.is_remote == True)  # noqa: E712
            .where(WaitlistEntry.status == WaitlistStatus.REMOTE_CONFIRMED.value)
            .order_by(WaitlistEntry.queue_position, WaitlistEntry.id)
        )
        candidates = [
            (physical, WaitlistStatus.WAITING),
            (remote, WaitlistStatus.REMOTE_CONFIRMED),
        ]
        if not prioritize_physical:
            candidates.reverse()

        async with self._transaction(restaurant_id):
            await self._require_restaurant(restaurant_id, for_update=True)
            entry = None
            for stmt, expected in candidates:
                for candidate_id in await self._candidate_ids(stmt):
                    if await self._claim(candidate_id, expected):
                        entry = await self.session.get(
                            WaitlistEntry, candidate_id, populate_existing=True
                        )
                        break
                    logger.debug("Entry %d was claimed elsewhere, trying the next", candidate_id)
                if entry is not None:
                    break

        if entry is None:
            logger.debug("No customer available for restaurant %s", restaurant_id)
        else:
            logger.info(
                "Selected entry %d (remote=%s) for restaurant %s",
                entry.id,
                entry.is_remote,
                restaurant_id,
            )
        return entry

    async def release_selection(self, entry_id: int) -> WaitlistEntry:
        """Hand a ``processing`` reservation back to the queue."""
        entry = await self.get_entry(entry_id)

        async with self._transaction(entry.restaurant_id):
            await self.session.refresh(entry, with_for_update=True)
            restored = (
                WaitlistStatus.REMOTE_CONFIRMED if entry.is_remote else WaitlistStatus.WAITING
            )
            if entry.status != WaitlistStatus.PROCESSING.value:
                raise InvalidTransitionError(entry.status, restored.value)
            entry.status = restored.value

        return entry

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_restaurant(self, restaurant_id: UUID, for_update: bool = False) -> Restaurant:
        if for_update:
            result = await self.session.execute(restaurant_row_lock(restaurant_id))
            restaurant = result.scalars().first()
        else:
            restaurant = await self.session.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        return restaurant

    async def _candidate_ids(self, stmt: Select) -> List[int]:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _claim(self, entry_id: int, expected: WaitlistStatus) -> bool:
        """Mark an entry ``processing`` only if it still has ``expected`` status."""
        result = await self.session.execute(
            update(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id)
            .where(WaitlistEntry.status == expected.value)
            .values(status=WaitlistStatus.PROCESSING.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _next_queue_position(self, restaurant_id: UUID) -> int:
        # Cancelled and seated entries count too, positions are never reused
        result = await self.session.execute(
            select(func.max(WaitlistEntry.queue_position)).where(
                WaitlistEntry.restaurant_id == restaurant_id
            )
        )
        return (result.scalar() or 0) + 1

    async def _unique_confirmation_code(self, restaurant_id: UUID) -> str:
        for _ in range(self.settings.confirmation_code_attempts):
            code = generate_confirmation_code(self.settings.confirmation_code_length)
            result = await self.session.execute(
                select(WaitlistEntry.id)
                .where(WaitlistEntry.restaurant_id == restaurant_id)
                .where(WaitlistEntry.confirmation_code == code)
                .where(WaitlistEntry.status.in_(ACTIVE_REMOTE_STATUSES))
            )
            if result.first() is None:
                return code

        logger.error("Exhausted confirmation code attempts for restaurant %s", restaurant_id)
        raise StorageError("Could not generate a confirmation code, please try again")
