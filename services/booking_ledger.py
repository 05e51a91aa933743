"""
Booking ledger: query surface over existing reservations.

The ledger answers overlap questions for capacity counting and owns the
per-window write lock that makes "count overlaps, then insert" atomic.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.utils_datetime import ensure_utc
from db.models_sqlalchemy import BookingWindowLock, Reservation
from domain.enums import ReservationStatus


logger = logging.getLogger(__name__)

LOCK_BUCKET_MINUTES = 30
DEFAULT_EXCLUDED_STATUSES = frozenset({ReservationStatus.CANCELLED})


def window_buckets(window_start: datetime, window_end: datetime) -> List[datetime]:
    """
    UTC bucket starts touched by [window_start, window_end), ascending.

    Any two overlapping intervals share at least one bucket.
    """
    start = ensure_utc(window_start)
    end = ensure_utc(window_end)
    bucket = start.replace(
        minute=(start.minute // LOCK_BUCKET_MINUTES) * LOCK_BUCKET_MINUTES,
        second=0,
        microsecond=0,
    )
    step = timedelta(minutes=LOCK_BUCKET_MINUTES)

    buckets = []
    while bucket < end:
        buckets.append(bucket)
        bucket += step
    return buckets


class BookingLedger:
    """Reservation queries and window locking within one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _overlap_query(
        self,
        window_start: datetime,
        window_end: datetime,
        exclude_statuses: Iterable[ReservationStatus],
    ):
        stmt = select(Reservation).where(
            Reservation.start_time < ensure_utc(window_end),
            Reservation.end_time > ensure_utc(window_start),
        )
        excluded = [ReservationStatus(s).value for s in exclude_statuses]
        if excluded:
            stmt = stmt.where(Reservation.status.not_in(excluded))
        return stmt

    async def find_overlapping(
        self,
        window_start: datetime,
        window_end: datetime,
        exclude_statuses: Iterable[ReservationStatus] = DEFAULT_EXCLUDED_STATUSES,
    ) -> List[Reservation]:
        """
        Find every reservation overlapping [window_start, window_end).

        Args:
            window_start: Window start (UTC)
            window_end: Window end (UTC)
            exclude_statuses: Statuses that do not occupy time

        Returns:
            Reservations ordered by start time
        """
        stmt = self._overlap_query(window_start, window_end, exclude_statuses)
        result = await self.session.execute(stmt.order_by(Reservation.start_time, Reservation.id))
        return list(result.scalars())

    async def count_overlapping(
        self,
        window_start: datetime,
        window_end: datetime,
        exclude_statuses: Iterable[ReservationStatus] = DEFAULT_EXCLUDED_STATUSES,
    ) -> int:
        """Count reservations overlapping [window_start, window_end)."""
        subquery = self._overlap_query(window_start, window_end, exclude_statuses).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return result.scalar_one()

    async def get(self, reservation_id: str, for_update: bool = False) -> Optional[Reservation]:
        """
        Get a reservation by ID.

        Args:
            reservation_id: Reservation ID
            for_update: Lock the row until the transaction ends

        Returns:
            Reservation or None if not found
        """
        stmt = select(Reservation).where(Reservation.id == reservation_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, reservation: Reservation) -> Reservation:
        """Stage a new reservation and flush it to the database."""
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_reservations(
        self,
        status: Optional[ReservationStatus] = None,
        start_from: Optional[datetime] = None,
        start_until: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Reservation]:
        """List reservations for the admin view, most recent start first."""
        stmt = select(Reservation)
        if status:
            stmt = stmt.where(Reservation.status == status.value)
        if start_from:
            stmt = stmt.where(Reservation.start_time >= ensure_utc(start_from))
        if start_until:
            stmt = stmt.where(Reservation.start_time < ensure_utc(start_until))

        stmt = stmt.order_by(Reservation.start_time.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def lock_window(self, window_start: datetime, window_end: datetime) -> List[datetime]:
        """
        Serialize writers whose intervals overlap [window_start, window_end).

        Must be called inside the transaction that re-counts overlaps and
        inserts. Bucket rows are created if missing, then bumped one at a
        time in ascending order; the row locks (PostgreSQL) or the database
        write lock (SQLite) are held until the transaction ends.

        Returns:
            The bucket starts that were locked
        """
        buckets = window_buckets(window_start, window_end)
        if not buckets:
            return buckets

        await self._ensure_buckets(buckets)

        for bucket in buckets:
            await self.session.execute(
                update(BookingWindowLock)
                .where(BookingWindowLock.bucket_start == bucket)
                .values(version=BookingWindowLock.version + 1)
                .execution_options(synchronize_session=False)
            )

        logger.debug(
            f"Locked {len(buckets)} booking bucket(s) "
            f"{buckets[0].isoformat()}..{buckets[-1].isoformat()}"
        )
        return buckets

    async def _ensure_buckets(self, buckets: List[datetime]) -> None:
        dialect = self.session.get_bind().dialect.name
        rows = [{"bucket_start": bucket, "version": 0} for bucket in buckets]

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert

            stmt = insert(BookingWindowLock).values(rows).on_conflict_do_nothing(
                index_elements=[BookingWindowLock.bucket_start]
            )
            await self.session.execute(stmt)
            return

        # Other backends: insert missing rows one by one, tolerating races
        existing = await self.session.execute(
            select(BookingWindowLock.bucket_start).where(BookingWindowLock.bucket_start.in_(buckets))
        )
        present = {ensure_utc(value) for value in existing.scalars()}
        for bucket in buckets:
            if bucket in present:
                continue
            try:
                async with self.session.begin_nested():
                    self.session.add(BookingWindowLock(bucket_start=bucket, version=0))
            except IntegrityError:
                logger.debug(f"Bucket {bucket.isoformat()} created concurrently")

    async def transition_status(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        expected: Optional[Iterable[ReservationStatus]] = None,
        **values,
    ) -> bool:
        """
        Move a reservation to ``new_status`` if it is still in ``expected``.

        The status check and the write are one conditional UPDATE, so two
        callers racing on the same reservation cannot both succeed.

        Args:
            reservation_id: Reservation ID
            new_status: Target status
            expected: Statuses the reservation may currently be in; defaults to every
                status allowed to move to ``new_status``
            **values: Extra columns to set with the transition

        Returns:
            True if this call performed the transition
        """
        if expected is None:
            expected = ReservationStatus.sources_of(new_status)

        result = await self.session.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.status.in_([ReservationStatus(s).value for s in expected]),
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def attach_external_event(
        self,
        reservation_id: str,
        event_id: str,
        google_calendar_id: Optional[str] = None,
    ) -> bool:
        """
        Store the calendar event of a reservation unless one is already stored.

        Returns:
            True if this call stored the event ID
        """
        values = {"external_event_id": event_id}
        if google_calendar_id:
            values["google_calendar_id"] = google_calendar_id

        result = await self.session.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.external_event_id.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
