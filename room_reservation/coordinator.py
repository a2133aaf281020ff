"""Check-then-commit coordination of room reservations.

Every mutation of a room's confirmed set happens while holding that room's
lock, so commits within a room are totally ordered while rooms proceed in
parallel. The backend write always precedes the index update: a failed write
leaves the index exactly as it was.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Iterator
from uuid import uuid4

from .backends import InMemoryReservationBackend, ReservationBackend
from .booking import TimeInterval, normalize_instant
from .errors import (
    ConflictError,
    ConsistencyViolation,
    ForbiddenError,
    ReservationNotFoundError,
    RoomBusyError,
    RoomNotFoundError,
    ValidationError,
)
from .idempotency import IdempotencyCache
from .interval_store import IntervalStore
from .logger import get_logger
from .models import Reservation, ReservationStatus, Room
from .rooms import RoomRegistry, normalize_room_id

logger = get_logger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 60.0
DEFAULT_IDEMPOTENCY_TTL_SECONDS = 24 * 60 * 60
DEFAULT_IDEMPOTENCY_MAX_ENTRIES = 10_000


def _normalize_requester(requester_id: str | None) -> str:
    if requester_id is None:
        raise ValidationError("requester_id must not be None.")
    normalized = str(requester_id).strip()
    if not normalized:
        raise ValidationError("requester_id must not be blank.")
    return normalized


def _normalize_token(token: str | None) -> str | None:
    if token is None:
        return None
    normalized = str(token).strip()
    if not normalized:
        raise ValidationError("idempotency_token must not be blank when given.")
    return normalized


class ReservationCoordinator:
    def __init__(
        self,
        rooms: RoomRegistry | None = None,
        backend: ReservationBackend | None = None,
        *,
        lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        idempotency_cache: IdempotencyCache | None = None,
        auto_create_rooms: bool = False,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        if lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be greater than zero")

        self.rooms = rooms if rooms is not None else RoomRegistry()
        self.backend = backend if backend is not None else InMemoryReservationBackend()
        self._store = IntervalStore()
        self._confirmed: dict[str, Reservation] = {}
        self._idempotency = idempotency_cache if idempotency_cache is not None else IdempotencyCache(
            ttl_seconds=DEFAULT_IDEMPOTENCY_TTL_SECONDS,
            max_entries=DEFAULT_IDEMPOTENCY_MAX_ENTRIES,
        )
        self._lock_timeout = lock_timeout_seconds
        self._auto_create_rooms = auto_create_rooms
        self._clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(timezone.utc))
        self._room_locks: dict[str, Lock] = {}
        self._room_locks_guard = Lock()
        self._restore()

    def _restore(self) -> None:
        restored = 0
        now = normalize_instant(self._clock())
        for record in self.backend.list_all():
            if record.idempotency_token is not None:
                age_seconds = max((now - normalize_instant(record.created_at)).total_seconds(), 0.0)
                self._idempotency.store(record.idempotency_token, _fingerprint(record), record, age_seconds=age_seconds)
            if not record.is_confirmed:
                continue
            if record.room_id not in self.rooms:
                logger.warning("Persisted reservation references unregistered room. room_id='%s'", record.room_id)
                self.rooms.register(record.room_id)
            self._store.insert(record.room_id, record)
            self._confirmed[record.reservation_id] = record
            restored += 1
        if restored:
            logger.info("Restored confirmed reservations from backend. count=%s", restored)

    def _room_lock(self, room_id: str) -> Lock:
        with self._room_locks_guard:
            lock = self._room_locks.get(room_id)
            if lock is None:
                if room_id not in self.rooms:
                    raise RoomNotFoundError(room_id)
                logger.debug("Creating room lock. room_id='%s'", room_id)
                lock = self._room_locks[room_id] = Lock()
            return lock

    @contextmanager
    def _locked(self, room_id: str) -> Iterator[None]:
        lock = self._room_lock(room_id)
        if not lock.acquire(timeout=self._lock_timeout):
            raise RoomBusyError(f"Room '{room_id}' is busy; try again.")
        try:
            yield
        finally:
            lock.release()

    def _known_room(self, room_id: str) -> Room:
        try:
            return self.rooms.get(room_id)
        except RoomNotFoundError:
            if not self._auto_create_rooms:
                raise
            return self.rooms.register(room_id)

    def _resolve_room(self, room_id: str) -> Room:
        room = self._known_room(room_id)
        if not room.active:
            raise ValidationError(f"Room '{room_id}' is not active.")
        return room

    def _require(self, reservation_id: str) -> Reservation:
        if reservation_id is None or not str(reservation_id).strip():
            raise ValidationError("reservation_id must not be blank.")
        record = self.backend.get(str(reservation_id).strip())
        if record is None:
            raise ReservationNotFoundError(str(reservation_id))
        return record

    def _index(self, reservation: Reservation) -> None:
        try:
            self._store.insert(reservation.room_id, reservation)
        except ConsistencyViolation:
            logger.error(
                "Consistency violation while indexing reservation. reservation_id='%s', room_id='%s'",
                reservation.reservation_id,
                reservation.room_id,
            )
            raise
        self._confirmed[reservation.reservation_id] = reservation

    def _unindex(self, reservation: Reservation) -> None:
        self._store.remove(reservation.room_id, reservation.reservation_id)
        self._confirmed.pop(reservation.reservation_id, None)

    def book(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        requester_id: str,
        idempotency_token: str | None = None,
    ) -> Reservation:
        room_id = normalize_room_id(room_id)
        requester_id = _normalize_requester(requester_id)
        token = _normalize_token(idempotency_token)
        interval = TimeInterval.normalized(start, end)
        fingerprint = (room_id, interval, requester_id)

        logger.info(
            "Room reservation. room_id='%s', interval=%s-%s, requester_id='%s'",
            room_id,
            interval.start.isoformat(),
            interval.end.isoformat(),
            requester_id,
        )

        self._known_room(room_id)
        with self._locked(room_id):
            if token is not None:
                cached = self._idempotency.lookup(token, fingerprint)
                if cached is not None:
                    logger.info(
                        "Room reservation replayed from idempotency token. reservation_id='%s'",
                        cached.reservation_id,
                    )
                    return self.backend.get(cached.reservation_id) or cached

            self._resolve_room(room_id)

            conflicts = self._store.query_overlap(room_id, interval)
            if conflicts:
                logger.info(
                    "Room reservation has failed - collision detected. room_id='%s', requested=%s-%s, conflicts=%s",
                    room_id,
                    interval.start.isoformat(),
                    interval.end.isoformat(),
                    sorted(conflicts),
                )
                raise ConflictError(room_id, conflicts)

            now = self._clock()
            reservation = Reservation(
                reservation_id=str(uuid4()),
                room_id=room_id,
                interval=interval,
                requester_id=requester_id,
                status=ReservationStatus.CONFIRMED,
                created_at=now,
                updated_at=now,
                idempotency_token=token,
            )
            self.backend.save(reservation)
            self._index(reservation)
            if token is not None:
                self._idempotency.store(token, fingerprint, reservation)

        logger.info(
            "Room reservation has been successful. reservation_id='%s', room_id='%s'",
            reservation.reservation_id,
            room_id,
        )
        return reservation

    def cancel(self, reservation_id: str, requester_id: str) -> Reservation:
        requester_id = _normalize_requester(requester_id)
        record = self._require(reservation_id)
        logger.info("Cancel reservation. reservation_id='%s', requester_id='%s'", record.reservation_id, requester_id)

        with self._locked(record.room_id):
            record = self._require(record.reservation_id)
            if record.requester_id != requester_id:
                raise ForbiddenError(f"Reservation '{record.reservation_id}' belongs to another requester.")
            if record.status is ReservationStatus.CANCELLED:
                return record

            cancelled = record.cancelled(self._clock())
            self.backend.save(cancelled)
            self._unindex(cancelled)

        logger.info("Reservation cancelled. reservation_id='%s', room_id='%s'", cancelled.reservation_id, cancelled.room_id)
        return cancelled

    def modify(self, reservation_id: str, requester_id: str, start: datetime, end: datetime) -> Reservation:
        """Move a confirmed reservation to a new interval in the same room.

        The original is cancelled and a replacement pointing back at it is
        confirmed, both under one room lock. On conflict nothing changes.
        """
        requester_id = _normalize_requester(requester_id)
        interval = TimeInterval.normalized(start, end)
        record = self._require(reservation_id)
        logger.info(
            "Modify reservation. reservation_id='%s', interval=%s-%s",
            record.reservation_id,
            interval.start.isoformat(),
            interval.end.isoformat(),
        )

        with self._locked(record.room_id):
            record = self._require(record.reservation_id)
            if record.requester_id != requester_id:
                raise ForbiddenError(f"Reservation '{record.reservation_id}' belongs to another requester.")
            if not record.is_confirmed:
                raise ValidationError(f"Reservation '{record.reservation_id}' is {record.status.value} and cannot be modified.")
            self._resolve_room(record.room_id)

            conflicts = self._store.query_overlap(record.room_id, interval) - {record.reservation_id}
            if conflicts:
                logger.info(
                    "Reservation modification has failed - collision detected. reservation_id='%s', conflicts=%s",
                    record.reservation_id,
                    sorted(conflicts),
                )
                raise ConflictError(record.room_id, conflicts)

            now = self._clock()
            replacement = Reservation(
                reservation_id=str(uuid4()),
                room_id=record.room_id,
                interval=interval,
                requester_id=requester_id,
                status=ReservationStatus.CONFIRMED,
                created_at=now,
                updated_at=now,
                replaces=record.reservation_id,
            )
            cancelled = record.cancelled(now)

            self.backend.save(replacement)
            try:
                self.backend.save(cancelled)
            except Exception:
                self.backend.save(replacement.cancelled(now))
                raise

            self._unindex(cancelled)
            self._index(replacement)

        logger.info(
            "Reservation modified. reservation_id='%s', replaced_by='%s'",
            record.reservation_id,
            replacement.reservation_id,
        )
        return replacement

    def get(self, reservation_id: str) -> Reservation:
        return self._require(reservation_id)

    def list_for_room(
        self,
        room_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Reservation]:
        """Confirmed reservations of a room ordered by start, optionally limited to those overlapping [start, end)."""
        room = self.rooms.get(room_id)
        if (start is None) != (end is None):
            raise ValidationError("start and end must be given together.")
        window = TimeInterval.normalized(start, end) if start is not None else None

        with self._locked(room.room_id):
            ids = [reservation_id for reservation_id, _ in self._store.intervals(room.room_id, window)]
            return [self._confirmed[reservation_id] for reservation_id in ids]

    def find_available_room(self, start: datetime, end: datetime, min_capacity: int = 1) -> Room | None:
        interval = TimeInterval.normalized(start, end)
        logger.info("Find available room. interval=%s-%s, min_capacity=%s", interval.start.isoformat(), interval.end.isoformat(), min_capacity)

        for room in self.rooms.all():
            if not room.active or room.capacity < min_capacity:
                continue
            with self._locked(room.room_id):
                if not self._store.query_overlap(room.room_id, interval):
                    logger.info("Available room found. room_id='%s'", room.room_id)
                    return room

        logger.info("Available room not found. interval=%s-%s", interval.start.isoformat(), interval.end.isoformat())
        return None

    def all_reservations(self) -> dict[str, list[Reservation]]:
        return {room.room_id: self.list_for_room(room.room_id) for room in self.rooms.all()}

    def history(self, room_id: str | None = None) -> list[Reservation]:
        if room_id is None:
            return self.backend.list_all()
        return self.backend.list_room(self.rooms.get(room_id).room_id)

    def check_invariants(self) -> None:
        for room_id in self._store.rooms():
            with self._locked(room_id):
                self._store.check_invariants(room_id)


def _fingerprint(record: Reservation) -> tuple[str, TimeInterval, str]:
    return (record.room_id, record.interval, record.requester_id)
