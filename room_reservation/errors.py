from __future__ import annotations

from typing import Iterable


class ReservationError(Exception):
    pass


class ValidationError(ReservationError, ValueError):
    pass


class NotFoundError(ReservationError, LookupError):
    pass


class RoomNotFoundError(NotFoundError, ValidationError):
    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room '{room_id}' not found.")
        self.room_id = room_id


class ReservationNotFoundError(NotFoundError):
    def __init__(self, reservation_id: str) -> None:
        super().__init__(f"Reservation '{reservation_id}' not found.")
        self.reservation_id = reservation_id


class ForbiddenError(ReservationError):
    pass


class ConflictError(ReservationError):
    """Requested interval overlaps one or more confirmed reservations."""

    def __init__(self, room_id: str, conflicting_ids: Iterable[str]) -> None:
        self.room_id = room_id
        self.conflicting_ids = frozenset(conflicting_ids)
        joined = ", ".join(sorted(self.conflicting_ids))
        super().__init__(f"Reservation overlaps with an existing reservation in room '{room_id}': {joined}")


class IdempotencyKeyReuseError(ValidationError):
    pass


class RoomBusyError(ReservationError, RuntimeError):
    pass


class ConsistencyViolation(ReservationError, RuntimeError):
    """An internal invariant was broken; this is a bug, never a caller error."""


class ReservationStorageError(ReservationError, RuntimeError):
    pass
