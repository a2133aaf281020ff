from __future__ import annotations

from abc import ABC, abstractmethod
from threading import Lock

from .models import Reservation


class ReservationBackend(ABC):
    """Durable history of every reservation record, cancelled ones included.

    ``save`` is an upsert keyed by reservation id; records are never deleted.
    Implementations must be safe to call from several threads at once.
    """

    @abstractmethod
    def save(self, reservation: Reservation) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, reservation_id: str) -> Reservation | None:
        raise NotImplementedError

    @abstractmethod
    def list_room(self, room_id: str) -> list[Reservation]:
        """Return the room's records in the order they were first saved."""
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[Reservation]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class InMemoryReservationBackend(ReservationBackend):
    def __init__(self) -> None:
        self._records: dict[str, Reservation] = {}
        self._lock = Lock()

    def save(self, reservation: Reservation) -> None:
        with self._lock:
            self._records[reservation.reservation_id] = reservation

    def get(self, reservation_id: str) -> Reservation | None:
        with self._lock:
            return self._records.get(reservation_id)

    def list_room(self, room_id: str) -> list[Reservation]:
        with self._lock:
            return [record for record in self._records.values() if record.room_id == room_id]

    def list_all(self) -> list[Reservation]:
        with self._lock:
            return list(self._records.values())
