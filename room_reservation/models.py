from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from .booking import TimeInterval


class ReservationStatus(str, Enum):
    # PENDING is never produced by the coordinator; kept for a future waitlist.
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Room:
    room_id: str
    capacity: int = 1
    attributes: dict[str, Any] = field(default_factory=dict, compare=False)
    active: bool = True

    def deactivated(self) -> "Room":
        return replace(self, active=False)


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    room_id: str
    interval: TimeInterval
    requester_id: str
    status: ReservationStatus
    created_at: datetime
    updated_at: datetime
    idempotency_token: str | None = None
    replaces: str | None = None

    @property
    def start(self) -> datetime:
        return self.interval.start

    @property
    def end(self) -> datetime:
        return self.interval.end

    @property
    def is_confirmed(self) -> bool:
        return self.status is ReservationStatus.CONFIRMED

    def cancelled(self, now: datetime) -> "Reservation":
        return replace(self, status=ReservationStatus.CANCELLED, updated_at=now)

    def to_dict(self) -> dict[str, str]:
        payload = {
            "reservation_id": self.reservation_id,
            "room_id": self.room_id,
            "start": self.start.isoformat(timespec="minutes"),
            "end": self.end.isoformat(timespec="minutes"),
            "requester_id": self.requester_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        if self.idempotency_token is not None:
            payload["idempotency_token"] = self.idempotency_token
        if self.replaces is not None:
            payload["replaces"] = self.replaces
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Reservation":
        return Reservation(
            reservation_id=str(data["reservation_id"]),
            room_id=str(data["room_id"]),
            interval=TimeInterval(
                datetime.fromisoformat(str(data["start"])),
                datetime.fromisoformat(str(data["end"])),
            ),
            requester_id=str(data["requester_id"]),
            status=ReservationStatus(str(data["status"])),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            idempotency_token=(str(data["idempotency_token"]) if data.get("idempotency_token") is not None else None),
            replaces=(str(data["replaces"]) if data.get("replaces") is not None else None),
        )
