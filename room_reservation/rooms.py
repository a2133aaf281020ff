from __future__ import annotations

from threading import RLock
from typing import Any, Iterable

from .errors import RoomNotFoundError, ValidationError
from .logger import get_logger
from .models import Room

logger = get_logger(__name__)


def normalize_room_id(room_id: str | None) -> str:
    if room_id is None:
        raise ValidationError("Room reservation must have set a room_id.")

    normalized = str(room_id).strip()
    if not normalized:
        raise ValidationError("room_id must not be blank.")
    return normalized


class RoomRegistry:
    """Known rooms in registration order."""

    def __init__(self, rooms: Iterable[Room] = ()) -> None:
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        for room in rooms:
            self.register(room)

    def register(self, room: Room | str, capacity: int = 1, attributes: dict[str, Any] | None = None) -> Room:
        if isinstance(room, str):
            room = Room(room_id=room, capacity=capacity, attributes=dict(attributes or {}))
        room_id = normalize_room_id(room.room_id)
        if room.capacity <= 0:
            raise ValidationError("Room capacity must be greater than zero.")
        if room_id != room.room_id:
            room = Room(room_id=room_id, capacity=room.capacity, attributes=room.attributes, active=room.active)

        with self._lock:
            existing = self._rooms.get(room_id)
            if existing is not None:
                return existing
            self._rooms[room_id] = room
        logger.info("Room registered. room_id='%s', capacity=%s", room_id, room.capacity)
        return room

    def get(self, room_id: str) -> Room:
        normalized = normalize_room_id(room_id)
        with self._lock:
            room = self._rooms.get(normalized)
        if room is None:
            raise RoomNotFoundError(normalized)
        return room

    def deactivate(self, room_id: str) -> Room:
        room = self.get(room_id)
        with self._lock:
            updated = room.deactivated()
            self._rooms[room.room_id] = updated
        logger.info("Room deactivated. room_id='%s'", room.room_id)
        return updated

    def all(self) -> list[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __contains__(self, room_id: object) -> bool:
        with self._lock:
            return isinstance(room_id, str) and room_id.strip() in self._rooms

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
