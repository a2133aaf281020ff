"""Per-room index of confirmed reservation intervals.

Confirmed intervals within one room never overlap, so ordering them by start
also orders them by end. Overlap lookups therefore need one binary search on
the end column to find the first candidate, then a forward scan that stops at
the first start at or after the query end: O(log n + k).

The store does no locking of its own. Callers serialize mutations per room.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import datetime
from typing import Iterator

from .booking import TimeInterval
from .errors import ConsistencyViolation
from .models import Reservation


class _RoomIndex:
    __slots__ = ("starts", "ends", "ids", "by_id")

    def __init__(self) -> None:
        self.starts: list[datetime] = []
        self.ends: list[datetime] = []
        self.ids: list[str] = []
        self.by_id: dict[str, TimeInterval] = {}

    def scan(self, interval: TimeInterval) -> Iterator[int]:
        position = bisect_right(self.ends, interval.start)
        while position < len(self.starts) and self.starts[position] < interval.end:
            yield position
            position += 1

    def position_of(self, reservation_id: str) -> int:
        interval = self.by_id[reservation_id]
        position = bisect_left(self.starts, interval.start)
        if position >= len(self.ids) or self.ids[position] != reservation_id:
            raise ConsistencyViolation(f"Index entry for reservation '{reservation_id}' is out of order.")
        return position


class IntervalStore:
    def __init__(self) -> None:
        self._rooms: dict[str, _RoomIndex] = {}

    def _index(self, room_id: str) -> _RoomIndex:
        index = self._rooms.get(room_id)
        if index is None:
            index = self._rooms.setdefault(room_id, _RoomIndex())
        return index

    def query_overlap(self, room_id: str, interval: TimeInterval) -> set[str]:
        index = self._rooms.get(room_id)
        if index is None:
            return set()
        return {index.ids[position] for position in index.scan(interval)}

    def insert(self, room_id: str, reservation: Reservation) -> None:
        """Index a confirmed reservation.

        Callers must have checked for overlaps already; finding one here means
        the per-room lock protocol was bypassed.
        """
        index = self._index(room_id)
        if reservation.reservation_id in index.by_id:
            raise ConsistencyViolation(
                f"Reservation '{reservation.reservation_id}' is already indexed for room '{room_id}'."
            )
        conflicts = self.query_overlap(room_id, reservation.interval)
        if conflicts:
            raise ConsistencyViolation(
                f"Reservation '{reservation.reservation_id}' overlaps confirmed reservations "
                f"{sorted(conflicts)} in room '{room_id}'."
            )

        position = bisect_left(index.starts, reservation.start)
        index.starts.insert(position, reservation.start)
        index.ends.insert(position, reservation.end)
        index.ids.insert(position, reservation.reservation_id)
        index.by_id[reservation.reservation_id] = reservation.interval

    def remove(self, room_id: str, reservation_id: str) -> bool:
        index = self._rooms.get(room_id)
        if index is None or reservation_id not in index.by_id:
            return False

        position = index.position_of(reservation_id)
        del index.starts[position]
        del index.ends[position]
        del index.ids[position]
        del index.by_id[reservation_id]
        return True

    def contains(self, room_id: str, reservation_id: str) -> bool:
        index = self._rooms.get(room_id)
        return index is not None and reservation_id in index.by_id

    def intervals(self, room_id: str, window: TimeInterval | None = None) -> list[tuple[str, TimeInterval]]:
        index = self._rooms.get(room_id)
        if index is None:
            return []
        positions = range(len(index.ids)) if window is None else index.scan(window)
        return [(index.ids[position], index.by_id[index.ids[position]]) for position in positions]

    def rooms(self) -> list[str]:
        return list(self._rooms)

    def size(self, room_id: str) -> int:
        index = self._rooms.get(room_id)
        return 0 if index is None else len(index.ids)

    def check_invariants(self, room_id: str | None = None) -> None:
        room_ids = self.rooms() if room_id is None else [room_id]
        for current in room_ids:
            index = self._rooms.get(current)
            if index is None:
                continue
            if not (len(index.starts) == len(index.ends) == len(index.ids) == len(index.by_id)):
                raise ConsistencyViolation(f"Index columns for room '{current}' have diverged.")
            for position in range(1, len(index.ids)):
                if index.ends[position - 1] > index.starts[position]:
                    raise ConsistencyViolation(
                        f"Reservations '{index.ids[position - 1]}' and '{index.ids[position]}' "
                        f"overlap in room '{current}'."
                    )
