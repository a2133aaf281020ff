import unittest
from datetime import datetime, timedelta, timezone

from room_reservation import (
    ConsistencyViolation,
    IntervalStore,
    Reservation,
    ReservationStatus,
    TimeInterval,
)

CREATED = datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc)


def _interval(start_hour: int, end_hour: int, day: int = 24) -> TimeInterval:
    return TimeInterval.normalized(datetime(2026, 2, day, start_hour, 0), datetime(2026, 2, day, end_hour, 0))


def _reservation(reservation_id: str, start_hour: int, end_hour: int, room_id: str = "R-101") -> Reservation:
    return Reservation(
        reservation_id=reservation_id,
        room_id=room_id,
        interval=_interval(start_hour, end_hour),
        requester_id="alice",
        status=ReservationStatus.CONFIRMED,
        created_at=CREATED,
        updated_at=CREATED,
    )


class TestIntervalStore(unittest.TestCase):
    def setUp(self) -> None:
        self.store = IntervalStore()
        for reservation in (
            _reservation("a", 8, 9),
            _reservation("b", 10, 11),
            _reservation("c", 13, 15),
        ):
            self.store.insert("R-101", reservation)

    def test_query_unknown_room_is_empty(self) -> None:
        self.assertEqual(self.store.query_overlap("R-999", _interval(8, 18)), set())

    def test_query_finds_every_overlapping_interval(self) -> None:
        self.assertEqual(self.store.query_overlap("R-101", _interval(8, 18)), {"a", "b", "c"})
        self.assertEqual(self.store.query_overlap("R-101", _interval(10, 14)), {"b", "c"})

    def test_query_respects_half_open_boundaries(self) -> None:
        self.assertEqual(self.store.query_overlap("R-101", _interval(9, 10)), set())
        self.assertEqual(self.store.query_overlap("R-101", _interval(11, 13)), set())

    def test_query_is_scoped_per_room(self) -> None:
        self.store.insert("R-102", _reservation("x", 10, 11, room_id="R-102"))

        self.assertEqual(self.store.query_overlap("R-102", _interval(8, 18)), {"x"})
        self.assertEqual(self.store.size("R-101"), 3)

    def test_insert_keeps_start_order(self) -> None:
        self.store.insert("R-101", _reservation("d", 11, 12))
        self.store.insert("R-101", _reservation("e", 6, 7))

        ids = [reservation_id for reservation_id, _ in self.store.intervals("R-101")]
        self.assertEqual(ids, ["e", "a", "b", "d", "c"])
        self.store.check_invariants()

    def test_insert_overlapping_raises_consistency_violation(self) -> None:
        with self.assertRaises(ConsistencyViolation):
            self.store.insert("R-101", _reservation("z", 10, 12))
        self.assertEqual(self.store.size("R-101"), 3)

    def test_insert_duplicate_id_raises_consistency_violation(self) -> None:
        with self.assertRaises(ConsistencyViolation):
            self.store.insert("R-101", _reservation("a", 16, 17))

    def test_remove_is_idempotent(self) -> None:
        self.assertTrue(self.store.remove("R-101", "b"))
        self.assertFalse(self.store.remove("R-101", "b"))
        self.assertFalse(self.store.remove("R-404", "b"))

        self.assertEqual(self.store.query_overlap("R-101", _interval(10, 11)), set())
        self.assertFalse(self.store.contains("R-101", "b"))

    def test_freed_slot_can_be_reinserted(self) -> None:
        self.store.remove("R-101", "b")
        self.store.insert("R-101", _reservation("b2", 10, 11))

        self.assertEqual(self.store.query_overlap("R-101", _interval(10, 11)), {"b2"})

    def test_intervals_with_window(self) -> None:
        pairs = self.store.intervals("R-101", _interval(9, 14))

        self.assertEqual([reservation_id for reservation_id, _ in pairs], ["b", "c"])
        self.assertEqual(pairs[0][1], _interval(10, 11))

    def test_many_inserts_stay_consistent(self) -> None:
        store = IntervalStore()
        base = datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)
        for index in range(200):
            offset = (index * 37) % 200
            start = base + timedelta(minutes=offset * 10)
            store.insert(
                "R-1",
                Reservation(
                    reservation_id=f"r{offset}",
                    room_id="R-1",
                    interval=TimeInterval(start, start + timedelta(minutes=10)),
                    requester_id="bob",
                    status=ReservationStatus.CONFIRMED,
                    created_at=CREATED,
                    updated_at=CREATED,
                ),
            )

        store.check_invariants()
        self.assertEqual(store.size("R-1"), 200)
        self.assertEqual(
            store.query_overlap("R-1", TimeInterval(base + timedelta(minutes=55), base + timedelta(minutes=75))),
            {"r5", "r6", "r7"},
        )


if __name__ == "__main__":
    unittest.main()
