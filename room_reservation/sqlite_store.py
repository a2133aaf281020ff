"""Relational reservation backend on SQLite."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Iterator

from .backends import ReservationBackend
from .errors import ReservationStorageError
from .logger import get_logger
from .models import Reservation

logger = get_logger(__name__)

_COLUMNS = (
    "reservation_id",
    "room_id",
    "start",
    "end",
    "requester_id",
    "status",
    "created_at",
    "updated_at",
    "idempotency_token",
    "replaces",
)


class SqliteReservationBackend(ReservationBackend):
    """Keeps reservation history in a single SQLite table.

    Every call opens its own connection, so the backend can be shared across
    threads; writes are additionally serialized by a process-local lock.
    """

    def __init__(self, database_path: str | Path) -> None:
        self._db_path = Path(database_path)
        self._write_lock = Lock()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise ReservationStorageError(f"Failed to prepare database directory: {self._db_path.parent}") from error
        self.initialize_database()

    @property
    def database_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as error:
            raise ReservationStorageError(f"Failed to open database: {self._db_path}") from error
        connection.row_factory = sqlite3.Row
        try:
            with connection:
                yield connection
        except sqlite3.Error as error:
            raise ReservationStorageError(f"Database operation failed: {error}") from error
        finally:
            connection.close()

    def initialize_database(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reservations (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    reservation_id TEXT NOT NULL UNIQUE,
                    room_id TEXT NOT NULL,
                    start TEXT NOT NULL,
                    "end" TEXT NOT NULL,
                    requester_id TEXT NOT NULL,
                    status TEXT NOT NULL CHECK (status IN ('PENDING', 'CONFIRMED', 'CANCELLED')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    idempotency_token TEXT,
                    replaces TEXT
                );
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_reservations_room_start
                ON reservations(room_id, start);
                """
            )
        logger.info("Reservation database initialized at %s", self._db_path)

    def save(self, reservation: Reservation) -> None:
        payload = reservation.to_dict()
        values = [payload.get(column) for column in _COLUMNS]
        quoted = ", ".join(f'"{column}"' for column in _COLUMNS)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._write_lock, self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO reservations ({quoted}) VALUES ({placeholders})
                ON CONFLICT(reservation_id) DO UPDATE SET
                    status = excluded.status,
                    updated_at = excluded.updated_at
                """,
                values,
            )

    def get(self, reservation_id: str) -> Reservation | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reservations WHERE reservation_id = ?;",
                (reservation_id,),
            ).fetchone()
        return None if row is None else _row_to_reservation(row)

    def list_room(self, room_id: str) -> list[Reservation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM reservations WHERE room_id = ? ORDER BY seq;",
                (room_id,),
            ).fetchall()
        return [_row_to_reservation(row) for row in rows]

    def list_all(self) -> list[Reservation]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM reservations ORDER BY seq;").fetchall()
        return [_row_to_reservation(row) for row in rows]


def _row_to_reservation(row: sqlite3.Row) -> Reservation:
    return Reservation.from_dict({column: row[column] for column in _COLUMNS})
