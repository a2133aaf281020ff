from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Callable
import shutil

import yaml

from .backends import ReservationBackend
from .errors import ReservationStorageError
from .logger import get_logger
from .models import Reservation

logger = get_logger(__name__)


class YamlReservationBackend(ReservationBackend):
    """Reservation history kept in YAML files under ``base_dir``.

    ``reservations.yaml`` holds the current state of every record in the order
    it was first saved. ``reservation_events.yaml`` is an append-only audit
    trail of every save and every recovery from a damaged file.
    """

    def __init__(
        self,
        base_dir: str | Path = "data",
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.records_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(timezone.utc))
        self._lock = RLock()
        self._ensure_files()
        self._records: dict[str, Reservation] = self._load_records()

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.records_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise ReservationStorageError(f"Failed to prepare data directory: {self.base_dir}") from error

    def _load_records(self) -> dict[str, Reservation]:
        records: dict[str, Reservation] = {}
        for index, row in enumerate(self._read_yaml_list(self.records_file)):
            try:
                record = Reservation.from_dict(row)
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {"file": self.records_file.name, "index": index, "reason": str(error)},
                )
                continue
            records[record.reservation_id] = record
        return records

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            else:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning("Could not remove temporary YAML file. file='%s', error=%s", temp_path, cleanup_error)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = self._clock().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError as copy_error:
            logger.warning("Could not back up damaged YAML file. file='%s', error=%s", path, copy_error)

        logger.warning("Recovered damaged YAML file. file='%s', backup='%s', reason=%s", path, backup_path, error)
        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any]) -> None:
        timestamp = self._clock().isoformat(timespec="seconds")
        events = self._read_yaml_list(self.log_file)
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        self._write_yaml_list(self.log_file, events)

    def save(self, reservation: Reservation) -> None:
        with self._lock:
            updated = dict(self._records)
            updated[reservation.reservation_id] = reservation
            self._write_yaml_list(self.records_file, [record.to_dict() for record in updated.values()])
            try:
                self._log_event("RESERVATION_SAVED", reservation.to_dict())
            except (OSError, ReservationStorageError):
                # the record is only saved once its event is
                self._write_yaml_list(self.records_file, [record.to_dict() for record in self._records.values()])
                raise
            self._records = updated

    def get(self, reservation_id: str) -> Reservation | None:
        with self._lock:
            return self._records.get(reservation_id)

    def list_room(self, room_id: str) -> list[Reservation]:
        with self._lock:
            return [record for record in self._records.values() if record.room_id == room_id]

    def list_all(self) -> list[Reservation]:
        with self._lock:
            return list(self._records.values())

    def events(self) -> list[dict[str, Any]]:
        with self._lock:
            return self._read_yaml_list(self.log_file)
