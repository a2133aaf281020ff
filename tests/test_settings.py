import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from room_reservation import (
    InMemoryReservationBackend,
    Settings,
    SqliteReservationBackend,
    YamlReservationBackend,
    build_coordinator,
    create_backend,
    load_settings,
)


class TestLoadSettings(unittest.TestCase):
    def test_defaults_without_file_or_env(self) -> None:
        settings = load_settings(environ={})

        self.assertEqual(settings, Settings())
        self.assertEqual(settings.lock_timeout_seconds, 60.0)
        self.assertFalse(settings.auto_create_rooms)

    def test_yaml_file_then_environment_override(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                "backend: yaml\nidempotency_max_entries: 50\nauto_create_rooms: true\n",
                encoding="utf-8",
            )

            settings = load_settings(
                environ={
                    "ROOM_RESERVATION_CONFIG": str(config_path),
                    "ROOM_RESERVATION_IDEMPOTENCY_MAX_ENTRIES": "75",
                    "ROOM_RESERVATION_LOCK_TIMEOUT_SECONDS": "2.5",
                },
            )

        self.assertEqual(settings.backend, "yaml")
        self.assertEqual(settings.idempotency_max_entries, 75)
        self.assertEqual(settings.lock_timeout_seconds, 2.5)
        self.assertTrue(settings.auto_create_rooms)

    def test_env_booleans(self) -> None:
        self.assertTrue(load_settings(environ={"ROOM_RESERVATION_AUTO_CREATE_ROOMS": "yes"}).auto_create_rooms)
        self.assertFalse(load_settings(environ={"ROOM_RESERVATION_AUTO_CREATE_ROOMS": "0"}).auto_create_rooms)

    def test_invalid_values_raise(self) -> None:
        with self.assertRaises(ValueError):
            load_settings(environ={"ROOM_RESERVATION_BACKEND": "postgres"})
        with self.assertRaises(ValueError):
            load_settings(environ={"ROOM_RESERVATION_LOCK_TIMEOUT_SECONDS": "0"})
        with self.assertRaises(ValueError):
            load_settings(environ={"ROOM_RESERVATION_IDEMPOTENCY_MAX_ENTRIES": "many"})

    def test_unknown_or_malformed_config_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            unknown = Path(temp_dir) / "unknown.yaml"
            unknown.write_text("colour: blue\n", encoding="utf-8")
            not_mapping = Path(temp_dir) / "list.yaml"
            not_mapping.write_text("- memory\n", encoding="utf-8")

            with self.assertRaises(ValueError):
                load_settings(unknown, environ={})
            with self.assertRaises(ValueError):
                load_settings(not_mapping, environ={})
            with self.assertRaises(ValueError):
                load_settings(Path(temp_dir) / "missing.yaml", environ={})


class TestBootstrap(unittest.TestCase):
    def test_create_backend_by_name(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertIsInstance(create_backend(Settings()), InMemoryReservationBackend)
            self.assertIsInstance(
                create_backend(Settings(backend="yaml", data_dir=str(Path(temp_dir) / "data"))),
                YamlReservationBackend,
            )
            self.assertIsInstance(
                create_backend(Settings(backend="sqlite", database_path=str(Path(temp_dir) / "r.sqlite3"))),
                SqliteReservationBackend,
            )

    def test_build_coordinator_registers_rooms_and_applies_settings(self) -> None:
        now = datetime(2026, 2, 24, 9, 0, tzinfo=timezone.utc)
        coordinator = build_coordinator(
            Settings(log_level="WARNING", auto_create_rooms=True),
            rooms=["R-101", "R-102"],
            now_provider=lambda: now,
        )

        self.assertEqual([room.room_id for room in coordinator.rooms.all()], ["R-101", "R-102"])
        reservation = coordinator.book("R-200", datetime(2026, 2, 25, 10, 0), datetime(2026, 2, 25, 11, 0), "alice")
        self.assertEqual(reservation.created_at, now)
        self.assertIn("R-200", coordinator.rooms)


if __name__ == "__main__":
    unittest.main()
