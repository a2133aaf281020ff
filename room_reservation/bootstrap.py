from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from .backends import InMemoryReservationBackend, ReservationBackend
from .coordinator import ReservationCoordinator
from .idempotency import IdempotencyCache
from .logger import configure_logging, get_logger
from .models import Room
from .rooms import RoomRegistry
from .settings import Settings, get_settings
from .sqlite_store import SqliteReservationBackend
from .yaml_store import YamlReservationBackend

logger = get_logger(__name__)


def create_backend(settings: Settings, now_provider: Callable[[], datetime] | None = None) -> ReservationBackend:
    if settings.backend == "yaml":
        return YamlReservationBackend(Path(settings.data_dir), now_provider=now_provider)
    if settings.backend == "sqlite":
        return SqliteReservationBackend(Path(settings.database_path))
    return InMemoryReservationBackend()


def build_coordinator(
    settings: Settings | None = None,
    rooms: Iterable[Room | str] = (),
    now_provider: Callable[[], datetime] | None = None,
) -> ReservationCoordinator:
    """Wire a coordinator from settings and replay any persisted reservations."""
    resolved = settings or get_settings()
    configure_logging(resolved.log_level)

    registry = RoomRegistry()
    for room in rooms:
        registry.register(room)

    backend = create_backend(resolved, now_provider=now_provider)
    logger.info("Building reservation coordinator. backend=%s, rooms=%s", resolved.backend, len(registry))
    return ReservationCoordinator(
        rooms=registry,
        backend=backend,
        lock_timeout_seconds=resolved.lock_timeout_seconds,
        idempotency_cache=IdempotencyCache(
            ttl_seconds=resolved.idempotency_ttl_seconds,
            max_entries=resolved.idempotency_max_entries,
        ),
        auto_create_rooms=resolved.auto_create_rooms,
        now_provider=now_provider,
    )
