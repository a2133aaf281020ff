from .backends import InMemoryReservationBackend, ReservationBackend
from .booking import TimeInterval, normalize_instant
from .bootstrap import build_coordinator, create_backend
from .coordinator import ReservationCoordinator
from .errors import (
	ConflictError,
	ConsistencyViolation,
	ForbiddenError,
	IdempotencyKeyReuseError,
	NotFoundError,
	ReservationError,
	ReservationNotFoundError,
	ReservationStorageError,
	RoomBusyError,
	RoomNotFoundError,
	ValidationError,
)
from .idempotency import IdempotencyCache
from .interval_store import IntervalStore
from .models import Reservation, ReservationStatus, Room
from .rooms import RoomRegistry
from .settings import Settings, get_settings, load_settings
from .sqlite_store import SqliteReservationBackend
from .yaml_store import YamlReservationBackend

__all__ = [
	"TimeInterval",
	"normalize_instant",
	"Reservation",
	"ReservationStatus",
	"Room",
	"RoomRegistry",
	"IntervalStore",
	"IdempotencyCache",
	"ReservationBackend",
	"InMemoryReservationBackend",
	"YamlReservationBackend",
	"SqliteReservationBackend",
	"ReservationCoordinator",
	"build_coordinator",
	"create_backend",
	"Settings",
	"get_settings",
	"load_settings",
	"ReservationError",
	"ValidationError",
	"NotFoundError",
	"RoomNotFoundError",
	"ReservationNotFoundError",
	"ForbiddenError",
	"ConflictError",
	"IdempotencyKeyReuseError",
	"RoomBusyError",
	"ConsistencyViolation",
	"ReservationStorageError",
]
