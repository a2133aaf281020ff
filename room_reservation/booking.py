from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import ValidationError


def normalize_instant(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime truncated to whole minutes.

    Naive datetimes are interpreted as UTC.
    """
    if not isinstance(value, datetime):
        raise ValidationError(f"Expected a datetime, got {type(value).__name__}.")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(second=0, microsecond=0)


@dataclass(frozen=True)
class TimeInterval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("Reservation start time must be earlier than end time.")

    @classmethod
    def normalized(cls, start: datetime | None, end: datetime | None) -> "TimeInterval":
        if start is None:
            raise ValidationError("Reservation must have a start time.")
        if end is None:
            raise ValidationError("Reservation must have an end time.")
        normalized_start = normalize_instant(start)
        normalized_end = normalize_instant(end)
        if normalized_start == normalized_end:
            raise ValidationError("Reservation start and end must not be equal.")
        return cls(normalized_start, normalized_end)

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> dict[str, str]:
        return {
            "start": self.start.isoformat(timespec="minutes"),
            "end": self.end.isoformat(timespec="minutes"),
        }
