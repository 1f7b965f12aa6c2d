"""Time sources for session tracking.

Session timing and streak anchoring never read the system clock directly;
they go through a ``Clock`` so tests and event replays can drive time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds from ``start`` to ``end``."""
    return (end - start) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class ManualClock:
    """Clock that only moves when told to."""

    current: datetime = field(
        default_factory=lambda: datetime(2024, 1, 1, tzinfo=timezone.utc)
    )

    def __post_init__(self):
        self.current = ensure_utc(self.current)

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        value = ensure_utc(value)
        if value < self.current:
            raise ValueError(
                f"Clock cannot move backwards ({value.isoformat()} < "
                f"{self.current.isoformat()})"
            )
        self.current = value

    def advance(self, milliseconds: int = 0, **kwargs) -> datetime:
        self.current = self.current + timedelta(milliseconds=milliseconds, **kwargs)
        return self.current
