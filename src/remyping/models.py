"""Pydantic models for monitoring jobs and availability results.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TimeWindow(str, Enum):
    """Coarse partition of a day used to filter time labels."""

    LUNCH = "lunch"
    DINNER = "dinner"
    ANY = "any"

    @classmethod
    def from_label(cls, value: "str | TimeWindow | None") -> "TimeWindow":
        """Parse a caller-supplied window; anything unrecognised means ANY."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.ANY


class Slot(BaseModel):
    """One bookable time label with its booking link."""

    model_config = ConfigDict(frozen=True)

    time: str  # "18:30" as rendered by the time-slot control
    booking_link: str


class AvailabilityResult(BaseModel):
    """Outcome of one check. Slots keep the order the UI rendered them in."""

    model_config = ConfigDict(frozen=True)

    available: bool
    slots: tuple[Slot, ...] = ()
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> "AvailabilityResult":
        return cls(available=False, slots=(), error=error)


class NavigationOutcome(BaseModel):
    """Terminal state of the navigator: enabled time labels in UI order."""

    model_config = ConfigDict(frozen=True)

    time_labels: tuple[str, ...]
    month_advanced: bool = False
    continue_fallback_used: bool = False


class NotificationOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class MonitorJob(BaseModel):
    """A standing request to watch one date / time window / party size.

    Only the scheduler mutates last_checked, notified, check_count and
    last_error. notified never reverts to False once set.
    """

    id: str
    target_date: date
    time_window: TimeWindow = TimeWindow.ANY
    party_size: int = Field(default=2, ge=1)
    poll_interval: timedelta
    last_checked: datetime = EPOCH
    enabled: bool = True
    notified: bool = False
    check_count: int = 0
    last_error: str | None = None

    @field_validator("time_window", mode="before")
    @classmethod
    def _coerce_window(cls, v: object) -> TimeWindow:
        return TimeWindow.from_label(v)  # type: ignore[arg-type]

    def __setattr__(self, name: str, value: object) -> None:
        if name == "notified" and self.notified and not value:
            raise ValueError(f"Job {self.id} is already notified")
        super().__setattr__(name, value)

    def is_eligible(self, now: datetime) -> bool:
        """True when the job is enabled, not yet notified, and its interval elapsed."""
        return (
            self.enabled
            and not self.notified
            and (now - self.last_checked) >= self.poll_interval
        )

    def mark_notified(self) -> None:
        self.notified = True
