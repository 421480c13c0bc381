"""
Activity data models.

These models are IMMUTABLE. A DailyActivitySummary is produced once by the
parser and only ever read afterwards.
"""

from dataclasses import dataclass
from enum import Enum

SECONDS_PER_DAY = 24 * 60 * 60


class ActivityState(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    NOT_RUN = "Not run"

    @classmethod
    def from_label(cls, label: str) -> "ActivityState":
        """Map a log label (``Active``, ``Inactive``, ``Not run``) to a state."""
        for state in cls:
            if state.value == label:
                return state
        raise ValueError(f"Unknown activity state: {label!r}")


@dataclass(frozen=True)
class ActivityInterval:
    """One parsed log line. Only lives while a single day's log is parsed."""
    state: ActivityState
    start_seconds: int
    """Seconds since local midnight"""
    end_seconds: int

    @property
    def duration(self) -> int:
        return self.end_seconds - self.start_seconds


@dataclass(frozen=True)
class DailyActivitySummary:
    """
    Per-day split of the 86400 seconds into active, inactive and not-run time.

    ``not_run_seconds`` is always derived as the remainder, so the three fields
    add up to exactly one day.
    """
    active_seconds: int = 0
    inactive_seconds: int = 0
    not_run_seconds: int = SECONDS_PER_DAY

    def __post_init__(self):
        total = self.active_seconds + self.inactive_seconds + self.not_run_seconds
        if total != SECONDS_PER_DAY:
            raise ValueError(f"Daily summary must total {SECONDS_PER_DAY}s, got {total}s")
        if min(self.active_seconds, self.inactive_seconds, self.not_run_seconds) < 0:
            raise ValueError("Daily summary durations cannot be negative")

    @classmethod
    def empty(cls) -> "DailyActivitySummary":
        """A day with no supervision at all."""
        return cls(active_seconds=0, inactive_seconds=0, not_run_seconds=SECONDS_PER_DAY)

    @property
    def tracked_seconds(self) -> int:
        return self.active_seconds + self.inactive_seconds

    def to_dict(self) -> dict:
        return {
            "active": self.active_seconds,
            "inactive": self.inactive_seconds,
            "notrun": self.not_run_seconds,
        }
