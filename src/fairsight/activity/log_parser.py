"""
Activity log parser.

Input is one day of the activity service's aggregated log, one interval per line:

    Active: 09:00:00 - 10:00:00
    Inactive: 10:00:00 - 10:30:00
    Not run: 10:30:00 - 23:59:59

Only Active and Inactive lines are summed. Not-run time is the remainder of
the day, so gaps in the log never make a day shorter or longer than 86400s.
"""

import logging
import re
from typing import Iterator, Optional

from ..exceptions import LogFormatError
from ..models.activity import ActivityInterval, ActivityState, DailyActivitySummary, SECONDS_PER_DAY

log = logging.getLogger(__name__)

# The backend answers "No log file found for <date>" when a day has no log.
NOT_FOUND_SENTINEL = "found"

# Allowed slack before a day that sums past 24h is reported
OVERFLOW_TOLERANCE_SEC = 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{1,2}):(\d{1,2})$")


def parse_time(value: str) -> int:
    """``HH:MM:SS`` to seconds since midnight."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"bad time {value!r}")
    hours, minutes, seconds = (int(part) for part in match.groups())
    if hours > 24 or minutes > 59 or seconds > 59 or (hours == 24 and (minutes or seconds)):
        raise ValueError(f"time out of range {value!r}")
    return hours * 3600 + minutes * 60 + seconds


def parse_line(line: str) -> ActivityInterval:
    """
    Parse one ``<State>: <HH:MM:SS> - <HH:MM:SS>`` line.

    Raises:
        LogFormatError: the line does not have that shape, or ends before it starts
    """
    parts = line.strip().split(": ")
    if len(parts) != 2:
        raise LogFormatError(line, "expected '<State>: <start> - <end>'")

    label, time_range = parts
    if " - " not in time_range:
        raise LogFormatError(line, "missing ' - ' between start and end")

    bounds = time_range.split(" - ")
    if len(bounds) != 2:
        raise LogFormatError(line, "expected exactly one time range")

    try:
        state = ActivityState.from_label(label.strip())
    except ValueError:
        raise LogFormatError(line, f"unknown state {label.strip()!r}") from None

    try:
        start = parse_time(bounds[0])
        end = parse_time(bounds[1])
    except ValueError as e:
        raise LogFormatError(line, str(e)) from None

    # Intervals crossing midnight are not supported
    if end < start:
        raise LogFormatError(line, "end time before start time")

    return ActivityInterval(state=state, start_seconds=start, end_seconds=end)


def iter_intervals(raw_log: str) -> Iterator[ActivityInterval]:
    """Yield every well-formed interval, logging and skipping the rest."""
    for line in raw_log.splitlines():
        if not line.strip():
            continue
        try:
            yield parse_line(line)
        except LogFormatError as e:
            log.warning("Skipping activity log line: %s", e)


def parse_log(raw_log: Optional[str]) -> DailyActivitySummary:
    """
    Turn one day's raw log into a DailyActivitySummary.

    A missing log (None, empty, or the backend's "not found" answer) counts
    as a full day of not-run time. Never raises on bad content.
    """
    if not raw_log or not raw_log.strip():
        log.debug("Empty activity log, treating day as not run")
        return DailyActivitySummary.empty()
    if NOT_FOUND_SENTINEL in raw_log:
        log.debug("No activity log for day: %s", raw_log.strip()[:80])
        return DailyActivitySummary.empty()

    active = 0
    inactive = 0
    for interval in iter_intervals(raw_log):
        if interval.state is ActivityState.ACTIVE:
            active += interval.duration
        elif interval.state is ActivityState.INACTIVE:
            inactive += interval.duration

    not_run = max(0, SECONDS_PER_DAY - active - inactive)

    total = active + inactive + not_run
    if total > SECONDS_PER_DAY + OVERFLOW_TOLERANCE_SEC:
        log.warning(
            "Activity log sums to %ds, more than one day (active=%ds, inactive=%ds)",
            total, active, inactive,
        )

    # Overlapping lines can push past 24h; trim inactive first, then active
    if total > SECONDS_PER_DAY:
        overflow = total - SECONDS_PER_DAY
        trimmed = min(overflow, inactive)
        inactive -= trimmed
        active -= overflow - trimmed

    return DailyActivitySummary(
        active_seconds=active,
        inactive_seconds=inactive,
        not_run_seconds=not_run,
    )
