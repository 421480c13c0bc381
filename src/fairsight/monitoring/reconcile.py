"""
Traffic reconciliation.

Persisted day sessions are exact once a day is over, but today's record is
flushed incrementally and lags the live counters. ``reconcile`` therefore
passes past days through unchanged and rebuilds today's byte totals from
the lifetime counters, keeping the persisted numbers under ``session_*``.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..capture.client import BackendClient
from ..exceptions import BackendError, PayloadShapeError
from ..models.traffic import (
    CurrentTotals,
    LifetimeCounters,
    PersistedDaySession,
    ReconciledDaySummary,
)
from ..utils.dates import Clock, DateLike, to_date, to_date_string

log = logging.getLogger(__name__)

# Live and session totals further apart than this are worth pointing out
DISCREPANCY_THRESHOLD_BYTES = 1024

# Past this many sessions today, the backend should consolidate them
CONSOLIDATION_SESSION_COUNT = 100

LiveCounters = Union[Mapping[str, LifetimeCounters], Iterable[LifetimeCounters]]


def _merge_today(entries: List[PersistedDaySession]) -> PersistedDaySession:
    """Collapse duplicate records for one date into one."""
    if len(entries) == 1:
        return entries[0]
    log.warning("Backend returned %d records for %s, merging them", len(entries), entries[0].date)
    sessions = [s for e in entries for s in e.sessions]
    return PersistedDaySession(
        date=entries[0].date,
        total_incoming_bytes=sum(e.total_incoming_bytes for e in entries),
        total_outgoing_bytes=sum(e.total_outgoing_bytes for e in entries),
        sessions=sessions,
        unique_hosts=max(e.unique_hosts for e in entries),
        unique_services=max(e.unique_services for e in entries),
        total_duration=sum(e.total_duration for e in entries),
    )


def reconcile(session_days: Iterable[PersistedDaySession],
              live_counters: Optional[LiveCounters],
              today: DateLike) -> List[ReconciledDaySummary]:
    """
    Merge persisted day sessions with live lifetime counters.

    Args:
        session_days: persisted records, any order
        live_counters: lifetime counters per adapter (mapping or plain iterable);
            empty or None means no live data is available
        today: the day whose totals come from the live counters

    Returns:
        New ReconciledDaySummary objects ordered by date. Inputs are not touched.
    """
    today_str = to_date_string(today)
    if isinstance(live_counters, Mapping):
        counters = list(live_counters.values())
    else:
        counters = list(live_counters or [])

    historical = []
    today_entries = []
    for day in session_days:
        if day.date == today_str:
            today_entries.append(day)
        else:
            historical.append(ReconciledDaySummary.from_persisted(day))

    persisted_today = _merge_today(today_entries) if today_entries else None

    if counters:
        live_in = sum(c.cumulative_incoming_bytes for c in counters)
        live_out = sum(c.cumulative_outgoing_bytes for c in counters)
        if persisted_today is not None:
            today_summary = ReconciledDaySummary(
                date=today_str,
                total_incoming_bytes=live_in,
                total_outgoing_bytes=live_out,
                sessions=tuple(persisted_today.sessions),
                unique_hosts=persisted_today.unique_hosts,
                unique_services=persisted_today.unique_services,
                total_duration=persisted_today.total_duration,
                has_real_time_data=True,
                session_incoming_bytes=persisted_today.total_incoming_bytes,
                session_outgoing_bytes=persisted_today.total_outgoing_bytes,
            )
        else:
            # Nothing flushed yet today
            today_summary = ReconciledDaySummary(
                date=today_str,
                total_incoming_bytes=live_in,
                total_outgoing_bytes=live_out,
                has_real_time_data=True,
                session_incoming_bytes=0,
                session_outgoing_bytes=0,
            )
        historical.append(today_summary)
    elif persisted_today is not None:
        historical.append(ReconciledDaySummary.from_persisted(persisted_today))

    return sorted(historical, key=lambda d: d.date)


# ── Range statistics ─────────────────────────────────────────

@dataclass(frozen=True)
class RangeTotals:
    total_incoming: int = 0
    total_outgoing: int = 0
    total_duration: int = 0
    unique_hosts: int = 0
    unique_services: int = 0
    total_sessions: int = 0


def summarize_totals(days: Iterable[ReconciledDaySummary]) -> RangeTotals:
    """Sum bytes, duration and sessions; hosts and services are the busiest day's."""
    days = list(days)
    return RangeTotals(
        total_incoming=sum(d.total_incoming_bytes for d in days),
        total_outgoing=sum(d.total_outgoing_bytes for d in days),
        total_duration=sum(d.total_duration for d in days),
        unique_hosts=max((d.unique_hosts for d in days), default=0),
        unique_services=max((d.unique_services for d in days), default=0),
        total_sessions=sum(len(d.sessions) for d in days),
    )


def prepare_chart_data(days: Iterable[ReconciledDaySummary]) -> List[Dict]:
    """One chart row per day: MB in/out, session count, minutes, hosts, services."""
    mb = 1024 * 1024
    return [
        {
            "date": d.date,
            "incoming": round(d.total_incoming_bytes / mb),
            "outgoing": round(d.total_outgoing_bytes / mb),
            "sessions": len(d.sessions),
            "duration": round(d.total_duration / 60),
            "hosts": d.unique_hosts,
            "services": d.unique_services,
            "live": d.has_real_time_data,
        }
        for d in days
    ]


@dataclass(frozen=True)
class SyncStatus:
    live_bytes: int
    session_bytes: int
    has_live_data: bool
    has_session_data: bool
    discrepancy: bool
    needs_consolidation: bool


def sync_status(totals: CurrentTotals) -> SyncStatus:
    """Compare live totals with what today's sessions have flushed so far."""
    live = totals.combined_live_totals
    session = totals.combined_session_totals
    return SyncStatus(
        live_bytes=live.total_bytes,
        session_bytes=session.total_bytes,
        has_live_data=live.total_bytes > 0,
        has_session_data=session.total_bytes > 0,
        discrepancy=abs(live.incoming_bytes - session.incoming_bytes) > DISCREPANCY_THRESHOLD_BYTES,
        needs_consolidation=totals.today_session_count > CONSOLIDATION_SESSION_COUNT,
    )


# ── Backend-facing service ───────────────────────────────────

class TrafficHistory:
    """Fetches history and live counters and returns the reconciled view."""

    def __init__(self, client: BackendClient, clock: Optional[Clock] = None):
        self.client = client
        self.clock = clock or Clock()

    async def fetch(self, start: DateLike, end: DateLike) -> List[ReconciledDaySummary]:
        """
        Reconciled days for [start, end].

        Raises:
            BackendError: the history query itself failed
            PayloadShapeError: the history came back malformed
        """
        start_str, end_str = to_date_string(start), to_date_string(end)
        days = await self.client.get_session_history(start_str, end_str)

        today = self.clock.today()
        counters: Dict[str, LifetimeCounters] = {}
        if to_date(start_str) <= today <= to_date(end_str):
            try:
                counters = await self.client.get_lifetime_counters()
            except (BackendError, PayloadShapeError) as e:
                log.warning("Lifetime counters unavailable, showing stored sessions only: %s", e)

        return reconcile(days, counters, today)

    async def current_sync_status(self) -> SyncStatus:
        return sync_status(await self.client.get_current_totals())
