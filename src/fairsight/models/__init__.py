"""
Data models for fairsight.
"""

from .activity import ActivityInterval, ActivityState, DailyActivitySummary, SECONDS_PER_DAY
from .monitoring import (
    AdapterAppeared,
    AdapterRemoved,
    AdaptersDiscovered,
    DiscoveryTick,
    LifetimeRefresh,
    MonitoringState,
    PollTick,
    StartRequested,
    StopRequested,
)
from .traffic import (
    AdapterDescriptor,
    CurrentTotals,
    HostInfo,
    LifetimeCounters,
    LiveTrafficSnapshot,
    NetworkSession,
    PersistedDaySession,
    ReconciledDaySummary,
    ServiceInfo,
    TrafficTotals,
)

__all__ = [
    'ActivityInterval',
    'ActivityState',
    'DailyActivitySummary',
    'SECONDS_PER_DAY',
    'MonitoringState',
    'DiscoveryTick',
    'LifetimeRefresh',
    'PollTick',
    'AdapterAppeared',
    'AdapterRemoved',
    'AdaptersDiscovered',
    'StartRequested',
    'StopRequested',
    'AdapterDescriptor',
    'CurrentTotals',
    'HostInfo',
    'LifetimeCounters',
    'LiveTrafficSnapshot',
    'NetworkSession',
    'PersistedDaySession',
    'ReconciledDaySummary',
    'ServiceInfo',
    'TrafficTotals',
]
