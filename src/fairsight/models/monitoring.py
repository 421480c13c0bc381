"""
Monitoring lifecycle state and coordinator messages.

Messages are immutable; the lifecycle coordinator is the only consumer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from .traffic import AdapterDescriptor


class MonitoringState(Enum):
    NOT_MONITORING = "not_monitoring"
    STARTING = "starting"
    MONITORING = "monitoring"


@dataclass(frozen=True)
class DiscoveryTick:
    """Refresh the adapter list from the backend and reconcile sessions."""
    pass


@dataclass(frozen=True)
class PollTick:
    """Fetch live stats for every monitored adapter."""
    pass


@dataclass(frozen=True)
class AdapterAppeared:
    adapter: AdapterDescriptor


@dataclass(frozen=True)
class AdapterRemoved:
    name: str


@dataclass(frozen=True)
class AdaptersDiscovered:
    """A full adapter list, diffed against the known set."""
    adapters: Tuple[AdapterDescriptor, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StartRequested:
    name: str


@dataclass(frozen=True)
class StopRequested:
    name: str


@dataclass(frozen=True)
class LifetimeRefresh:
    """Reload the per-adapter lifetime counters from the backend."""
    pass
