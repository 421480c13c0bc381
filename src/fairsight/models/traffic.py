"""
Traffic data models.

Backend-owned records (adapters, live stats, lifetime counters, persisted
day sessions) are pydantic models: they are validated once at the backend
boundary and are frozen afterwards. Field aliases accept the names the
capture service has used over time (``lifetime_incoming_bytes``,
``network_hosts``...).

ReconciledDaySummary is produced by this package, so it is a plain frozen
dataclass like the rest of the core output types.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, NonNegativeInt


class _BackendRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class AdapterDescriptor(_BackendRecord):
    """A network interface as reported by the backend. ``name`` is the join key."""
    name: str = Field(min_length=1)
    description: str = ""
    is_up: bool = False
    is_loopback: bool = False
    addresses: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("addresses", "ips"),
    )


class HostInfo(_BackendRecord):
    ip: str
    hostname: Optional[str] = None
    incoming_bytes: NonNegativeInt = 0
    outgoing_bytes: NonNegativeInt = 0


class ServiceInfo(_BackendRecord):
    protocol: str
    port: int = Field(ge=0, le=65535)
    service_name: Optional[str] = None
    bytes: NonNegativeInt = 0


class LiveTrafficSnapshot(_BackendRecord):
    """Most recent poll result for one adapter. Last write wins."""
    incoming_bytes: NonNegativeInt = Field(
        default=0, validation_alias=AliasChoices("incoming_bytes", "total_incoming_bytes"))
    outgoing_bytes: NonNegativeInt = Field(
        default=0, validation_alias=AliasChoices("outgoing_bytes", "total_outgoing_bytes"))
    hosts: List[HostInfo] = Field(
        default_factory=list, validation_alias=AliasChoices("hosts", "network_hosts"))
    services: List[ServiceInfo] = Field(default_factory=list)
    duration_seconds: NonNegativeInt = Field(
        default=0, validation_alias=AliasChoices("duration_seconds", "monitoring_duration"))

    @property
    def total_bytes(self) -> int:
        return self.incoming_bytes + self.outgoing_bytes


class LifetimeCounters(_BackendRecord):
    """Monotonic per-adapter byte totals, independent of session boundaries."""
    cumulative_incoming_bytes: NonNegativeInt = Field(
        default=0,
        validation_alias=AliasChoices("cumulative_incoming_bytes", "lifetime_incoming_bytes"))
    cumulative_outgoing_bytes: NonNegativeInt = Field(
        default=0,
        validation_alias=AliasChoices("cumulative_outgoing_bytes", "lifetime_outgoing_bytes"))
    first_recorded_time: Optional[int] = None
    """Unix seconds of the first byte ever counted on this adapter"""


class NetworkSession(_BackendRecord):
    """One contiguous monitoring interval of one adapter, as flushed to storage."""
    adapter_name: str
    start_time: int
    end_time: Optional[int] = None
    total_incoming_bytes: NonNegativeInt = 0
    total_outgoing_bytes: NonNegativeInt = 0
    duration: NonNegativeInt = 0


class PersistedDaySession(_BackendRecord):
    """A closed (or incrementally flushed) calendar day of traffic."""
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    total_incoming_bytes: NonNegativeInt = 0
    total_outgoing_bytes: NonNegativeInt = 0
    sessions: List[NetworkSession] = Field(default_factory=list)
    unique_hosts: NonNegativeInt = 0
    unique_services: NonNegativeInt = 0
    total_duration: NonNegativeInt = 0


class TrafficTotals(_BackendRecord):
    incoming_bytes: NonNegativeInt = 0
    outgoing_bytes: NonNegativeInt = 0

    @property
    def total_bytes(self) -> int:
        return self.incoming_bytes + self.outgoing_bytes


class CurrentTotals(_BackendRecord):
    """Live totals next to what today's sessions have flushed so far."""
    combined_live_totals: TrafficTotals = Field(default_factory=TrafficTotals)
    combined_session_totals: TrafficTotals = Field(default_factory=TrafficTotals)
    today_session_count: NonNegativeInt = 0


@dataclass(frozen=True)
class ReconciledDaySummary:
    """
    Authoritative view of one day of traffic.

    For past days this mirrors the persisted record. For today the byte
    totals come from the lifetime counters and the persisted totals are kept
    under ``session_*`` for comparison.
    """
    date: str
    total_incoming_bytes: int
    total_outgoing_bytes: int
    sessions: Tuple[NetworkSession, ...] = field(default_factory=tuple)
    unique_hosts: int = 0
    unique_services: int = 0
    total_duration: int = 0
    has_real_time_data: bool = False
    session_incoming_bytes: Optional[int] = None
    session_outgoing_bytes: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.sessions, tuple):
            object.__setattr__(self, "sessions", tuple(self.sessions))

    @classmethod
    def from_persisted(cls, day: PersistedDaySession) -> "ReconciledDaySummary":
        return cls(
            date=day.date,
            total_incoming_bytes=day.total_incoming_bytes,
            total_outgoing_bytes=day.total_outgoing_bytes,
            sessions=tuple(day.sessions),
            unique_hosts=day.unique_hosts,
            unique_services=day.unique_services,
            total_duration=day.total_duration,
        )

    @property
    def total_bytes(self) -> int:
        return self.total_incoming_bytes + self.total_outgoing_bytes

    def to_dict(self) -> dict:
        data = {
            "date": self.date,
            "total_incoming_bytes": self.total_incoming_bytes,
            "total_outgoing_bytes": self.total_outgoing_bytes,
            "sessions": [s.model_dump() for s in self.sessions],
            "unique_hosts": self.unique_hosts,
            "unique_services": self.unique_services,
            "total_duration": self.total_duration,
            "hasRealTimeData": self.has_real_time_data,
        }
        if self.session_incoming_bytes is not None:
            data["session_incoming_bytes"] = self.session_incoming_bytes
            data["session_outgoing_bytes"] = self.session_outgoing_bytes
        return data
