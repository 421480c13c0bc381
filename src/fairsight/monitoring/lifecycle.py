"""
Adapter lifecycle manager.

Keeps exactly one backend monitoring session per adapter that is up, and
tears sessions down when adapters disappear (VPN disconnect, unplugged
dongle...). Built as a small actor:

  - one coordinator task drains an inbox of messages, so every state change
    happens in one place, one message at a time
  - a discovery timer posts DiscoveryTick and LifetimeRefresh every
    ``discovery_interval``
  - a poll timer posts PollTick every ``poll_interval``, and only exists while
    at least one adapter is MONITORING; it is re-derived after every message

Everything the backend is asked to do here is safe to repeat. Failures are
logged and stay with the adapter they happened on.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Set, Tuple

from ..capture.client import BackendClient
from ..config import DISCOVERY_INTERVAL_SEC, POLL_INTERVAL_SEC
from ..exceptions import AdapterStateError, BackendError, FairsightError, PayloadShapeError
from ..models.monitoring import (
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
from ..models.traffic import AdapterDescriptor, LifetimeCounters, LiveTrafficSnapshot
from .shutdown import ShutdownDetector

log = logging.getLogger(__name__)

_BOUNDARY_ERRORS = (BackendError, PayloadShapeError)


@dataclass(frozen=True)
class MonitoringView:
    """Read-only snapshot of the manager's state for display."""
    adapters: Tuple[AdapterDescriptor, ...] = ()
    states: Mapping[str, MonitoringState] = field(default_factory=dict)
    snapshots: Mapping[str, LiveTrafficSnapshot] = field(default_factory=dict)
    lifetime: Mapping[str, LifetimeCounters] = field(default_factory=dict)
    unexpected_shutdown: bool = False
    discovery_error: Optional[str] = None


class AdapterLifecycleManager:

    def __init__(self, client: BackendClient,
                 discovery_interval: float = DISCOVERY_INTERVAL_SEC,
                 poll_interval: float = POLL_INTERVAL_SEC,
                 shutdown_detector: Optional[ShutdownDetector] = None):
        self.client = client
        self.discovery_interval = discovery_interval
        self.poll_interval = poll_interval
        self.shutdown_detector = shutdown_detector or ShutdownDetector(client)

        self._adapters: Dict[str, AdapterDescriptor] = {}
        self._states: Dict[str, MonitoringState] = {}
        self._snapshots: Dict[str, LiveTrafficSnapshot] = {}
        self._lifetime: Dict[str, LifetimeCounters] = {}
        self._user_stopped: Set[str] = set()
        self._poll_failures: Dict[str, int] = {}
        self.discovery_error: Optional[FairsightError] = None

        self._inbox: Optional[asyncio.Queue] = None
        self._coordinator: Optional[asyncio.Task] = None
        self._discovery_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._pending: Set[type] = set()
        self._running = False
        self._closed = False

    # ── Read-only views ──────────────────────────────────────

    @property
    def monitoring_states(self) -> Mapping[str, MonitoringState]:
        return MappingProxyType(dict(self._states))

    @property
    def snapshots(self) -> Mapping[str, LiveTrafficSnapshot]:
        return MappingProxyType(dict(self._snapshots))

    @property
    def adapters(self) -> Mapping[str, AdapterDescriptor]:
        return MappingProxyType(dict(self._adapters))

    @property
    def any_monitoring(self) -> bool:
        return any(s is MonitoringState.MONITORING for s in self._states.values())

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def running(self) -> bool:
        return self._running and not self._closed

    def view(self) -> MonitoringView:
        return MonitoringView(
            adapters=tuple(self._adapters.values()),
            states=self.monitoring_states,
            snapshots=self.snapshots,
            lifetime=MappingProxyType(dict(self._lifetime)),
            unexpected_shutdown=self.shutdown_detector.status,
            discovery_error=str(self.discovery_error) if self.discovery_error else None,
        )

    # ── Lifecycle ────────────────────────────────────────────

    async def start(self) -> None:
        """Check the previous shutdown, then start the coordinator and discovery timer."""
        if self._closed:
            raise AdapterStateError("*", "manager is closed")
        if self._running:
            return

        await self.shutdown_detector.check_previous_shutdown()
        if self._closed:
            return

        self._inbox = asyncio.Queue()
        self._running = True
        self.post(LifetimeRefresh())
        self._coordinator = asyncio.create_task(self._run_coordinator())
        self._discovery_task = asyncio.create_task(self._discovery_timer())
        log.info("Adapter lifecycle started (discovery=%.1fs, poll=%.1fs)",
                 self.discovery_interval, self.poll_interval)

    async def close(self) -> None:
        """Stop both timers and the coordinator. Results still in flight are dropped."""
        if self._closed:
            return
        self._closed = True
        self._running = False

        tasks = [t for t in (self._discovery_task, self._poll_task, self._coordinator) if t is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        # Nobody will answer requests still queued
        while self._inbox is not None and not self._inbox.empty():
            _, future = self._inbox.get_nowait()
            if future is not None and not future.done():
                future.cancel()

        self._discovery_task = None
        self._poll_task = None
        self._coordinator = None
        log.info("Adapter lifecycle stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ── Message passing ──────────────────────────────────────

    def post(self, message: Any) -> None:
        """Queue a message for the coordinator. Ticks already queued are not duplicated."""
        if not self.running or self._inbox is None:
            return
        kind = type(message)
        if kind in (DiscoveryTick, PollTick, LifetimeRefresh):
            if kind in self._pending:
                return
            self._pending.add(kind)
        self._inbox.put_nowait((message, None))

    async def submit(self, message: Any) -> Any:
        """Run a message through the coordinator and wait for its outcome."""
        if not self.running or self._inbox is None:
            return await self.handle(message)
        future = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait((message, future))
        return await future

    async def start_monitoring(self, name: str) -> None:
        await self.submit(StartRequested(name))

    async def stop_monitoring(self, name: str) -> None:
        await self.submit(StopRequested(name))

    async def refresh(self) -> None:
        """Run a discovery pass now instead of waiting for the timer."""
        await self.submit(DiscoveryTick())

    async def refresh_lifetime_counters(self) -> Mapping[str, LifetimeCounters]:
        await self.submit(LifetimeRefresh())
        return MappingProxyType(dict(self._lifetime))

    async def _run_coordinator(self) -> None:
        while True:
            message, future = await self._inbox.get()
            self._pending.discard(type(message))
            try:
                result = await self.handle(message)
            except asyncio.CancelledError:
                if future is not None and not future.done():
                    future.cancel()
                raise
            except Exception as e:
                if future is not None:
                    if not future.done():
                        future.set_exception(e)
                else:
                    log.error("Unhandled error processing %s: %s", type(message).__name__, e,
                              exc_info=True)
            else:
                if future is not None and not future.done():
                    future.set_result(result)

    async def _discovery_timer(self) -> None:
        while True:
            self.post(DiscoveryTick())
            self.post(LifetimeRefresh())
            await asyncio.sleep(self.discovery_interval)

    async def _poll_timer(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self.post(PollTick())

    def _sync_poll_task(self) -> None:
        """Poll timer exists exactly when the manager runs and something is monitored."""
        wanted = self.running and self.any_monitoring
        if wanted and not self.polling:
            log.info("Starting stats polling")
            self._poll_task = asyncio.create_task(self._poll_timer())
        elif not wanted and self._poll_task is not None:
            log.info("Stopping stats polling")
            self._poll_task.cancel()
            self._poll_task = None

    # ── Handlers ─────────────────────────────────────────────

    async def handle(self, message: Any) -> Any:
        """Apply one message to the state. Called by the coordinator, or directly in tests."""
        if self._closed:
            return None
        try:
            if isinstance(message, DiscoveryTick):
                return await self._on_discovery_tick()
            if isinstance(message, AdaptersDiscovered):
                return await self._on_adapters_discovered(message.adapters)
            if isinstance(message, AdapterAppeared):
                return await self._on_adapter_appeared(message.adapter)
            if isinstance(message, AdapterRemoved):
                return await self._on_adapter_removed(message.name)
            if isinstance(message, PollTick):
                return await self._on_poll_tick()
            if isinstance(message, StartRequested):
                return await self._on_start_requested(message.name)
            if isinstance(message, StopRequested):
                return await self._on_stop_requested(message.name)
            if isinstance(message, LifetimeRefresh):
                return await self._on_lifetime_refresh()
            raise TypeError(f"Unknown message: {message!r}")
        finally:
            if not self._closed:
                self._sync_poll_task()

    async def _on_discovery_tick(self) -> None:
        try:
            adapters = await self.client.list_adapters()
        except _BOUNDARY_ERRORS as e:
            log.error("Failed to fetch network adapters: %s", e)
            if not self._closed:
                self.discovery_error = e
            return
        if self._closed:
            return
        self.discovery_error = None
        await self._on_adapters_discovered(tuple(adapters))

    async def _on_adapters_discovered(self, adapters: Tuple[AdapterDescriptor, ...]) -> None:
        current = {a.name for a in adapters}
        known = set(self._states) | set(self._adapters)

        # Stops go out before any start for this tick
        for name in sorted(known - current):
            await self._on_adapter_removed(name)
            if self._closed:
                return

        for adapter in adapters:
            await self._on_adapter_appeared(adapter)
            if self._closed:
                return

    async def _on_adapter_removed(self, name: str) -> None:
        try:
            await self.client.stop_monitoring(name)
            log.info("Stopped monitoring for removed adapter: %s", name)
        except _BOUNDARY_ERRORS as e:
            log.warning("Failed to stop monitoring for removed adapter %s: %s", name, e)
        if self._closed:
            return
        self._states.pop(name, None)
        self._adapters.pop(name, None)
        self._snapshots.pop(name, None)
        self._poll_failures.pop(name, None)
        self._user_stopped.discard(name)

    async def _on_adapter_appeared(self, adapter: AdapterDescriptor) -> None:
        name = adapter.name
        self._adapters[name] = adapter

        try:
            backend_monitoring = await self.client.is_adapter_monitoring(name)
        except _BOUNDARY_ERRORS as e:
            log.warning("Failed to check monitoring state for %s: %s", name, e)
            if not self._closed:
                self._states[name] = MonitoringState.NOT_MONITORING
            return
        if self._closed or name not in self._adapters:
            return

        if not adapter.is_up:
            if self._states.get(name) is not MonitoringState.NOT_MONITORING:
                log.info("Skipping inactive adapter: %s", name)
            if backend_monitoring:
                try:
                    await self.client.stop_monitoring(name)
                    log.info("Stopped monitoring for inactive adapter: %s", name)
                except _BOUNDARY_ERRORS as e:
                    log.warning("Failed to stop monitoring for inactive adapter %s: %s", name, e)
                if self._closed or name not in self._adapters:
                    return
            self._states[name] = MonitoringState.NOT_MONITORING
            self._snapshots.pop(name, None)
            return

        if backend_monitoring:
            if self._states.get(name) is not MonitoringState.MONITORING:
                log.info("Already monitoring adapter: %s", name)
            self._states[name] = MonitoringState.MONITORING
            return

        if name in self._user_stopped:
            self._states[name] = MonitoringState.NOT_MONITORING
            return

        await self._start(adapter)

    async def _start(self, adapter: AdapterDescriptor) -> Optional[FairsightError]:
        """NOT_MONITORING -> STARTING -> MONITORING. Returns the error instead of raising."""
        name = adapter.name
        self._states[name] = MonitoringState.STARTING
        try:
            await self.client.start_monitoring(name)
        except _BOUNDARY_ERRORS as e:
            log.warning("Failed to start monitoring for %s: %s", name, e)
            if not self._closed and name in self._states:
                self._states[name] = MonitoringState.NOT_MONITORING
            return e
        if self._closed or name not in self._states:
            return None
        self._states[name] = MonitoringState.MONITORING
        log.info("Started monitoring for adapter: %s (%s)", name,
                 adapter.description or "No description")
        return None

    async def _on_poll_tick(self) -> None:
        monitored = [n for n, s in self._states.items() if s is MonitoringState.MONITORING]
        for name in monitored:
            try:
                snapshot = await self.client.get_live_stats(name)
            except _BOUNDARY_ERRORS as e:
                failures = self._poll_failures.get(name, 0) + 1
                self._poll_failures[name] = failures
                if failures == 1:
                    log.warning("Failed to get stats for %s: %s", name, e)
                else:
                    log.debug("Failed to get stats for %s (%d in a row): %s", name, failures, e)
                continue
            if self._closed:
                return
            # Adapter may have been stopped or removed while we waited
            if self._states.get(name) is not MonitoringState.MONITORING:
                continue
            self._poll_failures.pop(name, None)
            self._snapshots[name] = snapshot

    async def _on_lifetime_refresh(self) -> None:
        try:
            counters = await self.client.get_lifetime_counters()
        except _BOUNDARY_ERRORS as e:
            log.warning("Failed to load lifetime counters: %s", e)
            return
        if not self._closed:
            self._lifetime = dict(counters)

    async def _on_start_requested(self, name: str) -> None:
        adapter = self._adapters.get(name)
        if adapter is not None and not adapter.is_up:
            raise AdapterStateError(name, "adapter is down")
        if self._states.get(name) is MonitoringState.MONITORING:
            return
        self._user_stopped.discard(name)
        error = await self._start(adapter or AdapterDescriptor(name=name, is_up=True))
        if error is not None:
            raise error
        if adapter is None and not self._closed:
            self._adapters[name] = AdapterDescriptor(name=name, is_up=True)

    async def _on_stop_requested(self, name: str) -> None:
        state = self._states.get(name, MonitoringState.NOT_MONITORING)
        if state is MonitoringState.NOT_MONITORING:
            return
        self._user_stopped.add(name)
        try:
            await self.client.stop_monitoring(name)
        except _BOUNDARY_ERRORS as e:
            log.error("Failed to stop monitoring %s: %s", name, e)
            raise
        if self._closed:
            return
        if name in self._states:
            self._states[name] = MonitoringState.NOT_MONITORING
        self._snapshots.pop(name, None)
