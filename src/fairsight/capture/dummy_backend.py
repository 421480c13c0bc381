"""
Dummy backend for running without a capture driver.

Keeps everything in memory and generates synthetic traffic on each stats
poll. Adapters, failures and history can be scripted, which is what the
test suite and ``fairsight --backend dummy`` use.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..utils.dates import Clock, dates_in_range, to_date_string
from .icapture_backend import ICaptureBackend

log = logging.getLogger(__name__)

DEFAULT_ADAPTERS = [
    {
        'name': 'dummy0',
        'description': 'Dummy Ethernet Interface',
        'is_up': True,
        'is_loopback': False,
        'addresses': ['192.168.1.100', '10.0.0.1'],
    },
    {
        'name': 'dummy1',
        'description': 'Dummy Wi-Fi Interface',
        'is_up': True,
        'is_loopback': False,
        'addresses': ['192.168.1.101'],
    },
]

_DUMMY_HOSTS = ['93.184.216.34', '142.250.72.14', '151.101.1.69']
_DUMMY_SERVICES = [('TCP', 443, 'HTTPS'), ('UDP', 53, 'DNS')]


class DummyBackend(ICaptureBackend):
    """In-memory backend with deterministic synthetic traffic."""

    def __init__(self,
                 adapters: Optional[List[Dict[str, Any]]] = None,
                 clock: Optional[Clock] = None,
                 traffic_step: Tuple[int, int] = (1500, 500),
                 latency: float = 0.0):
        self.clock = clock or Clock()
        self.traffic_step = traffic_step
        self.latency = latency
        self.unexpected_shutdown = False
        self.clean_shutdowns = 0

        self._adapters: List[Dict[str, Any]] = [dict(a) for a in (adapters or DEFAULT_ADAPTERS)]
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lifetime: Dict[str, Dict[str, Any]] = {}
        self._history: Dict[str, Dict[str, Any]] = {}
        self._activity_logs: Dict[str, str] = {}
        self._failures: Dict[str, Optional[set]] = {}

        # (operation, argument) for every call, in order
        self.calls: List[Tuple[str, Any]] = []

    # ── Scripting helpers ────────────────────────────────────

    def set_adapters(self, adapters: List[Dict[str, Any]]) -> None:
        """Replace the adapter list, e.g. to simulate a VPN coming and going."""
        self._adapters = [dict(a) for a in adapters]

    def fail(self, operation: str, names: Optional[Iterable[str]] = None) -> None:
        """Make ``operation`` raise, for every argument or only for ``names``."""
        self._failures[operation] = set(names) if names is not None else None

    def clear_failures(self) -> None:
        self._failures.clear()

    def add_history_day(self, day: Dict[str, Any]) -> None:
        self._history[day['date']] = day

    def set_activity_log(self, date, text: str) -> None:
        self._activity_logs[to_date_string(date)] = text

    def set_lifetime(self, name: str, incoming: int, outgoing: int,
                     first_recorded_time: Optional[int] = None) -> None:
        self._lifetime[name] = {
            'cumulative_incoming_bytes': incoming,
            'cumulative_outgoing_bytes': outgoing,
            'first_recorded_time': first_recorded_time or int(self.clock.timestamp()),
        }

    def calls_to(self, operation: str) -> List[Any]:
        return [arg for op, arg in self.calls if op == operation]

    async def _enter(self, operation: str, arg: Any = None) -> None:
        self.calls.append((operation, arg))
        if self.latency:
            await asyncio.sleep(self.latency)
        if operation in self._failures:
            names = self._failures[operation]
            if names is None or arg in names:
                raise RuntimeError(f"simulated {operation} failure")

    def _adapter(self, name: str) -> Optional[Dict[str, Any]]:
        for adapter in self._adapters:
            if adapter['name'] == name:
                return adapter
        return None

    # ── ICaptureBackend ──────────────────────────────────────

    async def list_adapters(self) -> List[Dict[str, Any]]:
        await self._enter('list_adapters')
        return [dict(a) for a in self._adapters]

    async def is_adapter_monitoring(self, name: str) -> bool:
        await self._enter('is_adapter_monitoring', name)
        return name in self._sessions

    async def start_monitoring(self, name: str) -> None:
        await self._enter('start_monitoring', name)
        if self._adapter(name) is None:
            raise ValueError(f"Adapter {name} not found")
        if name in self._sessions:
            return

        now = int(self.clock.timestamp())
        self._sessions[name] = {
            'start_time': now,
            'incoming_bytes': 0,
            'outgoing_bytes': 0,
            'polls': 0,
        }
        self._lifetime.setdefault(name, {
            'cumulative_incoming_bytes': 0,
            'cumulative_outgoing_bytes': 0,
            'first_recorded_time': now,
        })
        log.debug("Dummy capture started on %s", name)

    async def stop_monitoring(self, name: str) -> None:
        await self._enter('stop_monitoring', name)
        if name not in self._sessions:
            raise ValueError(f"Session for {name} not found")

        session = self._sessions.pop(name)
        end = int(self.clock.timestamp())
        today = self.clock.today_string()
        day = self._history.setdefault(today, {
            'date': today,
            'total_incoming_bytes': 0,
            'total_outgoing_bytes': 0,
            'sessions': [],
            'unique_hosts': 0,
            'unique_services': 0,
            'total_duration': 0,
        })
        duration = max(0, end - session['start_time'])
        day['sessions'].append({
            'adapter_name': name,
            'start_time': session['start_time'],
            'end_time': end,
            'total_incoming_bytes': session['incoming_bytes'],
            'total_outgoing_bytes': session['outgoing_bytes'],
            'duration': duration,
        })
        day['total_incoming_bytes'] += session['incoming_bytes']
        day['total_outgoing_bytes'] += session['outgoing_bytes']
        day['total_duration'] += duration
        if session['polls']:
            day['unique_hosts'] = max(day['unique_hosts'], len(_DUMMY_HOSTS))
            day['unique_services'] = max(day['unique_services'], len(_DUMMY_SERVICES))
        log.debug("Dummy capture stopped on %s", name)

    async def get_live_stats(self, name: str) -> Dict[str, Any]:
        await self._enter('get_live_stats', name)
        if name not in self._sessions:
            raise ValueError(f"Session for {name} not found")

        session = self._sessions[name]
        incoming, outgoing = self.traffic_step
        session['incoming_bytes'] += incoming
        session['outgoing_bytes'] += outgoing
        session['polls'] += 1
        lifetime = self._lifetime[name]
        lifetime['cumulative_incoming_bytes'] += incoming
        lifetime['cumulative_outgoing_bytes'] += outgoing

        share = max(1, len(_DUMMY_HOSTS))
        return {
            'incoming_bytes': session['incoming_bytes'],
            'outgoing_bytes': session['outgoing_bytes'],
            'hosts': [
                {
                    'ip': ip,
                    'incoming_bytes': session['incoming_bytes'] // share,
                    'outgoing_bytes': session['outgoing_bytes'] // share,
                }
                for ip in _DUMMY_HOSTS
            ],
            'services': [
                {'protocol': proto, 'port': port, 'service_name': svc,
                 'bytes': (session['incoming_bytes'] + session['outgoing_bytes']) // len(_DUMMY_SERVICES)}
                for proto, port, svc in _DUMMY_SERVICES
            ],
            'duration_seconds': max(0, int(self.clock.timestamp()) - session['start_time']),
        }

    async def get_lifetime_counters(self) -> Dict[str, Dict[str, Any]]:
        await self._enter('get_lifetime_counters')
        return {name: dict(counters) for name, counters in self._lifetime.items()}

    async def get_session_history(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        await self._enter('get_session_history', (start_date, end_date))
        return [
            _copy_day(self._history[day])
            for day in dates_in_range(start_date, end_date)
            if day in self._history
        ]

    async def get_current_totals(self) -> Dict[str, Any]:
        await self._enter('get_current_totals')
        today = self._history.get(self.clock.today_string())
        return {
            'combined_live_totals': {
                'incoming_bytes': sum(c['cumulative_incoming_bytes'] for c in self._lifetime.values()),
                'outgoing_bytes': sum(c['cumulative_outgoing_bytes'] for c in self._lifetime.values()),
            },
            'combined_session_totals': {
                'incoming_bytes': today['total_incoming_bytes'] if today else 0,
                'outgoing_bytes': today['total_outgoing_bytes'] if today else 0,
            },
            'today_session_count': len(today['sessions']) if today else 0,
        }

    async def check_unexpected_shutdown(self) -> bool:
        await self._enter('check_unexpected_shutdown')
        return self.unexpected_shutdown

    async def mark_clean_shutdown(self) -> None:
        await self._enter('mark_clean_shutdown')
        self.clean_shutdowns += 1
        self.unexpected_shutdown = False

    async def get_daily_summary_log(self, date: str) -> str:
        await self._enter('get_daily_summary_log', date)
        return self._activity_logs.get(date, f"No log file found for {date}")

    async def aggregate_activity_logs(self, dates: List[str]) -> List[str]:
        await self._enter('aggregate_activity_logs', tuple(dates))
        return [self._activity_logs.get(d, f"No log file found for {d}") for d in dates]

    async def close(self) -> None:
        for name in list(self._sessions):
            await self.stop_monitoring(name)


def _copy_day(day: Dict[str, Any]) -> Dict[str, Any]:
    copied = dict(day)
    copied['sessions'] = [dict(s) for s in day.get('sessions', [])]
    return copied
