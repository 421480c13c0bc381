"""
Backend interface.

The backend owns packet capture, traffic accounting, session storage and the
activity logs. Everything crosses this boundary as plain JSON-like data
(dicts, lists, strings); BackendClient validates it into typed models.
All methods are coroutines and may suspend the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class ICaptureBackend(ABC):

    @abstractmethod
    async def list_adapters(self) -> List[Dict[str, Any]]:
        """Adapters as dicts with name, description, is_up, is_loopback, addresses."""

    @abstractmethod
    async def is_adapter_monitoring(self, name: str) -> bool:
        pass

    @abstractmethod
    async def start_monitoring(self, name: str) -> None:
        """Start capturing on an adapter. Starting a running adapter is a no-op."""

    @abstractmethod
    async def stop_monitoring(self, name: str) -> None:
        """Stop capturing on an adapter. Raises if the adapter has no session."""

    @abstractmethod
    async def get_live_stats(self, name: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_lifetime_counters(self) -> Dict[str, Dict[str, Any]]:
        """Adapter name -> lifetime counters."""

    @abstractmethod
    async def get_session_history(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Persisted day sessions for ``YYYY-MM-DD`` dates in [start_date, end_date]."""

    @abstractmethod
    async def get_current_totals(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def check_unexpected_shutdown(self) -> bool:
        pass

    @abstractmethod
    async def get_daily_summary_log(self, date: str) -> str:
        """Raw activity log text, or a "No log file found" message."""

    @abstractmethod
    async def aggregate_activity_logs(self, dates: List[str]) -> List[str]:
        """One raw log (or not-found message) per requested date, same order."""

    async def mark_clean_shutdown(self) -> None:
        """Record that the process reached its normal teardown."""

    async def close(self) -> None:
        pass
