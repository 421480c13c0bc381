"""
Validated access to a capture backend.

Every payload is checked here, once, and turned into the typed models from
``fairsight.models``. Two kinds of failure come out of this module:

  BackendError       -> the call itself failed (backend down, adapter unknown...)
  PayloadShapeError  -> the call answered, but with data of the wrong shape

Callers decide per unit of work (one adapter, one day) what fallback to use.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..exceptions import AdapterNotFoundError, BackendError, FairsightError, PayloadShapeError
from ..models.traffic import (
    AdapterDescriptor,
    CurrentTotals,
    LifetimeCounters,
    LiveTrafficSnapshot,
    PersistedDaySession,
)
from .icapture_backend import ICaptureBackend

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_LIFETIME_MAP = TypeAdapter(Dict[str, LifetimeCounters])


class BackendClient:
    """Wraps an ICaptureBackend; all methods are coroutines."""

    def __init__(self, backend: ICaptureBackend):
        self.backend = backend

    async def _call(self, operation: str, coro, adapter_name: Optional[str] = None):
        try:
            return await coro
        except FairsightError:
            raise
        except Exception as e:
            if adapter_name is not None and "not found" in str(e).lower():
                raise AdapterNotFoundError(operation, adapter_name) from e
            raise BackendError(operation, str(e)) from e

    @staticmethod
    def _expect_list(operation: str, payload: Any) -> list:
        if not isinstance(payload, list):
            raise PayloadShapeError(operation, f"expected a list, got {type(payload).__name__}")
        return payload

    @staticmethod
    def _validate(operation: str, model: Type[M], payload: Any) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise PayloadShapeError(operation, str(e)) from e

    # ── Adapters ──────────────────────────────────────────────

    async def list_adapters(self) -> List[AdapterDescriptor]:
        payload = await self._call("list_adapters", self.backend.list_adapters())
        items = self._expect_list("list_adapters", payload)
        adapters = [self._validate("list_adapters", AdapterDescriptor, item) for item in items]

        seen = set()
        unique = []
        for adapter in adapters:
            if adapter.name in seen:
                log.warning("Backend listed adapter %s twice, keeping the first entry", adapter.name)
                continue
            seen.add(adapter.name)
            unique.append(adapter)
        return unique

    async def is_adapter_monitoring(self, name: str) -> bool:
        result = await self._call("is_adapter_monitoring", self.backend.is_adapter_monitoring(name))
        if not isinstance(result, bool):
            raise PayloadShapeError("is_adapter_monitoring", f"expected bool, got {type(result).__name__}")
        return result

    async def start_monitoring(self, name: str) -> None:
        await self._call("start_monitoring", self.backend.start_monitoring(name), adapter_name=name)

    async def stop_monitoring(self, name: str) -> None:
        await self._call("stop_monitoring", self.backend.stop_monitoring(name))

    async def get_live_stats(self, name: str) -> LiveTrafficSnapshot:
        payload = await self._call("get_live_stats", self.backend.get_live_stats(name))
        return self._validate("get_live_stats", LiveTrafficSnapshot, payload)

    # ── Traffic history ──────────────────────────────────────

    async def get_lifetime_counters(self) -> Dict[str, LifetimeCounters]:
        payload = await self._call("get_lifetime_counters", self.backend.get_lifetime_counters())
        if not isinstance(payload, dict):
            raise PayloadShapeError(
                "get_lifetime_counters", f"expected a mapping, got {type(payload).__name__}")
        try:
            return _LIFETIME_MAP.validate_python(payload)
        except ValidationError as e:
            raise PayloadShapeError("get_lifetime_counters", str(e)) from e

    async def get_session_history(self, start_date: str, end_date: str) -> List[PersistedDaySession]:
        payload = await self._call(
            "get_session_history", self.backend.get_session_history(start_date, end_date))
        items = self._expect_list("get_session_history", payload)
        return [self._validate("get_session_history", PersistedDaySession, item) for item in items]

    async def get_current_totals(self) -> CurrentTotals:
        payload = await self._call("get_current_totals", self.backend.get_current_totals())
        return self._validate("get_current_totals", CurrentTotals, payload)

    async def check_unexpected_shutdown(self) -> bool:
        result = await self._call("check_unexpected_shutdown", self.backend.check_unexpected_shutdown())
        if not isinstance(result, bool):
            raise PayloadShapeError(
                "check_unexpected_shutdown", f"expected bool, got {type(result).__name__}")
        return result

    async def mark_clean_shutdown(self) -> None:
        await self._call("mark_clean_shutdown", self.backend.mark_clean_shutdown())

    # ── Activity logs ────────────────────────────────────────

    async def get_daily_summary_log(self, date: str) -> str:
        payload = await self._call("get_daily_summary_log", self.backend.get_daily_summary_log(date))
        if payload is None:
            return ""
        if not isinstance(payload, str):
            raise PayloadShapeError(
                "get_daily_summary_log", f"expected text, got {type(payload).__name__}")
        return payload

    async def aggregate_activity_logs(self, dates: List[str]) -> List[str]:
        payload = await self._call(
            "aggregate_activity_logs", self.backend.aggregate_activity_logs(list(dates)))
        items = self._expect_list("aggregate_activity_logs", payload)
        if len(items) != len(dates):
            raise PayloadShapeError(
                "aggregate_activity_logs",
                f"asked for {len(dates)} days, got {len(items)} logs")
        for item in items:
            if item is not None and not isinstance(item, str):
                raise PayloadShapeError(
                    "aggregate_activity_logs", f"expected text, got {type(item).__name__}")
        return items

    async def close(self) -> None:
        await self._call("close", self.backend.close())
