"""
JSON state file for the live backend.

Holds what has to survive a restart:
  - per-adapter lifetime counters and whether the adapter was being
    monitored when the state was last written
  - the time of the last clean shutdown
  - closed traffic sessions, grouped per day

If the process dies while adapters are marked as monitoring and no clean
shutdown was recorded since, the next start reports an unexpected shutdown.
"""

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)


def _empty_state() -> Dict[str, Any]:
    return {"adapters": {}, "last_shutdown_time": None, "days": {}, "updated_at": None}


class StateStore:
    """Load/modify/save wrapper around one JSON file. Thread safe."""

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._state = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return _empty_state()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("State file %s unreadable (%s), starting fresh", self.path, e)
            return _empty_state()
        if not isinstance(data, dict):
            log.warning("State file %s has unexpected content, starting fresh", self.path)
            return _empty_state()
        state = _empty_state()
        state.update(data)
        return state

    def save(self) -> None:
        with self._lock:
            self._state["updated_at"] = int(time.time())
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(self._state, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)

    # ── Adapters ──────────────────────────────────────────────

    def adapter(self, name: str) -> Dict[str, Any]:
        with self._lock:
            return self._state["adapters"].setdefault(name, {
                "was_monitoring_on_exit": False,
                "lifetime_incoming_bytes": 0,
                "lifetime_outgoing_bytes": 0,
                "first_recorded_time": None,
                "last_session_end_time": None,
            })

    def adapters(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: dict(a) for name, a in self._state["adapters"].items()}

    def set_monitoring(self, name: str, monitoring: bool) -> None:
        with self._lock:
            self.adapter(name)["was_monitoring_on_exit"] = monitoring

    def add_traffic(self, name: str, incoming: int, outgoing: int, now: Optional[int] = None) -> None:
        with self._lock:
            adapter = self.adapter(name)
            adapter["lifetime_incoming_bytes"] += incoming
            adapter["lifetime_outgoing_bytes"] += outgoing
            if adapter["first_recorded_time"] is None and (incoming or outgoing):
                adapter["first_recorded_time"] = now or int(time.time())

    # ── Sessions ─────────────────────────────────────────────

    def record_session(self, date: str, session: Dict[str, Any],
                       unique_hosts: int, unique_services: int) -> None:
        with self._lock:
            day = self._state["days"].setdefault(date, {
                "date": date,
                "total_incoming_bytes": 0,
                "total_outgoing_bytes": 0,
                "sessions": [],
                "unique_hosts": 0,
                "unique_services": 0,
                "total_duration": 0,
            })
            day["sessions"].append(session)
            day["total_incoming_bytes"] += session["total_incoming_bytes"]
            day["total_outgoing_bytes"] += session["total_outgoing_bytes"]
            day["total_duration"] += session["duration"]
            day["unique_hosts"] = max(day["unique_hosts"], unique_hosts)
            day["unique_services"] = max(day["unique_services"], unique_services)
            self.adapter(session["adapter_name"])["last_session_end_time"] = session["end_time"]

    def day(self, date: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            day = self._state["days"].get(date)
            if day is None:
                return None
            copied = dict(day)
            copied["sessions"] = [dict(s) for s in day["sessions"]]
            return copied

    # ── Shutdown bookkeeping ─────────────────────────────────

    def mark_clean_shutdown(self, now: Optional[int] = None) -> None:
        now = now or int(time.time())
        with self._lock:
            self._state["last_shutdown_time"] = now
            for adapter in self._state["adapters"].values():
                adapter["was_monitoring_on_exit"] = False
                adapter["last_session_end_time"] = now
        self.save()

    def was_unexpected_shutdown(self, clean_window: int, now: Optional[int] = None) -> bool:
        """
        True when the previous run left adapters marked as monitoring.

        A fresh install (no adapters recorded) or a clean shutdown within
        ``clean_window`` seconds is never unexpected.
        """
        now = now or int(time.time())
        with self._lock:
            adapters = self._state["adapters"]
            if not adapters:
                return False
            last_shutdown = self._state.get("last_shutdown_time")
            if last_shutdown is not None and now - last_shutdown < clean_window:
                return False
            return any(a.get("was_monitoring_on_exit") for a in adapters.values())
