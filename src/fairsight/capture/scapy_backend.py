"""
Scapy-based live backend.

One AsyncSniffer per monitored adapter. Each packet is counted as incoming
or outgoing by comparing its source address with the adapter's own
addresses; the remote side is tracked as a host and the well-known port as
a service. Lifetime counters, sessions and the shutdown marker are kept in
a StateStore.

Lifetime counters are written to disk on every stats poll that saw
traffic. Running sessions are written as interim segments every
``SESSION_CHECKPOINT_SEC``, so a crash loses at most that much session
detail and never any lifetime bytes.

Sniffers run on scapy's own threads, so per-session counters are guarded
with a lock. The async methods hand blocking work to the default executor.
"""

import asyncio
import logging
import threading
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import MonitorConfig
from ..utils.dates import Clock, dates_in_range
from .icapture_backend import ICaptureBackend
from .state_store import StateStore

try:
    from scapy.all import AsyncSniffer, conf
    from scapy.layers.inet import IP, TCP, UDP
    from scapy.layers.inet6 import IPv6
    SCAPY_AVAILABLE = True
except ImportError:
    SCAPY_AVAILABLE = False

log = logging.getLogger(__name__)

WELL_KNOWN_PORTS = {
    20: "FTP-Data", 21: "FTP", 22: "SSH", 23: "Telnet", 25: "SMTP",
    53: "DNS", 67: "DHCP", 68: "DHCP", 80: "HTTP", 110: "POP3",
    123: "NTP", 143: "IMAP", 443: "HTTPS", 465: "SMTPS", 587: "SMTP",
    993: "IMAPS", 995: "POP3S", 1194: "OpenVPN", 3389: "RDP",
    5353: "mDNS", 8080: "HTTP-Alt", 51820: "WireGuard",
}

LOOPBACK_NAMES = {"lo", "lo0", "Loopback"}

# Interval between interim session records while a capture runs
SESSION_CHECKPOINT_SEC = 8


class _LiveSession:
    """Counters for one running capture."""

    def __init__(self, adapter_name: str, addresses: List[str], start_time: int):
        self.adapter_name = adapter_name
        self.addresses = set(addresses)
        self.start_time = start_time
        self.incoming_bytes = 0
        self.outgoing_bytes = 0
        self.hosts: Dict[str, Dict[str, Any]] = {}
        self.services: Dict[tuple, Dict[str, Any]] = {}
        self.unflushed_in = 0
        self.unflushed_out = 0
        # Start of the part of this session not yet written as a segment
        self.segment_start = start_time
        self.recorded_in = 0
        self.recorded_out = 0
        self.lock = threading.Lock()
        self.sniffer = None

    def count(self, src: str, dst: str, length: int, proto: Optional[str], port: Optional[int]) -> None:
        outgoing = src in self.addresses
        remote = dst if outgoing else src
        with self.lock:
            if outgoing:
                self.outgoing_bytes += length
                self.unflushed_out += length
            else:
                self.incoming_bytes += length
                self.unflushed_in += length

            host = self.hosts.setdefault(remote, {"ip": remote, "incoming_bytes": 0, "outgoing_bytes": 0})
            host["outgoing_bytes" if outgoing else "incoming_bytes"] += length

            if proto and port is not None:
                service = self.services.setdefault((proto, port), {
                    "protocol": proto,
                    "port": port,
                    "service_name": WELL_KNOWN_PORTS.get(port),
                    "bytes": 0,
                })
                service["bytes"] += length

    def take_unflushed(self):
        with self.lock:
            taken = (self.unflushed_in, self.unflushed_out)
            self.unflushed_in = 0
            self.unflushed_out = 0
            return taken

    def take_segment(self, now: int) -> Dict[str, Any]:
        """Session record for the bytes seen since the previous segment."""
        with self.lock:
            segment = {
                "adapter_name": self.adapter_name,
                "start_time": self.segment_start,
                "end_time": now,
                "total_incoming_bytes": self.incoming_bytes - self.recorded_in,
                "total_outgoing_bytes": self.outgoing_bytes - self.recorded_out,
                "duration": max(0, now - self.segment_start),
            }
            self.segment_start = now
            self.recorded_in = self.incoming_bytes
            self.recorded_out = self.outgoing_bytes
            return segment

    def snapshot(self, now: int) -> Dict[str, Any]:
        with self.lock:
            return {
                "incoming_bytes": self.incoming_bytes,
                "outgoing_bytes": self.outgoing_bytes,
                "hosts": [dict(h) for h in self.hosts.values()],
                "services": [dict(s) for s in self.services.values()],
                "duration_seconds": max(0, now - self.start_time),
            }


class ScapyBackend(ICaptureBackend):
    """Live capture backend on top of scapy."""

    def __init__(self, config: Optional[MonitorConfig] = None, clock: Optional[Clock] = None):
        if not SCAPY_AVAILABLE:
            raise RuntimeError("Scapy not available. Install with: pip install scapy")

        self.config = config or MonitorConfig()
        self.clock = clock or Clock()
        self.store = StateStore(self.config.state_file)
        self._sessions: Dict[str, _LiveSession] = {}
        self._lock = threading.RLock()

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _now(self) -> int:
        return int(self.clock.timestamp())

    # ── Adapters ──────────────────────────────────────────────

    def _list_interfaces(self) -> List[Dict[str, Any]]:
        """Describe every interface scapy knows about."""
        interfaces = []
        for iface in conf.ifaces.values():
            name = getattr(iface, "network_name", None) or iface.name
            try:
                ips = getattr(iface, "ips", {}) or {}
                addresses = [addr for family in (4, 6) for addr in ips.get(family, [])]
                is_loopback = (
                    name in LOOPBACK_NAMES
                    or "loopback" in (iface.description or "").lower()
                    or "127.0.0.1" in addresses
                )
                is_up = bool(iface.is_valid()) if hasattr(iface, "is_valid") else True
                interfaces.append({
                    "name": name,
                    "description": iface.description or name,
                    "is_up": is_up,
                    "is_loopback": is_loopback,
                    "addresses": addresses,
                })
            except Exception as e:
                log.debug("Minimal info for interface %s: %s", name, e)
                interfaces.append({
                    "name": name,
                    "description": name,
                    "is_up": False,
                    "is_loopback": False,
                    "addresses": [],
                })
        return interfaces

    async def list_adapters(self) -> List[Dict[str, Any]]:
        return await self._run(self._list_interfaces)

    async def is_adapter_monitoring(self, name: str) -> bool:
        with self._lock:
            return name in self._sessions

    # ── Capture ──────────────────────────────────────────────

    def _packet_callback(self, session: _LiveSession, packet) -> None:
        try:
            if IP in packet:
                layer = packet[IP]
            elif IPv6 in packet:
                layer = packet[IPv6]
            else:
                return

            proto, port = None, None
            if TCP in packet:
                proto = "TCP"
                port = _service_port(packet[TCP].sport, packet[TCP].dport)
            elif UDP in packet:
                proto = "UDP"
                port = _service_port(packet[UDP].sport, packet[UDP].dport)

            session.count(layer.src, layer.dst, len(packet), proto, port)
        except Exception as e:
            log.debug("Error in packet callback: %s", e)

    def _start(self, name: str) -> None:
        with self._lock:
            if name in self._sessions:
                return

            adapter = next((a for a in self._list_interfaces() if a["name"] == name), None)
            if adapter is None:
                raise ValueError(f"Adapter {name} not found")

            session = _LiveSession(name, adapter["addresses"], self._now())
            session.sniffer = AsyncSniffer(
                iface=name,
                prn=partial(self._packet_callback, session),
                store=False,
            )
            session.sniffer.start()
            self._sessions[name] = session

            self.store.set_monitoring(name, True)
            self.store.save()
            log.info("Capture started on %s", name)

    def _stop(self, name: str) -> None:
        with self._lock:
            session = self._sessions.pop(name, None)
        if session is None:
            raise ValueError(f"Session for {name} not found")

        try:
            session.sniffer.stop()
        except Exception as e:
            log.warning("Sniffer on %s did not stop cleanly: %s", name, e)

        end = self._now()
        self._flush(session)
        self._record_segment(session, end)
        self.store.set_monitoring(name, False)
        self.store.save()
        log.info("Capture stopped on %s", name)

    def _flush(self, session: _LiveSession) -> bool:
        """Move newly counted bytes into the lifetime counters. True if any moved."""
        incoming, outgoing = session.take_unflushed()
        if incoming or outgoing:
            self.store.add_traffic(session.adapter_name, incoming, outgoing, self._now())
            return True
        return False

    def _record_segment(self, session: _LiveSession, now: int) -> None:
        segment = session.take_segment(now)
        snapshot = session.snapshot(now)
        self.store.record_session(
            self.clock.today_string(),
            segment,
            unique_hosts=len(snapshot["hosts"]),
            unique_services=len(snapshot["services"]),
        )

    def _checkpoint(self, sessions: List[_LiveSession]) -> None:
        """Flush lifetime counters to disk; write interim session segments when due."""
        now = self._now()
        dirty = False
        for session in sessions:
            dirty = self._flush(session) or dirty
            if now - session.segment_start >= SESSION_CHECKPOINT_SEC:
                self._record_segment(session, now)
                dirty = True
        if dirty:
            self.store.save()

    def _running_sessions(self) -> List[_LiveSession]:
        with self._lock:
            return list(self._sessions.values())

    async def start_monitoring(self, name: str) -> None:
        await self._run(self._start, name)

    async def stop_monitoring(self, name: str) -> None:
        await self._run(self._stop, name)

    async def get_live_stats(self, name: str) -> Dict[str, Any]:
        with self._lock:
            session = self._sessions.get(name)
        if session is None:
            raise ValueError(f"Session for {name} not found")
        await self._run(self._checkpoint, [session])
        return session.snapshot(self._now())

    # ── History ──────────────────────────────────────────────

    async def get_lifetime_counters(self) -> Dict[str, Dict[str, Any]]:
        await self._run(self._checkpoint, self._running_sessions())
        return {
            name: {
                "lifetime_incoming_bytes": state["lifetime_incoming_bytes"],
                "lifetime_outgoing_bytes": state["lifetime_outgoing_bytes"],
                "first_recorded_time": state["first_recorded_time"],
            }
            for name, state in self.store.adapters().items()
        }

    async def get_session_history(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        days = []
        for date in dates_in_range(start_date, end_date):
            day = self.store.day(date)
            if day is not None:
                days.append(day)
        return days

    async def get_current_totals(self) -> Dict[str, Any]:
        lifetime = await self.get_lifetime_counters()
        today = self.store.day(self.clock.today_string()) or {}
        return {
            "combined_live_totals": {
                "incoming_bytes": sum(c["lifetime_incoming_bytes"] for c in lifetime.values()),
                "outgoing_bytes": sum(c["lifetime_outgoing_bytes"] for c in lifetime.values()),
            },
            "combined_session_totals": {
                "incoming_bytes": today.get("total_incoming_bytes", 0),
                "outgoing_bytes": today.get("total_outgoing_bytes", 0),
            },
            "today_session_count": len(today.get("sessions", [])),
        }

    async def check_unexpected_shutdown(self) -> bool:
        return self.store.was_unexpected_shutdown(self.config.clean_shutdown_window, self._now())

    async def mark_clean_shutdown(self) -> None:
        await self._run(self.store.mark_clean_shutdown, self._now())

    # ── Activity logs ────────────────────────────────────────

    def _read_log(self, date: str) -> str:
        path = Path(self.config.log_dir) / f"{date}.txt"
        if not path.parent.exists():
            return "No log files found"
        if not path.exists():
            return f"No log file found for {date}"
        return path.read_text(encoding="utf-8", errors="replace")

    async def get_daily_summary_log(self, date: str) -> str:
        return await self._run(self._read_log, date)

    async def aggregate_activity_logs(self, dates: List[str]) -> List[str]:
        return [await self.get_daily_summary_log(d) for d in dates]

    async def close(self) -> None:
        with self._lock:
            names = list(self._sessions)
        for name in names:
            await self.stop_monitoring(name)


def _service_port(sport: int, dport: int) -> int:
    """Pick the service side of a connection: the well-known or lower port."""
    if dport in WELL_KNOWN_PORTS:
        return dport
    if sport in WELL_KNOWN_PORTS:
        return sport
    return min(sport, dport)
