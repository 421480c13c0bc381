"""
Runtime configuration: intervals, paths, logging options.

Config is a plain dataclass. ``load_config`` reads it from JSON,
falling back to defaults when the file is missing or unreadable.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FAIRSIGHT_CONFIG"
DEFAULT_HOME = Path(os.environ.get("FAIRSIGHT_HOME", Path.home() / ".fairsight"))

# ─── Timing (seconds) ────────────────────────────────────────────
DISCOVERY_INTERVAL_SEC = 15.0    # Adapter list refresh, catches VPN connect/disconnect
POLL_INTERVAL_SEC = 2.0          # Live stats poll while any adapter is monitored
TOTALS_REFRESH_SEC = 10.0        # Live vs session totals refresh
CLEAN_SHUTDOWN_WINDOW_SEC = 300  # Clean shutdown this recent means no recovery needed


@dataclass
class MonitorConfig:
    discovery_interval: float = DISCOVERY_INTERVAL_SEC
    poll_interval: float = POLL_INTERVAL_SEC
    totals_refresh_interval: float = TOTALS_REFRESH_SEC
    clean_shutdown_window: int = CLEAN_SHUTDOWN_WINDOW_SEC
    log_dir: str = field(default_factory=lambda: str(DEFAULT_HOME / "activity"))
    state_file: str = field(default_factory=lambda: str(DEFAULT_HOME / "state.json"))
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.discovery_interval <= 0 or self.poll_interval <= 0:
            raise ValueError("Intervals must be positive")

    def to_dict(self) -> dict:
        return asdict(self)


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_HOME / "config.json"))


def load_config(path=None) -> MonitorConfig:
    """Load config from disk. Missing or corrupt files give the defaults."""
    path = Path(path) if path else default_config_path()
    if not path.exists():
        return MonitorConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        log.warning("Could not read config %s: %s - using defaults", path, e)
        return MonitorConfig()

    if not isinstance(raw, dict):
        log.warning("Config %s is not a JSON object - using defaults", path)
        return MonitorConfig()

    known = {f.name for f in fields(MonitorConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        log.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

    try:
        return MonitorConfig(**{k: v for k, v in raw.items() if k in known})
    except (TypeError, ValueError) as e:
        log.warning("Invalid config %s: %s - using defaults", path, e)
        return MonitorConfig()


def save_config(config: MonitorConfig, path=None) -> Path:
    """Save config to disk as JSON."""
    path = Path(path) if path else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    log.info("Config saved to %s", path)
    return path
