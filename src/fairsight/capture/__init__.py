"""
Backend boundary: interface, payload validation and implementations.
"""

from .icapture_backend import ICaptureBackend
from .client import BackendClient
from .dummy_backend import DummyBackend
from .state_store import StateStore

__all__ = [
    'ICaptureBackend',
    'BackendClient',
    'DummyBackend',
    'StateStore',
    'create_backend',
]


def create_backend(kind: str = "dummy", config=None, clock=None) -> ICaptureBackend:
    """Build a backend by name (``dummy`` or ``scapy``)."""
    if kind == "scapy":
        from .scapy_backend import ScapyBackend
        return ScapyBackend(config=config, clock=clock)
    if kind == "dummy":
        return DummyBackend(clock=clock)
    raise ValueError(f"Unknown backend: {kind}")
