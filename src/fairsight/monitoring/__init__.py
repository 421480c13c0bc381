"""
Adapter lifecycle, traffic reconciliation and shutdown detection.
"""

from .lifecycle import AdapterLifecycleManager, MonitoringView
from .reconcile import (
    RangeTotals,
    SyncStatus,
    TrafficHistory,
    prepare_chart_data,
    reconcile,
    summarize_totals,
    sync_status,
)
from .shutdown import ShutdownDetector

__all__ = [
    'AdapterLifecycleManager',
    'MonitoringView',
    'RangeTotals',
    'SyncStatus',
    'TrafficHistory',
    'prepare_chart_data',
    'reconcile',
    'summarize_totals',
    'sync_status',
    'ShutdownDetector',
]
