"""
Activity log parsing and per-day aggregation.
"""

from .aggregator import ActivityAggregator, average_day
from .log_parser import parse_line, parse_log

__all__ = [
    'ActivityAggregator',
    'average_day',
    'parse_line',
    'parse_log',
]
