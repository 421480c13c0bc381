"""
Daily activity aggregator.

Builds one DailyActivitySummary per calendar day of a date range, in the
same order as the labels from ``dates_in_range`` so a chart's labels and
series can never drift apart. Nothing is cached between calls.
"""

import logging
from typing import List, Optional, Tuple

from ..capture.client import BackendClient
from ..exceptions import BackendError, PayloadShapeError
from ..models.activity import DailyActivitySummary, SECONDS_PER_DAY
from ..utils.dates import DateLike, dates_in_range
from .log_parser import parse_log

log = logging.getLogger(__name__)


class ActivityAggregator:
    """Fetches raw activity logs from the backend and parses them per day."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def aggregate(self, start: DateLike, end: DateLike) -> List[DailyActivitySummary]:
        return [summary for _, summary in await self.aggregate_with_labels(start, end)]

    async def aggregate_with_labels(self, start: DateLike,
                                    end: DateLike) -> List[Tuple[str, DailyActivitySummary]]:
        """
        (date label, summary) for every day in [start, end].

        Logs are fetched in one batch. If the batch call fails, each day is
        fetched on its own and a day that still cannot be fetched counts as
        not run.

        Raises:
            PayloadShapeError: the backend answered with something that is not
                one log per requested day
        """
        labels = dates_in_range(start, end)
        if not labels:
            return []

        raw_logs = await self._fetch_batch(labels)
        if raw_logs is None:
            raw_logs = [await self._fetch_day(label) for label in labels]

        return [(label, parse_log(raw)) for label, raw in zip(labels, raw_logs)]

    async def _fetch_batch(self, labels: List[str]) -> Optional[List[Optional[str]]]:
        try:
            return await self.client.aggregate_activity_logs(labels)
        except BackendError as e:
            log.warning("Batch activity log fetch failed (%s), fetching day by day", e)
            return None

    async def _fetch_day(self, label: str) -> Optional[str]:
        try:
            return await self.client.get_daily_summary_log(label)
        except (BackendError, PayloadShapeError) as e:
            log.warning("Activity log for %s unavailable: %s", label, e)
            return None


def average_day(summaries: List[DailyActivitySummary]) -> DailyActivitySummary:
    """Average day over a range, handy for the summary row of a report."""
    if not summaries:
        return DailyActivitySummary.empty()
    n = len(summaries)
    active = sum(s.active_seconds for s in summaries) // n
    inactive = sum(s.inactive_seconds for s in summaries) // n
    return DailyActivitySummary(
        active_seconds=active,
        inactive_seconds=inactive,
        not_run_seconds=SECONDS_PER_DAY - active - inactive,
    )
