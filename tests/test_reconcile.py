import unittest
from datetime import datetime

from fairsight.capture import BackendClient, DummyBackend
from fairsight.models import CurrentTotals, LifetimeCounters, NetworkSession, PersistedDaySession
from fairsight.monitoring import (
    TrafficHistory,
    prepare_chart_data,
    reconcile,
    summarize_totals,
    sync_status,
)
from fairsight.utils.dates import FixedClock


def day(date, incoming=0, outgoing=0, sessions=(), **kwargs):
    return PersistedDaySession(date=date, total_incoming_bytes=incoming,
                               total_outgoing_bytes=outgoing, sessions=list(sessions), **kwargs)


def counters(incoming, outgoing=0):
    return LifetimeCounters(cumulative_incoming_bytes=incoming, cumulative_outgoing_bytes=outgoing)


class ReconcileTests(unittest.TestCase):
    def test_today_synthesized_from_live_counters(self):
        history = [day("2024-05-01", incoming=500)]
        live = {"eth0": counters(300), "wg0": counters(400)}

        result = reconcile(history, live, "2024-05-02")

        self.assertEqual([d.date for d in result], ["2024-05-01", "2024-05-02"])
        past, today = result
        self.assertEqual(past.total_incoming_bytes, 500)
        self.assertFalse(past.has_real_time_data)
        self.assertEqual(today.total_incoming_bytes, 700)
        self.assertTrue(today.has_real_time_data)
        self.assertEqual(today.session_incoming_bytes, 0)
        self.assertEqual(today.to_dict()["hasRealTimeData"], True)

    def test_today_replaced_but_session_totals_kept(self):
        session = NetworkSession(adapter_name="eth0", start_time=1, end_time=61,
                                 total_incoming_bytes=100, duration=60)
        history = [day("2024-05-02", incoming=100, outgoing=10, sessions=[session],
                       unique_hosts=4, total_duration=60)]

        (today,) = reconcile(history, [counters(900, 90)], "2024-05-02")

        self.assertEqual(today.total_incoming_bytes, 900)
        self.assertEqual(today.total_outgoing_bytes, 90)
        self.assertEqual(today.session_incoming_bytes, 100)
        self.assertEqual(today.session_outgoing_bytes, 10)
        self.assertEqual(today.sessions, (session,))
        self.assertEqual(today.unique_hosts, 4)
        self.assertEqual(today.total_duration, 60)

    def test_no_live_counters(self):
        history = [day("2024-05-02", incoming=100)]
        for live in (None, {}, []):
            with self.subTest(live=live):
                (today,) = reconcile(history, live, "2024-05-02")
                self.assertEqual(today.total_incoming_bytes, 100)
                self.assertFalse(today.has_real_time_data)
                self.assertIsNone(today.session_incoming_bytes)

    def test_no_today_and_no_counters(self):
        result = reconcile([day("2024-05-01", incoming=5)], None, "2024-05-02")
        self.assertEqual([d.date for d in result], ["2024-05-01"])

    def test_inputs_untouched_and_output_sorted(self):
        history = [day("2024-05-03", incoming=3), day("2024-05-01", incoming=1)]
        before = [d.model_dump() for d in history]

        result = reconcile(history, {"eth0": counters(50)}, "2024-05-02")

        self.assertEqual([d.date for d in result], ["2024-05-01", "2024-05-02", "2024-05-03"])
        self.assertEqual([d.model_dump() for d in history], before)
        self.assertEqual(len(history), 2)

    def test_duplicate_today_records_merged(self):
        history = [day("2024-05-02", incoming=10, total_duration=5),
                   day("2024-05-02", incoming=20, total_duration=7)]
        (today,) = reconcile(history, None, "2024-05-02")
        self.assertEqual(today.total_incoming_bytes, 30)
        self.assertEqual(today.total_duration, 12)


class RangeStatsTests(unittest.TestCase):
    def test_summarize_totals(self):
        result = reconcile([day("2024-05-01", incoming=100, outgoing=5, unique_hosts=3, total_duration=60),
                            day("2024-05-02", incoming=200, unique_hosts=7, total_duration=30)],
                           None, "2024-05-03")
        totals = summarize_totals(result)
        self.assertEqual(totals.total_incoming, 300)
        self.assertEqual(totals.total_outgoing, 5)
        self.assertEqual(totals.total_duration, 90)
        self.assertEqual(totals.unique_hosts, 7)

    def test_chart_rows(self):
        result = reconcile([], {"eth0": counters(3 * 1024 * 1024)}, "2024-05-02")
        rows = prepare_chart_data(result)
        self.assertEqual(rows[0]["incoming"], 3)
        self.assertTrue(rows[0]["live"])

    def test_sync_status(self):
        totals = CurrentTotals.model_validate({
            "combined_live_totals": {"incoming_bytes": 10000, "outgoing_bytes": 0},
            "combined_session_totals": {"incoming_bytes": 2000, "outgoing_bytes": 0},
            "today_session_count": 101,
        })
        status = sync_status(totals)
        self.assertTrue(status.discrepancy)
        self.assertTrue(status.needs_consolidation)
        self.assertTrue(status.has_session_data)


class TrafficHistoryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FixedClock(datetime(2024, 5, 2, 15, 0))
        self.backend = DummyBackend(clock=self.clock)
        self.backend.add_history_day({"date": "2024-05-01", "total_incoming_bytes": 500,
                                      "total_outgoing_bytes": 50, "sessions": []})
        self.backend.set_lifetime("dummy0", 300, 30)
        self.backend.set_lifetime("dummy1", 400, 40)
        self.history = TrafficHistory(BackendClient(self.backend), clock=self.clock)

    async def test_fetch_with_today(self):
        result = await self.history.fetch("2024-05-01", "2024-05-02")
        self.assertEqual([d.total_incoming_bytes for d in result], [500, 700])
        self.assertTrue(result[-1].has_real_time_data)

    async def test_range_without_today_skips_live_counters(self):
        result = await self.history.fetch("2024-04-30", "2024-05-01")
        self.assertEqual(len(result), 1)
        self.assertEqual(self.backend.calls_to("get_lifetime_counters"), [])

    async def test_counter_failure_degrades_to_stored(self):
        self.backend.fail("get_lifetime_counters")
        result = await self.history.fetch("2024-05-01", "2024-05-02")
        self.assertEqual([d.date for d in result], ["2024-05-01"])

    async def test_current_sync_status(self):
        status = await self.history.current_sync_status()
        self.assertEqual(status.live_bytes, 770)
        self.assertFalse(status.has_session_data)


if __name__ == "__main__":
    unittest.main()
