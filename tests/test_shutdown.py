import os
import tempfile
import unittest
from datetime import datetime

from fairsight.capture import BackendClient, DummyBackend, StateStore
from fairsight.capture.scapy_backend import SCAPY_AVAILABLE, ScapyBackend, _LiveSession
from fairsight.config import MonitorConfig
from fairsight.monitoring import ShutdownDetector
from fairsight.utils.dates import FixedClock


class ShutdownDetectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_checked_once(self):
        backend = DummyBackend()
        backend.unexpected_shutdown = True
        detector = ShutdownDetector(BackendClient(backend))
        self.assertFalse(detector.checked)

        self.assertTrue(await detector.check_previous_shutdown())
        backend.unexpected_shutdown = False
        self.assertTrue(await detector.check_previous_shutdown())

        self.assertTrue(detector.checked)
        self.assertEqual(len(backend.calls_to("check_unexpected_shutdown")), 1)

    async def test_backend_failure_means_clean(self):
        backend = DummyBackend()
        backend.fail("check_unexpected_shutdown")
        detector = ShutdownDetector(BackendClient(backend))
        self.assertFalse(await detector.check_previous_shutdown())
        self.assertFalse(detector.status)


class StateStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "state.json")

    def tearDown(self):
        self.tmp.cleanup()

    def test_fresh_install_is_clean(self):
        self.assertFalse(StateStore(self.path).was_unexpected_shutdown(300, now=1000))

    def test_crash_while_monitoring(self):
        store = StateStore(self.path)
        store.set_monitoring("eth0", True)
        store.add_traffic("eth0", 100, 10, now=500)
        store.save()

        reloaded = StateStore(self.path)
        self.assertTrue(reloaded.was_unexpected_shutdown(300, now=10000))
        self.assertEqual(reloaded.adapters()["eth0"]["lifetime_incoming_bytes"], 100)
        self.assertEqual(reloaded.adapters()["eth0"]["first_recorded_time"], 500)

    def test_clean_shutdown(self):
        store = StateStore(self.path)
        store.set_monitoring("eth0", True)
        store.mark_clean_shutdown(now=1000)

        reloaded = StateStore(self.path)
        self.assertFalse(reloaded.was_unexpected_shutdown(300, now=1100))
        self.assertFalse(reloaded.adapters()["eth0"]["was_monitoring_on_exit"])

    def test_recent_clean_shutdown_wins(self):
        store = StateStore(self.path)
        store.mark_clean_shutdown(now=1000)
        store.set_monitoring("eth0", True)
        self.assertFalse(store.was_unexpected_shutdown(300, now=1100))
        self.assertTrue(store.was_unexpected_shutdown(300, now=2000))

    def test_sessions_grouped_per_day(self):
        store = StateStore(self.path)
        for incoming in (100, 50):
            store.record_session("2024-05-01", {
                "adapter_name": "eth0", "start_time": 1, "end_time": 11,
                "total_incoming_bytes": incoming, "total_outgoing_bytes": 0, "duration": 10,
            }, unique_hosts=2, unique_services=1)

        day = store.day("2024-05-01")
        self.assertEqual(day["total_incoming_bytes"], 150)
        self.assertEqual(day["total_duration"], 20)
        self.assertEqual(len(day["sessions"]), 2)
        self.assertIsNone(store.day("2024-05-02"))

    def test_corrupt_file_starts_fresh(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        store = StateStore(self.path)
        self.assertEqual(store.adapters(), {})


@unittest.skipUnless(SCAPY_AVAILABLE, "scapy not installed")
class ScapyPersistenceTests(unittest.IsolatedAsyncioTestCase):
    """A running capture whose process dies without stop or clean shutdown."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "state.json")
        self.clock = FixedClock(datetime(2024, 5, 2, 12, 0))
        config = MonitorConfig(state_file=self.path, log_dir=os.path.join(self.tmp.name, "logs"))
        self.backend = ScapyBackend(config=config, clock=self.clock)

        self.start = int(self.clock.timestamp())
        self.session = _LiveSession("eth0", ["10.0.0.2"], self.start)
        self.backend._sessions["eth0"] = self.session
        self.backend.store.set_monitoring("eth0", True)
        self.backend.store.save()

    def tearDown(self):
        self.tmp.cleanup()

    async def test_lifetime_counters_survive_crash(self):
        self.session.count("93.184.216.34", "10.0.0.2", 5000, "TCP", 443)
        await self.backend.get_live_stats("eth0")
        await self.backend.get_lifetime_counters()

        reloaded = StateStore(self.path)
        self.assertEqual(reloaded.adapters()["eth0"]["lifetime_incoming_bytes"], 5000)
        self.assertTrue(reloaded.was_unexpected_shutdown(300, now=self.start + 3600))
        # Too early for a session segment
        self.assertIsNone(reloaded.day("2024-05-02"))

    async def test_session_segments_written_while_running(self):
        self.session.count("93.184.216.34", "10.0.0.2", 1000, "TCP", 443)
        self.clock.advance(seconds=10)
        await self.backend.get_live_stats("eth0")

        day = StateStore(self.path).day("2024-05-02")
        self.assertEqual(len(day["sessions"]), 1)
        self.assertEqual(day["total_incoming_bytes"], 1000)
        self.assertEqual(day["total_duration"], 10)

        self.session.count("10.0.0.2", "93.184.216.34", 300, "TCP", 443)
        self.clock.advance(seconds=3)
        await self.backend.stop_monitoring("eth0")

        reloaded = StateStore(self.path)
        day = reloaded.day("2024-05-02")
        self.assertEqual(len(day["sessions"]), 2)
        self.assertEqual(day["total_incoming_bytes"], 1000)
        self.assertEqual(day["total_outgoing_bytes"], 300)
        self.assertEqual(day["total_duration"], 13)
        self.assertEqual(reloaded.adapters()["eth0"]["lifetime_outgoing_bytes"], 300)
        self.assertFalse(reloaded.adapters()["eth0"]["was_monitoring_on_exit"])


if __name__ == "__main__":
    unittest.main()
