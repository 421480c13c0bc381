import unittest

from fairsight.capture import BackendClient, DummyBackend
from fairsight.exceptions import AdapterNotFoundError, BackendError, PayloadShapeError


class OddBackend(DummyBackend):
    """Returns payloads of the wrong shape."""

    async def list_adapters(self):
        return {"name": "eth0"}

    async def is_adapter_monitoring(self, name):
        return "yes"

    async def get_live_stats(self, name):
        return {"incoming_bytes": -5}

    async def get_lifetime_counters(self):
        return [{"cumulative_incoming_bytes": 1}]

    async def get_session_history(self, start_date, end_date):
        return [{"date": "May 1st"}]

    async def get_daily_summary_log(self, date):
        return 42


class BackendClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_adapters_validated(self):
        client = BackendClient(DummyBackend(adapters=[
            {"name": "eth0", "is_up": True, "ips": ["10.0.0.2"]},
            {"name": "eth0", "is_up": False},
        ]))
        adapters = await client.list_adapters()
        self.assertEqual(len(adapters), 1)
        self.assertEqual(adapters[0].addresses, ["10.0.0.2"])
        self.assertTrue(adapters[0].is_up)

    async def test_shape_errors(self):
        client = BackendClient(OddBackend())
        calls = [
            client.list_adapters(),
            client.is_adapter_monitoring("eth0"),
            client.get_live_stats("eth0"),
            client.get_lifetime_counters(),
            client.get_session_history("2024-05-01", "2024-05-01"),
            client.get_daily_summary_log("2024-05-01"),
        ]
        for call in calls:
            with self.subTest(call=call.__qualname__):
                with self.assertRaises(PayloadShapeError):
                    await call

    async def test_backend_failure_wrapped(self):
        backend = DummyBackend()
        backend.fail("list_adapters")
        with self.assertRaises(BackendError) as ctx:
            await BackendClient(backend).list_adapters()
        self.assertEqual(ctx.exception.operation, "list_adapters")

    async def test_unknown_adapter(self):
        client = BackendClient(DummyBackend())
        with self.assertRaises(AdapterNotFoundError) as ctx:
            await client.start_monitoring("wg0")
        self.assertEqual(ctx.exception.adapter_name, "wg0")
        self.assertIsInstance(ctx.exception, BackendError)

    async def test_legacy_field_names(self):
        backend = DummyBackend()
        backend._lifetime["eth0"] = {"lifetime_incoming_bytes": 10, "lifetime_outgoing_bytes": 4}
        counters = await BackendClient(backend).get_lifetime_counters()
        self.assertEqual(counters["eth0"].cumulative_incoming_bytes, 10)
        self.assertEqual(counters["eth0"].cumulative_outgoing_bytes, 4)

    async def test_live_stats(self):
        backend = DummyBackend(traffic_step=(100, 50))
        client = BackendClient(backend)
        await client.start_monitoring("dummy0")
        await client.get_live_stats("dummy0")
        snapshot = await client.get_live_stats("dummy0")
        self.assertEqual(snapshot.incoming_bytes, 200)
        self.assertEqual(snapshot.outgoing_bytes, 100)
        self.assertEqual(len(snapshot.hosts), 3)


if __name__ == "__main__":
    unittest.main()
