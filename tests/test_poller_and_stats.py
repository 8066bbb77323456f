import asyncio
import unittest

from fake_api import FakeConductorApi, transport_error

from conductor_client.domain.catalog import Stats
from conductor_client.services.poller import Poller
from conductor_client.services.stats_store import StatsStore


class TestPoller(unittest.IsolatedAsyncioTestCase):
    async def test_runs_immediately_and_repeats_until_stopped(self):
        calls = []
        ticked = asyncio.Event()

        async def refresh():
            calls.append(1)
            if len(calls) >= 3:
                ticked.set()

        poller = Poller("test", refresh, interval_sec=0.1)
        await poller.start()
        await poller.start()
        self.assertTrue(poller.running)
        await asyncio.wait_for(ticked.wait(), timeout=5)
        await poller.stop()
        self.assertFalse(poller.running)
        count = len(calls)
        await asyncio.sleep(0.25)
        self.assertEqual(len(calls), count)

    async def test_refresh_errors_do_not_stop_the_loop(self):
        calls = []
        recovered = asyncio.Event()

        async def refresh():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            recovered.set()

        poller = Poller("flaky", refresh, interval_sec=0.1)
        with self.assertLogs("conductor_client.services.poller", level="ERROR"):
            await poller.start()
            await asyncio.wait_for(recovered.wait(), timeout=5)
        await poller.stop()
        self.assertGreaterEqual(poller.ticks, 1)


class TestStatsStore(unittest.IsolatedAsyncioTestCase):
    async def test_refresh_keeps_last_good_value_on_failure(self):
        api = FakeConductorApi()
        store = StatsStore(api)
        self.assertIsNone(store.stats)
        self.assertTrue(await store.refresh())
        self.assertEqual(store.stats, Stats(active_runs=1, total_templates=2, today_cost=0.5))
        fetched_at = store.fetched_at

        api.stats_error = transport_error()
        self.assertFalse(await store.refresh())
        self.assertEqual(store.stats.active_runs, 1)
        self.assertEqual(store.fetched_at, fetched_at)
        summary = store.summary()
        self.assertEqual(summary["total_templates"], 2)
        self.assertEqual(summary["recent_activity"], [])


if __name__ == "__main__":
    unittest.main()
