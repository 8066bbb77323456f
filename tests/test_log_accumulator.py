import unittest

from conductor_client.domain.logs import LogRecord
from conductor_client.services.log_accumulator import LogAccumulator, LogStore


def _record(message: str, level: str = "info", cost=None, tokens=None) -> LogRecord:
    return LogRecord(timestamp="2026-10-19T10:00:00Z", level=level, message=message, cost=cost, tokens=tokens)


class TestLogAccumulator(unittest.TestCase):
    def test_cumulative_cost_is_sum_of_record_costs(self):
        acc = LogAccumulator("run-1")
        costs = [0.01, None, 0.25, 0.0, None, 1.5, 0.003]
        for idx, cost in enumerate(costs):
            acc.append(_record(f"m{idx}", cost=cost))
        snap = acc.snapshot()
        self.assertAlmostEqual(snap.cumulative_cost, sum(c or 0.0 for c in costs), places=9)
        self.assertEqual(len(snap.records), len(costs))

    def test_records_keep_arrival_order(self):
        acc = LogAccumulator("run-1")
        for idx in range(5):
            acc.append(_record(f"step{idx}"))
        self.assertEqual([r.message for r in acc.snapshot().records], ["step0", "step1", "step2", "step3", "step4"])

    def test_tokens_and_level_counts(self):
        acc = LogAccumulator("run-1")
        acc.append(_record("a", tokens=100))
        acc.append(_record("b", level="warning"))
        acc.append(_record("c", level="error", tokens=20))
        snap = acc.snapshot()
        self.assertEqual(snap.total_tokens, 120)
        self.assertEqual(snap.level_counts, {"info": 1, "warning": 1, "error": 1})
        self.assertEqual(snap.error_count, 1)

    def test_snapshot_is_not_affected_by_later_appends(self):
        acc = LogAccumulator("run-1")
        acc.append(_record("first", cost=0.5))
        snap = acc.snapshot()
        acc.append(_record("second", cost=0.5))
        self.assertEqual(len(snap.records), 1)
        self.assertAlmostEqual(snap.cumulative_cost, 0.5)
        self.assertAlmostEqual(acc.cumulative_cost, 1.0)

    def test_clear_resets_records_and_aggregates(self):
        acc = LogAccumulator("run-1")
        acc.append(_record("x", cost=2.0, tokens=5))
        acc.clear()
        snap = acc.snapshot()
        self.assertEqual(snap.records, ())
        self.assertEqual(snap.cumulative_cost, 0.0)
        self.assertEqual(snap.total_tokens, 0)
        acc.append(_record("y", cost=0.1))
        self.assertAlmostEqual(acc.snapshot().cumulative_cost, 0.1)


class TestLogStore(unittest.TestCase):
    def test_accumulators_are_per_run(self):
        store = LogStore()
        store.accumulator("a").append(_record("a1", cost=1.0))
        store.accumulator("b").append(_record("b1", cost=2.0))
        self.assertAlmostEqual(store.snapshot("a").cumulative_cost, 1.0)
        self.assertAlmostEqual(store.snapshot("b").cumulative_cost, 2.0)

    def test_clear_drops_run_and_next_accumulator_starts_empty(self):
        store = LogStore()
        store.accumulator("a").append(_record("a1", cost=1.0))
        store.clear("a")
        self.assertIsNone(store.snapshot("a"))
        self.assertEqual(len(store.accumulator("a")), 0)
        store.clear("missing")


if __name__ == "__main__":
    unittest.main()
