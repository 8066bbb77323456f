"""Per-run buffers of streamed log records and their running totals."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from conductor_client.domain.logs import LEVELS, LogRecord


@dataclass(frozen=True)
class LogSnapshot:
    run_id: str
    records: Tuple[LogRecord, ...]
    cumulative_cost: float
    total_tokens: int
    level_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return self.level_counts.get("error", 0)


class LogAccumulator:
    """Append-only record buffer for one run.

    Aggregates are updated on every append, so reading them never rescans
    the buffer. Appends happen synchronously inside a single event-loop
    step, which keeps ``snapshot`` free of partial writes without a lock.
    """

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._records: List[LogRecord] = []
        self._cost = 0.0
        self._tokens = 0
        self._level_counts: Dict[str, int] = {level: 0 for level in LEVELS}

    def append(self, record: LogRecord) -> None:
        self._records.append(record)
        if record.cost is not None:
            self._cost += record.cost
        if record.tokens is not None:
            self._tokens += record.tokens
        self._level_counts[record.level] = self._level_counts.get(record.level, 0) + 1

    def snapshot(self) -> LogSnapshot:
        return LogSnapshot(
            run_id=self.run_id,
            records=tuple(self._records),
            cumulative_cost=self._cost,
            total_tokens=self._tokens,
            level_counts=dict(self._level_counts),
        )

    def clear(self) -> None:
        self._records = []
        self._cost = 0.0
        self._tokens = 0
        self._level_counts = {level: 0 for level in LEVELS}

    @property
    def cumulative_cost(self) -> float:
        return self._cost

    def __len__(self) -> int:
        return len(self._records)


class LogStore:
    """Process-wide owner of every run's accumulator."""

    def __init__(self) -> None:
        self._accumulators: Dict[str, LogAccumulator] = {}

    def accumulator(self, run_id: str) -> LogAccumulator:
        acc = self._accumulators.get(run_id)
        if acc is None:
            acc = LogAccumulator(run_id)
            self._accumulators[run_id] = acc
        return acc

    def snapshot(self, run_id: str) -> Optional[LogSnapshot]:
        acc = self._accumulators.get(run_id)
        return acc.snapshot() if acc is not None else None

    def clear(self, run_id: str) -> None:
        acc = self._accumulators.pop(run_id, None)
        if acc is not None:
            acc.clear()
