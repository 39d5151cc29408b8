import threading
import time
from dataclasses import dataclass, fields, replace
from typing import Dict, Mapping, NamedTuple, Optional

from pool_discovery.utils.types import ScanProgress


@dataclass(frozen=True)
class FactoryStats:
    events_scanned: int = 0
    pools_found: int = 0
    pools_added: int = 0
    already_exists: int = 0
    low_liquidity: int = 0
    errors: int = 0
    chunks_skipped: int = 0
    rate_limited: int = 0
    liquidity_added_usd: float = 0.0


COUNTER_NAMES = tuple(f.name for f in fields(FactoryStats))


class StatsSnapshot(NamedTuple):
    runtime_seconds: float
    factories: Mapping[str, FactoryStats]
    progress: Mapping[str, ScanProgress]

    def total(self, counter: str):
        return sum(getattr(s, counter) for s in self.factories.values())


class RunStatistics:
    """Counters and live cursors shared between scan tasks and the status reporter.

    Every mutation goes through the lock; readers only ever see immutable
    ``StatsSnapshot`` copies.
    """

    def __init__(self, clock=time.monotonic):
        self._lock = threading.Lock()
        self._clock = clock
        self._started = clock()
        self._factories: Dict[str, FactoryStats] = {}
        self._progress: Dict[str, ScanProgress] = {}

    def register(self, exchange_name: str, progress: Optional[ScanProgress] = None) -> None:
        with self._lock:
            self._factories.setdefault(exchange_name, FactoryStats())
            if progress is not None:
                self._progress[exchange_name] = progress

    def increment(self, exchange_name: str, counter: str, amount=1) -> None:
        if counter not in COUNTER_NAMES:
            raise KeyError(counter)
        with self._lock:
            current = self._factories.get(exchange_name, FactoryStats())
            self._factories[exchange_name] = replace(
                current, **{counter: getattr(current, counter) + amount}
            )

    def update_progress(self, progress: ScanProgress) -> None:
        with self._lock:
            self._progress[progress.exchange_name] = progress

    def factory(self, exchange_name: str) -> FactoryStats:
        with self._lock:
            return self._factories.get(exchange_name, FactoryStats())

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                runtime_seconds=self._clock() - self._started,
                factories=dict(self._factories),
                progress=dict(self._progress),
            )
