import logging
import threading
from typing import List, Optional

from pool_discovery.discovery.stats import RunStatistics, StatsSnapshot

log = logging.getLogger(__name__)


def format_status(snapshot: StatsSnapshot) -> List[str]:
    lines = [
        f"⏰ STATUS UPDATE ({int(snapshot.runtime_seconds)}s runtime)",
        f"   🎯 Total pools added: {snapshot.total('pools_added')}",
        f"   📊 Total events: {snapshot.total('events_scanned')}",
    ]
    for name in sorted(snapshot.factories):
        stats = snapshot.factories[name]
        progress = snapshot.progress.get(name)
        pct = progress.completion_percent if progress is not None else 0.0
        block = f" @ {progress.current_block:,}" if progress is not None else ""
        lines.append(f"   [{name}] {pct:.1f}% complete{block} - {stats.pools_added} pools added")
    return lines


class StatusReporter:
    """Logs a progress summary every ``interval`` seconds on its own thread.

    Only ever reads ``RunStatistics.snapshot()``.
    """

    def __init__(self, stats: RunStatistics, interval: float, logger: Optional[logging.Logger] = None):
        self.stats = stats
        self.interval = interval
        self.log = logger or log
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def report(self) -> StatsSnapshot:
        snapshot = self.stats.snapshot()
        for line in format_status(snapshot):
            self.log.info(line)
        return snapshot

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.report()

    def start(self) -> None:
        if self.interval <= 0 or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="status-reporter", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
