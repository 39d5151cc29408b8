"""
Run one discovery pass over every enabled factory.

The coordinator owns the shutdown flag: SIGINT/SIGTERM (when handlers are
installed) only set it, every scan task notices at its next chunk boundary,
flushes its own cursor and stops. The run returns once all tasks reached a
terminal state.
"""
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_EXCEPTION
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging
import signal
import threading
import time

from pool_discovery.config.settings import ScanConfig
from pool_discovery.discovery.blocks import compute_scan_window, resume_block
from pool_discovery.discovery.event_processor import EventProcessor
from pool_discovery.discovery.identity import PoolIdentitySet
from pool_discovery.discovery.liquidity import LiquidityEstimator, StaticTableEstimator
from pool_discovery.discovery.scan_task import ScanTask, TaskState
from pool_discovery.discovery.stats import FactoryStats, RunStatistics
from pool_discovery.discovery.status import StatusReporter
from pool_discovery.sources.evm.factories import FactoryDescriptor, select_factories
from pool_discovery.storage.pool_store import PoolStore
from pool_discovery.storage.progress_tracker import ProgressTracker
from pool_discovery.utils.log_utils import fmt_usd
from pool_discovery.utils.types import ScanProgress

log = logging.getLogger(__name__)


@dataclass
class FactoryResult:
    exchange_name: str
    state: TaskState
    stats: FactoryStats
    progress: ScanProgress
    error: Optional[str] = None


@dataclass
class DiscoveryReport:
    window: Tuple[int, int]
    results: List[FactoryResult] = field(default_factory=list)
    stored_liquidity: List[tuple] = field(default_factory=list)
    duration_seconds: float = 0.0
    interrupted: bool = False

    @property
    def success(self) -> bool:
        return any(r.state is TaskState.COMPLETED for r in self.results)

    def total(self, counter: str):
        return sum(getattr(r.stats, counter) for r in self.results)


class ScanCoordinator:
    def __init__(
        self,
        config: ScanConfig,
        chain_client,
        pool_store: PoolStore,
        tracker: ProgressTracker,
        estimator: Optional[LiquidityEstimator] = None,
        factories: Optional[Sequence[FactoryDescriptor]] = None,
        shutdown: Optional[threading.Event] = None,
    ):
        self.config = config
        self.client = chain_client
        self.store = pool_store
        self.tracker = tracker
        self.estimator = estimator or StaticTableEstimator()
        self.factories = list(factories) if factories is not None else select_factories(config)
        self.shutdown = shutdown or threading.Event()
        self.stats = RunStatistics()
        self._previous_handlers = {}

    # ------------------------------------------------------------------
    # shutdown
    # ------------------------------------------------------------------
    def request_shutdown(self, signum=None, frame=None) -> None:
        if not self.shutdown.is_set():
            log.info("🔄 Shutting down… finishing in-flight chunks and saving progress")
        self.shutdown.set()

    def install_signal_handlers(self) -> bool:
        if threading.current_thread() is not threading.main_thread():
            log.debug("Not on the main thread, leaving signal handlers alone")
            return False
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[sig] = signal.signal(sig, self.request_shutdown)
        return True

    def restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------
    def build_tasks(self, identities: PoolIdentitySet, window: Tuple[int, int]) -> List[ScanTask]:
        window_start, window_end = window
        tasks = []
        for factory in self.factories:
            stored = None if self.config.restart else self.tracker.load(factory.exchange_name, self.config.chain_id)
            first_block = resume_block(stored, window_start, window_end, restart=self.config.restart)
            if stored is not None and first_block > window_start:
                log.info(f"🔁 [{factory.exchange_name}] resuming from block {first_block:,}")
            baseline = stored if stored is not None and first_block > window_start else None

            processor = EventProcessor(
                factory=factory,
                chain_id=self.config.chain_id,
                identities=identities,
                estimator=self.estimator,
                store=self.store,
                stats=self.stats,
                min_liquidity_usd=self.config.min_liquidity_usd,
                chain_client=self.client if self.config.resolve_token_metadata else None,
            )
            tasks.append(ScanTask(
                factory=factory,
                chain_client=self.client,
                processor=processor,
                tracker=self.tracker,
                stats=self.stats,
                config=self.config,
                shutdown=self.shutdown,
                window_start=window_start,
                window_end=window_end,
                first_block=first_block,
                baseline=baseline,
            ))
        return tasks

    def run(self, install_signals: bool = True) -> DiscoveryReport:
        started = time.time()
        log.info("🔥 Starting pool discovery via factory events")
        log.info(f"💰 Minimum liquidity: {fmt_usd(self.config.min_liquidity_usd)}")

        # StoreUnavailable is fatal here: dedup depends on it
        identities = PoolIdentitySet(self.store.known_addresses(self.config.chain_id))
        log.info(f"🗄️ {len(identities)} pools already stored, will skip these")

        head = self.config.end_block if self.config.end_block is not None else self.client.current_height()
        window = compute_scan_window(
            head,
            self.factories,
            days_back=self.config.days_back,
            blocks_per_day=self.config.blocks_per_day,
            from_genesis=self.config.from_genesis,
        )
        log.info(f"🎯 Block range: {window[0]:,} to {window[1]:,} across {len(self.factories)} factories")

        tasks = self.build_tasks(identities, window)
        report = DiscoveryReport(window=window)
        if not tasks:
            log.warning("No factories enabled, nothing to scan")
            return report

        if install_signals:
            self.install_signal_handlers()
        reporter = StatusReporter(self.stats, self.config.status_interval_seconds)
        reporter.start()
        try:
            with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="scan") as pool:
                futures = {pool.submit(task.run): task for task in tasks}
                pending = set(futures)
                while pending:
                    # short timeout keeps the main thread responsive to signals
                    _, pending = wait(pending, timeout=1.0, return_when=FIRST_EXCEPTION)
        finally:
            reporter.stop()
            self.restore_signal_handlers()

        for future, task in futures.items():
            error = None
            state = task.state
            exc = future.exception()
            if exc is not None:
                log.error(f"❌ [{task.name}] scan failed: {exc}", exc_info=exc)
                state = TaskState.FAILED
                error = str(exc)
            report.results.append(FactoryResult(
                exchange_name=task.name,
                state=state,
                stats=self.stats.factory(task.name),
                progress=task.progress,
                error=error,
            ))

        report.interrupted = self.shutdown.is_set()
        report.stored_liquidity = self.store.liquidity_by_exchange(self.config.chain_id)
        report.duration_seconds = time.time() - started
        log_report(report)
        return report


def log_report(report: DiscoveryReport) -> None:
    log.info("🔥 Pool discovery complete" + (" (interrupted)" if report.interrupted else ""))
    log.info(f"📊 Events scanned: {report.total('events_scanned')} | new pools found: "
             f"{report.total('pools_found')} | added: {report.total('pools_added')} | "
             f"already existed: {report.total('already_exists')} | low liquidity: "
             f"{report.total('low_liquidity')} | errors: {report.total('errors')}")
    log.info(f"💰 Liquidity discovered this run: {fmt_usd(report.total('liquidity_added_usd'))}")
    for r in report.results:
        s = r.stats
        log.info(f"   {r.exchange_name:<15}: {s.events_scanned:>5} events | {s.pools_found:>4} found | "
                 f"{s.pools_added:>4} added | {s.errors:>3} errors | {s.chunks_skipped:>3} skipped | "
                 f"{r.progress.completion_percent:5.1f}% [{r.state.value}]")
    total_pools = 0
    total_liquidity = 0.0
    for exchange, count, liquidity in report.stored_liquidity:
        log.info(f"   {exchange:<15}: {count:>5} pools | {fmt_usd(liquidity)} liquidity")
        total_pools += count
        total_liquidity += liquidity
    log.info(f"🎯 Stored total: {total_pools} pools, {fmt_usd(total_liquidity)} liquidity "
             f"({report.duration_seconds:.1f}s)")


def run_discovery(
    config: ScanConfig,
    chain_client=None,
    engine=None,
    session_factory=None,
    install_signals: bool = True,
    factories: Optional[Sequence[FactoryDescriptor]] = None,
) -> DiscoveryReport:
    """Wire the default collaborators (web3 client, Postgres sessions) and run."""
    from pool_discovery.storage.db_utils import create_tables

    if engine is None or session_factory is None:
        from pool_discovery.storage.db import SessionLocal, engine as default_engine
        engine = engine or default_engine
        session_factory = session_factory or SessionLocal
    create_tables(engine)

    if chain_client is None:
        from pool_discovery.sources.evm.client import ChainClient
        chain_client = ChainClient.from_rpc_url(config.rpc_url)

    coordinator = ScanCoordinator(
        config=config,
        chain_client=chain_client,
        pool_store=PoolStore(session_factory),
        tracker=ProgressTracker(session_factory),
        factories=factories,
    )
    return coordinator.run(install_signals=install_signals)
