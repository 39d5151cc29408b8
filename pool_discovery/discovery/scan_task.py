from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from pool_discovery.config.settings import ScanConfig
from pool_discovery.discovery.blocks import split_range, walk_block_ranges
from pool_discovery.discovery.event_processor import EventProcessor
from pool_discovery.discovery.stats import RunStatistics
from pool_discovery.sources.evm.errors import QueryTimeout, RateLimited, TransientRPCError
from pool_discovery.sources.evm.factories import FactoryDescriptor
from pool_discovery.storage.progress_tracker import ProgressTracker
from pool_discovery.utils.types import ScanProgress

log = logging.getLogger(__name__)


class TaskState(str, Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    SHUT_DOWN = "shut_down"
    FAILED = "failed"


class ScanTask:
    """Walks one factory's block window chunk by chunk.

    Chunks are processed strictly in ascending order and the cursor only
    moves once a chunk is fully handled, so a persisted ``current_block``
    always marks the end of a completed chunk.
    """

    def __init__(
        self,
        factory: FactoryDescriptor,
        chain_client,
        processor: EventProcessor,
        tracker: ProgressTracker,
        stats: RunStatistics,
        config: ScanConfig,
        shutdown: threading.Event,
        window_start: int,
        window_end: int,
        first_block: Optional[int] = None,
        baseline: Optional[ScanProgress] = None,
    ):
        self.factory = factory
        self.client = chain_client
        self.processor = processor
        self.tracker = tracker
        self.stats = stats
        self.config = config
        self.shutdown = shutdown
        self.first_block = window_start if first_block is None else first_block
        # counters carried over from a resumed run
        self.baseline = baseline
        self.state = TaskState.INITIALIZED

        initial = min(max(window_start, self.first_block - 1), window_end)
        self.progress = ScanProgress(
            exchange_name=factory.exchange_name,
            chain_id=config.chain_id,
            start_block=window_start,
            current_block=initial,
            end_block=window_end,
        )
        self.stats.register(self.name, self.progress)

    @property
    def name(self) -> str:
        return self.factory.exchange_name

    # ------------------------------------------------------------------
    # main loop
    # ------------------------------------------------------------------
    def run(self) -> TaskState:
        self.state = TaskState.RUNNING
        end_block = self.progress.end_block
        total_chunks = max(0, -(-(end_block - self.first_block + 1) // self.config.chunk_size))
        log.info(f"🏭 [{self.name}] scanning {self.factory.event_name} on {self.factory.address} "
                 f"blocks {self.first_block:,} → {end_block:,} ({total_chunks} chunks)")

        try:
            finished = self.walk(end_block, total_chunks)
        except Exception:
            self.state = TaskState.FAILED
            log.error(f"❌ [{self.name}] crashed, keeping cursor at block {self.progress.current_block:,}")
            raise
        finally:
            # the cursor only ever marks completed chunks, so it is always safe to save
            self.flush()

        self.state = TaskState.COMPLETED if finished else TaskState.SHUT_DOWN
        stats = self.stats.factory(self.name)
        log.info(f"🎯 [{self.name}] {self.state.value}: {stats.events_scanned} events, "
                 f"{stats.pools_found} found, {stats.pools_added} added")
        return self.state

    def walk(self, end_block: int, total_chunks: int) -> bool:
        """Scan every chunk up to ``end_block``. False when shutdown cut it short."""
        chunks_done = 0
        for from_block, to_block in walk_block_ranges(self.first_block, end_block, self.config.chunk_size):
            if self.shutdown.is_set():
                log.info(f"🛑 [{self.name}] shutdown requested, stopping before block {from_block:,}")
                return False

            events = self.scan_chunk(from_block, to_block)
            if events is None:
                log.info(f"🛑 [{self.name}] shutdown during backoff, chunk {from_block:,}-{to_block:,} left for next run")
                return False

            self.advance(to_block)
            chunks_done += 1
            if chunks_done == 1 or chunks_done % 20 == 0:
                log.info(f"📊 [{self.name}] chunk {chunks_done}/{total_chunks}: "
                         f"blocks {from_block:,} to {to_block:,}")
            if chunks_done % self.config.progress_flush_every == 0:
                self.flush()
            self.throttle(events)

        # empty or already-covered windows are complete as well
        self.advance(end_block)
        return True

    def scan_chunk(self, from_block: int, to_block: int) -> Optional[int]:
        """Fetch and process one range. Returns the event count, or None when
        shutdown interrupted a rate-limit backoff before the range was fetched."""
        while True:
            try:
                events = self.client.query_creation_events(self.factory, from_block, to_block)
                break
            except RateLimited:
                self.stats.increment(self.name, "rate_limited")
                log.info(f"⏸️ [{self.name}] rate limit hit on {from_block:,}-{to_block:,}, "
                         f"waiting {self.config.rate_limit_backoff_seconds}s")
                if self.shutdown.wait(self.config.rate_limit_backoff_seconds):
                    return None
            except QueryTimeout:
                return self.on_timeout(from_block, to_block)
            except TransientRPCError as e:
                log.warning(f"⚠️ [{self.name}] error scanning blocks {from_block:,}-{to_block:,}: {e}")
                self.stats.increment(self.name, "errors")
                return 0

        if events:
            log.info(f"🎯 [{self.name}] {len(events)} events in blocks {from_block:,}-{to_block:,}")
            self.stats.increment(self.name, "events_scanned", len(events))
        for raw_event in events:
            try:
                self.processor.process(raw_event)
            except Exception:
                log.exception(f"[{self.name}] unexpected error processing log "
                              f"in block {raw_event.get('blockNumber')}")
                self.stats.increment(self.name, "errors")
        return len(events)

    def on_timeout(self, from_block: int, to_block: int) -> Optional[int]:
        span = to_block - from_block + 1
        if self.config.timeout_mode == "split" and span > max(1, self.config.min_split_blocks):
            log.info(f"⏰ [{self.name}] query timeout on {from_block:,}-{to_block:,}, splitting")
            total = 0
            for lo, hi in split_range(from_block, to_block):
                events = self.scan_chunk(lo, hi)
                if events is None:
                    return None
                total += events
            return total

        log.info(f"⏰ [{self.name}] query timeout, skipping blocks {from_block:,}-{to_block:,}")
        self.stats.increment(self.name, "chunks_skipped")
        return 0

    # ------------------------------------------------------------------
    # progress
    # ------------------------------------------------------------------
    def advance(self, block: int) -> None:
        block = min(block, self.progress.end_block)
        if block < self.progress.current_block:
            return
        self.progress = self.progress._replace(current_block=block)
        self.stats.update_progress(self.progress)

    def snapshot_progress(self) -> ScanProgress:
        stats = self.stats.factory(self.name)
        base = self.baseline
        return self.progress._replace(
            total_events_scanned=stats.events_scanned + (base.total_events_scanned if base else 0),
            pools_found=stats.pools_found + (base.pools_found if base else 0),
            pools_added=stats.pools_added + (base.pools_added if base else 0),
            updated_at=datetime.now(timezone.utc),
        )

    def flush(self) -> None:
        progress = self.snapshot_progress()
        try:
            self.tracker.upsert(progress)
        except SQLAlchemyError as e:
            log.warning(f"⚠️ [{self.name}] failed to save progress at block {progress.current_block:,}: {e}")
            self.stats.increment(self.name, "errors")

    def throttle(self, events: int) -> None:
        if events > self.config.heavy_chunk_events:
            delay = self.config.heavy_chunk_delay_seconds
        else:
            delay = self.config.chunk_delay_seconds
        if delay > 0:
            self.shutdown.wait(delay)
