from typing import Iterable, Iterator, Optional, Tuple
import logging

from pool_discovery.sources.evm.factories import FactoryDescriptor
from pool_discovery.utils.types import ScanProgress

log = logging.getLogger(__name__)


def walk_block_ranges(start: int, end: int, step: int = 1000) -> Iterator[Tuple[int, int]]:
    """Inclusive [from, to] chunks covering start..end in ascending order."""
    for i in range(start, end + 1, step):
        yield i, min(i + step - 1, end)


def split_range(from_block: int, to_block: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    mid = (from_block + to_block) // 2
    return (from_block, mid), (mid + 1, to_block)


def compute_scan_window(
    head: int,
    factories: Iterable[FactoryDescriptor],
    days_back: int,
    blocks_per_day: int,
    from_genesis: bool = False,
) -> Tuple[int, int]:
    """Shared [start, end] window every factory is scanned over."""
    if from_genesis:
        deployments = [f.deployment_block for f in factories]
        start = min(deployments) if deployments else 0
        log.info(f"📜 Full history scan from block {start:,} (earliest factory deployment)")
    else:
        start = max(head - days_back * blocks_per_day, 0)
        log.info(f"📊 Scanning {days_back} days: {head - start:,} blocks")
    return min(start, head), head


def resume_block(
    stored: Optional[ScanProgress],
    window_start: int,
    window_end: int,
    restart: bool = False,
) -> int:
    """First block a task should scan, honouring a previously stored cursor.

    Returns ``window_end + 1`` when the stored run already covers the whole
    window.
    """
    if stored is None or restart:
        return window_start
    if stored.current_block <= stored.start_block and not stored.completed:
        # nothing was fully processed last time
        return window_start
    if window_start < stored.start_block:
        # wider window than the stored run covered
        log.info(f"[{stored.exchange_name}] window widened below block {stored.start_block:,}, rescanning")
        return window_start
    if stored.current_block >= window_end:
        return window_end + 1
    if stored.current_block < window_start:
        return window_start
    return stored.current_block + 1
