from dataclasses import replace
from typing import List, Optional
import logging

import typer

from pool_discovery.config.settings import ScanConfig, CHAIN_ID
from pool_discovery.discovery.coordinator import run_discovery
from pool_discovery.sources.evm.errors import StoreUnavailable, TransientRPCError
from pool_discovery.sources.evm.factories import select_factories
from pool_discovery.utils.shortname import configure_logging

log = logging.getLogger(__name__)

app = typer.Typer(help="Discover new DEX pools from factory creation events")


def build_config(
    rpc_url: Optional[str] = None,
    days_back: Optional[int] = None,
    from_genesis: Optional[bool] = None,
    min_liquidity: Optional[float] = None,
    chunk_size: Optional[int] = None,
    factory: Optional[List[str]] = None,
    skip: Optional[List[str]] = None,
    timeout_mode: Optional[str] = None,
    restart: bool = False,
    base: Optional[ScanConfig] = None,
) -> ScanConfig:
    """Environment defaults overridden by whatever was passed explicitly."""
    overrides = {
        "rpc_url": rpc_url,
        "days_back": days_back,
        "from_genesis": from_genesis,
        "min_liquidity_usd": min_liquidity,
        "chunk_size": chunk_size,
        "timeout_mode": timeout_mode,
        "enabled_factories": tuple(f.lower() for f in factory) if factory else None,
        "disabled_factories": tuple(s.lower() for s in skip) if skip else None,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if restart:
        overrides["restart"] = True
    return replace(base or ScanConfig(), **overrides)


@app.command("run")
def runner(
    rpc_url: Optional[str] = typer.Option(None, help="JSON-RPC endpoint (default $ARBITRUM_RPC)"),
    days_back: Optional[int] = typer.Option(None, help="How many days of blocks to scan (default $SCAN_DAYS)"),
    from_genesis: Optional[bool] = typer.Option(None, "--from-genesis/--no-from-genesis",
                                                help="Scan from the earliest factory deployment"),
    min_liquidity: Optional[float] = typer.Option(None, help="Minimum estimated USD liquidity"),
    chunk_size: Optional[int] = typer.Option(None, help="Blocks per eth_getLogs call"),
    factory: Optional[List[str]] = typer.Option(None, help="Only scan these factories (repeatable)"),
    skip: Optional[List[str]] = typer.Option(None, help="Do not scan these factories (repeatable)"),
    timeout_mode: Optional[str] = typer.Option(None, help="'skip' or 'split' chunks that time out"),
    restart: bool = typer.Option(False, help="Ignore stored cursors and rescan the whole window"),
):
    """
    Scan every enabled factory concurrently. Ctrl+C stops gracefully and keeps progress.
    """
    configure_logging()
    try:
        config = build_config(rpc_url, days_back, from_genesis, min_liquidity, chunk_size,
                              factory, skip, timeout_mode, restart)
        select_factories(config)
    except ValueError as e:
        log.error(f"[cli] Invalid configuration: {e}")
        raise typer.Exit(code=2)

    try:
        report = run_discovery(config)
    except StoreUnavailable as e:
        log.error(f"[cli] 💥 Store unavailable, aborting: {e}")
        raise typer.Exit(code=2)
    except TransientRPCError as e:
        log.error(f"[cli] 💥 Cannot read chain head: {e}")
        raise typer.Exit(code=1)

    if not report.success:
        log.error("[cli] No factory completed its scan window")
        raise typer.Exit(code=1)
    log.info("[cli] ✅ Discovery completed")


@app.command("progress")
def progress(chain_id: int = typer.Option(CHAIN_ID, help="Chain id to show cursors for")):
    """Print the stored per-factory scan cursors."""
    from pool_discovery.storage.db import SessionLocal
    from pool_discovery.storage.progress_tracker import ProgressTracker

    rows = ProgressTracker(SessionLocal).load_all(chain_id)
    if not rows:
        typer.echo("No scan progress stored yet")
        return
    for p in rows:
        state = "done" if p.completed else "partial"
        typer.echo(
            f"{p.exchange_name:<15} {p.completion_percent:5.1f}% "
            f"{p.current_block:,}/{p.end_block:,} [{state}] "
            f"events={p.total_events_scanned} found={p.pools_found} added={p.pools_added}"
        )


def main():
    app()


if __name__ == "__main__":
    main()
