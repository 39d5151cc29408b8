from celery import shared_task
from celery.signals import worker_process_init
from redis import Redis
from redlock import Redlock
import os
import logging
from dataclasses import replace

from pool_discovery.celery.celery_app import configure_worker_logging
from pool_discovery.config.settings import ScanConfig
from pool_discovery.discovery.coordinator import run_discovery
from pool_discovery.storage.db import WorkerSessionLocal, worker_engine

log = logging.getLogger(__name__)

# ── global Redis lock (only ONE discovery pass may run at a time) ───────
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
LOCKER = Redlock([Redis.from_url(REDIS_URL)])

GLOBAL_LOCK_MS = 6 * 60 * 60 * 1000    # a full pass can take hours


@worker_process_init.connect
def _setup_logging(**_):
    configure_worker_logging()


@shared_task(name="discover_pools", queue="discovery", bind=True)
def discover_pools(self, days_back: int = None, min_liquidity_usd: float = None):
    log.info("🔄  Starting scheduled pool discovery…")

    lock = LOCKER.lock("pool_discovery_lock", GLOBAL_LOCK_MS)
    log.info(f"🔒  Acquired global lock: {bool(lock)}")
    if not lock:
        log.info("🔒 Another discovery pass is running; skipping.")
        return {"status": "skipped"}

    try:
        config = ScanConfig()
        overrides = {}
        if days_back is not None:
            overrides["days_back"] = days_back
        if min_liquidity_usd is not None:
            overrides["min_liquidity_usd"] = min_liquidity_usd
        if overrides:
            config = replace(config, **overrides)

        # no signal handlers inside a worker; celery owns them
        report = run_discovery(
            config,
            engine=worker_engine,
            session_factory=WorkerSessionLocal,
            install_signals=False,
        )
        return {
            "status": "ok" if report.success else "incomplete",
            "window": list(report.window),
            "pools_added": report.total("pools_added"),
            "events_scanned": report.total("events_scanned"),
        }
    finally:
        LOCKER.unlock(lock)
