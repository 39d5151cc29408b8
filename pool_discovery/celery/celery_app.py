# celery_app.py  ─────────────────────────────────────────────────────────
from celery import Celery
from celery.schedules import crontab
import os
import logging.config

from pool_discovery.utils.shortname import LOG_FORMAT, LOG_DATEFMT

# ── 1.  Broker / backend / schedule  ──────────────────────────
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
DISCOVERY_SCHEDULE_HOURS = os.getenv("DISCOVERY_SCHEDULE_HOURS", "*/6")
DISCOVERY_QUEUE = "discovery"

celery_app = Celery("pool_discovery", broker=CELERY_BROKER_URL, backend=CELERY_RESULT_BACKEND)

# ── 2.  Worker behaviour ─────────────────────────────────────
# a discovery pass holds its worker for hours: no prefetching, fresh
# process (and DB connections) per pass, results kept for a day
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    enable_utc=True,
    beat_scheduler="redbeat.RedBeatScheduler",
    redbeat_redis_url=CELERY_BROKER_URL,
    task_routes={"discover_pools": {"queue": DISCOVERY_QUEUE}},
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1,
    result_expires=24 * 60 * 60,
    worker_hijack_root_logger=False,
)

# ── 3.  Beat: one pass every few hours ───────────────────────
celery_app.conf.beat_schedule = {
    "periodic-pool-discovery": {
        "task": "discover_pools",
        "schedule": crontab(minute=0, hour=DISCOVERY_SCHEDULE_HOURS),
        "options": {"queue": DISCOVERY_QUEUE},
    }
}

# ── 4.  Worker logging, same layout as the CLI ───────────────
WORKER_LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {"shortname": {"()": "pool_discovery.utils.shortname.ShortNameFilter"}},
    "formatters": {"short": {"format": LOG_FORMAT, "datefmt": LOG_DATEFMT}},
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "short", "filters": ["shortname"]},
    },
    "root": {"level": os.getenv("LOG_LEVEL", "INFO"), "handlers": ["console"]},
}


def configure_worker_logging():
    logging.config.dictConfig(WORKER_LOGGING)


# ── 5.  Task modules Celery must import to register them ────
celery_app.conf.imports = ("pool_discovery.scheduler.dispatcher",)
