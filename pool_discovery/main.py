# pool_discovery/main.py
from fastapi import FastAPI
from pool_discovery.api import api
from pool_discovery.storage.db import engine
from pool_discovery.storage.db_utils import create_tables
from pool_discovery.sources.evm.errors import StoreUnavailable
import logging
from pool_discovery.utils.shortname import configure_logging

app = FastAPI(title="pool-discovery")

configure_logging()
log = logging.getLogger(__name__)

# read-only views over discovered pools and scan cursors
app.include_router(api.router, prefix="/api")


@app.on_event("startup")
def check_db_connection():
    try:
        create_tables(engine)
        log.info("✅ Database connected.")
    except StoreUnavailable as e:
        log.error(f"❌ DB connection failed: {e}")
