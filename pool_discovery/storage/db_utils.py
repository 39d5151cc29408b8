from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
import logging

from pool_discovery.sources.evm.errors import StoreUnavailable
from pool_discovery.storage.base import Base
# register the tables on Base.metadata
from pool_discovery.storage.models import pools, scan_progress  # noqa: F401

log = logging.getLogger(__name__)


def upsert_insert(session, table):
    """``INSERT`` construct supporting ``on_conflict_do_update`` for the bound dialect.

    Postgres in production, SQLite for local runs and tests; both speak
    ``ON CONFLICT … DO UPDATE``.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise NotImplementedError(f"No atomic upsert for dialect {dialect!r}")


def check_connection(engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StoreUnavailable(f"DB connection failed: {e}") from e


def create_tables(engine) -> None:
    """Create ``pools`` and ``scan_progress`` if they do not exist yet."""
    check_connection(engine)
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise StoreUnavailable(f"Cannot create discovery tables: {e}") from e
    log.info("Discovery tables ready ✅")
