from datetime import datetime, timezone
from typing import List, Optional, Set
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from pool_discovery.sources.evm.errors import StoreUnavailable
from pool_discovery.storage.db_utils import upsert_insert
from pool_discovery.storage.models.pools import Pool
from pool_discovery.utils.types import PoolRecord

log = logging.getLogger(__name__)

# the only columns a later run may touch
MUTABLE_COLUMNS = ("liquidity_usd", "last_updated_at")


def _record_to_row(record: PoolRecord) -> dict:
    return {
        "pool_address": record.pool_address.lower(),
        "exchange_name": record.exchange_name,
        "chain_id": record.chain_id,
        "token0_address": record.token0.address.lower(),
        "token0_symbol": record.token0.symbol,
        "token0_decimals": record.token0.decimals,
        "token1_address": record.token1.address.lower(),
        "token1_symbol": record.token1.symbol,
        "token1_decimals": record.token1.decimals,
        "fee": record.fee,
        "liquidity_usd": record.liquidity_usd,
        "volume_24h": record.volume_24h,
        "is_active": record.is_active,
        "data_quality_score": record.data_quality_score,
        "last_updated_at": record.last_updated_at or datetime.now(timezone.utc),
    }


class PoolStore:
    """Idempotent persistence for accepted pools.

    Conflicts on ``pool_address`` are resolved by the database's own
    ``ON CONFLICT`` handling so concurrent scan threads need no locking.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def upsert(self, record: PoolRecord) -> bool:
        """Insert ``record`` or refresh its liquidity. Returns True if the row is new.

        Whether the row is new comes from the insert itself: the database
        serialises racing inserts on the unique index, so exactly one caller
        sees ``rowcount == 1`` and every other one refreshes the mutable columns.
        """
        row = _record_to_row(record)
        table = Pool.__table__
        with self.session_factory() as session:
            stmt = upsert_insert(session, table).values(**row)
            stmt = stmt.on_conflict_do_nothing(index_elements=["pool_address"])
            inserted = session.execute(stmt).rowcount == 1
            if not inserted:
                session.execute(
                    update(table)
                    .where(table.c.pool_address == row["pool_address"])
                    .values({col: row[col] for col in MUTABLE_COLUMNS})
                )
            session.commit()
        return inserted

    def known_addresses(self, chain_id: int) -> Set[str]:
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(Pool.pool_address).where(Pool.chain_id == chain_id)
                ).scalars().all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot load known pools: {e}") from e
        return {address.lower() for address in rows if address}

    def count(self, chain_id: Optional[int] = None) -> int:
        with self.session_factory() as session:
            stmt = select(func.count(Pool.id))
            if chain_id is not None:
                stmt = stmt.where(Pool.chain_id == chain_id)
            return session.execute(stmt).scalar_one()

    def get(self, pool_address: str) -> Optional[Pool]:
        with self.session_factory() as session:
            return session.execute(
                select(Pool).where(Pool.pool_address == pool_address.lower())
            ).scalar_one_or_none()

    def liquidity_by_exchange(self, chain_id: int) -> List[tuple]:
        """(exchange_name, pool_count, total_liquidity_usd) for active pools, richest first."""
        with self.session_factory() as session:
            total = func.sum(Pool.liquidity_usd)
            rows = session.execute(
                select(Pool.exchange_name, func.count(Pool.id), total)
                .where(Pool.chain_id == chain_id, Pool.is_active.is_(True))
                .group_by(Pool.exchange_name)
                .order_by(total.desc())
            ).all()
        return [(name, int(count), float(liq or 0.0)) for name, count, liq in rows]

    def list_pools(
        self,
        chain_id: Optional[int] = None,
        exchange_name: Optional[str] = None,
        min_liquidity_usd: Optional[float] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Pool]:
        stmt = select(Pool)
        if chain_id is not None:
            stmt = stmt.where(Pool.chain_id == chain_id)
        if exchange_name:
            stmt = stmt.where(Pool.exchange_name == exchange_name)
        if min_liquidity_usd is not None:
            stmt = stmt.where(Pool.liquidity_usd >= min_liquidity_usd)
        stmt = stmt.order_by(Pool.liquidity_usd.desc(), Pool.id).limit(limit).offset(offset)
        with self.session_factory() as session:
            return list(session.execute(stmt).scalars().all())
