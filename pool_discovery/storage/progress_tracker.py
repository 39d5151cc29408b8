from datetime import datetime, timezone
from typing import List, Optional
import logging

from sqlalchemy import select

from pool_discovery.storage.db_utils import upsert_insert
from pool_discovery.storage.models.scan_progress import ScanProgressRow
from pool_discovery.utils.types import ScanProgress

log = logging.getLogger(__name__)


def _row_to_progress(row: ScanProgressRow) -> ScanProgress:
    return ScanProgress(
        exchange_name=row.exchange_name,
        chain_id=row.chain_id,
        start_block=row.start_block,
        current_block=row.current_block,
        end_block=row.end_block,
        total_events_scanned=row.total_events_scanned,
        pools_found=row.pools_found,
        pools_added=row.pools_added,
        updated_at=row.updated_at,
    )


class ProgressTracker:
    """Per-factory scan cursors, one row per (exchange_name, chain_id)."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def upsert(self, progress: ScanProgress) -> None:
        if progress.current_block > progress.end_block:
            raise ValueError(
                f"current_block {progress.current_block} beyond end_block {progress.end_block}"
            )
        values = {
            "exchange_name": progress.exchange_name,
            "chain_id": progress.chain_id,
            "start_block": progress.start_block,
            "current_block": progress.current_block,
            "end_block": progress.end_block,
            "total_events_scanned": progress.total_events_scanned,
            "pools_found": progress.pools_found,
            "pools_added": progress.pools_added,
            "updated_at": progress.updated_at or datetime.now(timezone.utc),
        }
        table = ScanProgressRow.__table__
        with self.session_factory() as session:
            stmt = upsert_insert(session, table).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["exchange_name", "chain_id"],
                set_={
                    col: stmt.excluded[col]
                    for col in values
                    if col not in ("exchange_name", "chain_id")
                },
            )
            session.execute(stmt)
            session.commit()
        log.debug(f"[{progress.exchange_name}] progress saved at block {progress.current_block}")

    def load(self, exchange_name: str, chain_id: int) -> Optional[ScanProgress]:
        with self.session_factory() as session:
            row = session.execute(
                select(ScanProgressRow).where(
                    ScanProgressRow.exchange_name == exchange_name,
                    ScanProgressRow.chain_id == chain_id,
                )
            ).scalar_one_or_none()
            return _row_to_progress(row) if row is not None else None

    def load_all(self, chain_id: int) -> List[ScanProgress]:
        with self.session_factory() as session:
            rows = session.execute(
                select(ScanProgressRow)
                .where(ScanProgressRow.chain_id == chain_id)
                .order_by(ScanProgressRow.exchange_name)
            ).scalars().all()
            return [_row_to_progress(row) for row in rows]
