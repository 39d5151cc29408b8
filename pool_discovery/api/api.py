from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from pool_discovery.config.settings import CHAIN_ID
from pool_discovery.storage.db import get_db
from pool_discovery.storage.pool_store import PoolStore
from pool_discovery.storage.progress_tracker import ProgressTracker

router = APIRouter()


class PoolOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pool_address: str
    exchange_name: str
    chain_id: int
    token0_address: str
    token0_symbol: str
    token0_decimals: int
    token1_address: str
    token1_symbol: str
    token1_decimals: int
    fee: int
    liquidity_usd: float
    volume_24h: float
    is_active: bool
    data_quality_score: float


class ScanProgressOut(BaseModel):
    exchange_name: str
    chain_id: int
    start_block: int
    current_block: int
    end_block: int
    completion_percent: float
    completed: bool
    total_events_scanned: int
    pools_found: int
    pools_added: int


def _bound_to(db: Session):
    # stores take a session factory; hand them the request's session
    return lambda: _NonClosing(db)


class _NonClosing:
    """Context manager yielding the request session without closing it."""

    def __init__(self, db: Session):
        self.db = db

    def __enter__(self) -> Session:
        return self.db

    def __exit__(self, *exc):
        return False


@router.get("/")
def read_root():
    return {"message": "Pool discovery API"}


@router.get("/pools", response_model=List[PoolOut])
def list_pools(
    exchange: Optional[str] = None,
    min_liquidity: Optional[float] = None,
    chain_id: int = CHAIN_ID,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    pools = PoolStore(_bound_to(db)).list_pools(
        chain_id=chain_id,
        exchange_name=exchange,
        min_liquidity_usd=min_liquidity,
        limit=limit,
        offset=offset,
    )
    return [PoolOut.model_validate(p) for p in pools]


@router.get("/scan-progress", response_model=List[ScanProgressOut])
def scan_progress(chain_id: int = CHAIN_ID, db: Session = Depends(get_db)):
    rows = ProgressTracker(_bound_to(db)).load_all(chain_id)
    return [
        ScanProgressOut(
            exchange_name=p.exchange_name,
            chain_id=p.chain_id,
            start_block=p.start_block,
            current_block=p.current_block,
            end_block=p.end_block,
            completion_percent=p.completion_percent,
            completed=p.completed,
            total_events_scanned=p.total_events_scanned,
            pools_found=p.pools_found,
            pools_added=p.pools_added,
        )
        for p in rows
    ]
