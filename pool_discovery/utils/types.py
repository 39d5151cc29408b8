from typing import NamedTuple, Optional
from datetime import datetime


class TokenInfo(NamedTuple):
    address: str
    symbol: str
    decimals: int


class PoolRecord(NamedTuple):
    pool_address: str
    exchange_name: str
    chain_id: int
    token0: TokenInfo
    token1: TokenInfo
    fee: int
    liquidity_usd: float
    volume_24h: float = 0.0
    is_active: bool = True
    data_quality_score: float = 75.0
    last_updated_at: Optional[datetime] = None


class ScanProgress(NamedTuple):
    exchange_name: str
    chain_id: int
    start_block: int
    current_block: int
    end_block: int
    total_events_scanned: int = 0
    pools_found: int = 0
    pools_added: int = 0
    updated_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.current_block >= self.end_block

    @property
    def completion_percent(self) -> float:
        span = self.end_block - self.start_block
        if span <= 0:
            return 100.0
        return round(100.0 * (self.current_block - self.start_block) / span, 1)
