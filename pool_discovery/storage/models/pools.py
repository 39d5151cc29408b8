# models/pools.py
from sqlalchemy import Column, Integer, String, Boolean, Float, Index, func
from sqlalchemy import TIMESTAMP as TIMESTAMPTZ

from pool_discovery.storage.base import Base


class Pool(Base):
    __tablename__ = "pools"

    id                 = Column(Integer, primary_key=True, autoincrement=True)
    pool_address       = Column(String(42), nullable=False, unique=True)   # lower-cased 0x…
    exchange_name      = Column(String(50), nullable=False)                # uniswap-v3 / camelot-v2 …
    chain_id           = Column(Integer,    nullable=False)                # 42161 = arbitrum one

    token0_address     = Column(String(42), nullable=False)
    token0_symbol      = Column(String(32), nullable=False, default="UNKNOWN")
    token0_decimals    = Column(Integer,    nullable=False, default=18)
    token1_address     = Column(String(42), nullable=False)
    token1_symbol      = Column(String(32), nullable=False, default="UNKNOWN")
    token1_decimals    = Column(Integer,    nullable=False, default=18)

    fee                = Column(Integer,    nullable=False)                # hundredths of a bip, 3000 = 0.3 %
    liquidity_usd      = Column(Float,      nullable=False, default=0.0)   # heuristic estimate, not an oracle
    volume_24h         = Column(Float,      nullable=False, default=0.0)
    is_active          = Column(Boolean,    nullable=False, default=True)
    data_quality_score = Column(Float,      nullable=False, default=75.0)
    last_updated_at    = Column(TIMESTAMPTZ(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_pools_chain_exchange", "chain_id", "exchange_name"),
    )

    def __repr__(self) -> str:         # for nicer logs
        return (f"<Pool {self.exchange_name} {self.token0_symbol}/{self.token1_symbol} "
                f"{self.pool_address}>")
