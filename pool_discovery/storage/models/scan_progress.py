from sqlalchemy import Column, Integer, BigInteger, String, UniqueConstraint, func
from sqlalchemy import TIMESTAMP as TIMESTAMPTZ

from pool_discovery.storage.base import Base


class ScanProgressRow(Base):
    __tablename__ = "scan_progress"

    id                   = Column(Integer, primary_key=True, autoincrement=True)
    exchange_name        = Column(String(50), nullable=False)
    chain_id             = Column(Integer, nullable=False)
    start_block          = Column(BigInteger, nullable=False)
    current_block        = Column(BigInteger, nullable=False)   # last fully processed block
    end_block            = Column(BigInteger, nullable=False)
    total_events_scanned = Column(Integer, nullable=False, default=0)
    pools_found          = Column(Integer, nullable=False, default=0)
    pools_added          = Column(Integer, nullable=False, default=0)
    created_at           = Column(TIMESTAMPTZ(timezone=True), server_default=func.now())
    updated_at           = Column(TIMESTAMPTZ(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (UniqueConstraint("exchange_name", "chain_id", name="uq_scan_progress_exchange_chain"),)

    def __repr__(self) -> str:
        return f"<ScanProgress {self.exchange_name}@{self.chain_id} {self.current_block}/{self.end_block}>"
