from datetime import datetime, timezone
from enum import Enum
import logging

from sqlalchemy.exc import SQLAlchemyError

from pool_discovery.discovery.identity import PoolIdentitySet
from pool_discovery.discovery.liquidity import LiquidityEstimator
from pool_discovery.discovery.stats import RunStatistics
from pool_discovery.sources.evm.decoder import CreatedPool, decode_creation_event
from pool_discovery.sources.evm.errors import DecodeError
from pool_discovery.sources.evm.factories import FactoryDescriptor
from pool_discovery.storage.pool_store import PoolStore
from pool_discovery.utils.constants import (
    DEFAULT_DATA_QUALITY_SCORE,
    DEFAULT_DECIMALS,
    UNKNOWN_SYMBOL,
)
from pool_discovery.utils.log_utils import fmt_usd
from pool_discovery.utils.types import PoolRecord, TokenInfo

log = logging.getLogger(__name__)


class Outcome(str, Enum):
    ADDED = "added"
    ALREADY_EXISTS = "already_exists"
    LOW_LIQUIDITY = "low_liquidity"
    FAILED = "failed"


class EventProcessor:
    """Decide what happens to one decoded ``PoolCreated`` / ``PairCreated`` log."""

    def __init__(
        self,
        factory: FactoryDescriptor,
        chain_id: int,
        identities: PoolIdentitySet,
        estimator: LiquidityEstimator,
        store: PoolStore,
        stats: RunStatistics,
        min_liquidity_usd: float,
        chain_client=None,
    ):
        self.factory = factory
        self.chain_id = chain_id
        self.identities = identities
        self.estimator = estimator
        self.store = store
        self.stats = stats
        self.min_liquidity_usd = min_liquidity_usd
        # only used for symbol()/decimals() lookups when set
        self.chain_client = chain_client

    @property
    def name(self) -> str:
        return self.factory.exchange_name

    def process(self, raw_event: dict) -> Outcome:
        try:
            created = decode_creation_event(raw_event, self.factory)
        except DecodeError as e:
            log.warning(f"[{self.name}] skipping undecodable log "
                        f"(block {raw_event.get('blockNumber')}): {e}")
            self.stats.increment(self.name, "errors")
            return Outcome.FAILED
        return self.process_created(created)

    def process_created(self, created: CreatedPool) -> Outcome:
        if created.pool_address in self.identities:
            log.debug(f"[{self.name}] pool {created.pool_address} already known")
            self.stats.increment(self.name, "already_exists")
            return Outcome.ALREADY_EXISTS

        self.stats.increment(self.name, "pools_found")
        liquidity = self.estimator.estimate(created.token0, created.token1)

        if liquidity < self.min_liquidity_usd:
            log.debug(f"[{self.name}] 💸 low liquidity {fmt_usd(liquidity)} "
                      f"< {fmt_usd(self.min_liquidity_usd)} for {created.pool_address}")
            self.stats.increment(self.name, "low_liquidity")
            return Outcome.LOW_LIQUIDITY

        record = self.build_record(created, liquidity)
        try:
            inserted = self.store.upsert(record)
        except SQLAlchemyError as e:
            log.error(f"[{self.name}] ❌ failed to save pool {created.pool_address}: {e}")
            self.stats.increment(self.name, "errors")
            return Outcome.FAILED

        self.identities.add(created.pool_address)
        if not inserted:
            # another task saved it between our filter check and the upsert
            self.stats.increment(self.name, "already_exists")
            return Outcome.ALREADY_EXISTS

        self.stats.increment(self.name, "pools_added")
        self.stats.increment(self.name, "liquidity_added_usd", liquidity)
        log.info(f"[{self.name}] 💾 saved {record.token0.symbol}/{record.token1.symbol} "
                 f"{created.pool_address} ({fmt_usd(liquidity)})")
        return Outcome.ADDED

    def _token(self, address: str) -> TokenInfo:
        symbol = self.estimator.known_symbol(address)
        decimals = DEFAULT_DECIMALS
        if self.chain_client is not None:
            onchain_symbol, decimals = self.chain_client.token_metadata(address)
            symbol = symbol or onchain_symbol
        return TokenInfo(address=address, symbol=symbol or UNKNOWN_SYMBOL, decimals=decimals)

    def build_record(self, created: CreatedPool, liquidity_usd: float) -> PoolRecord:
        return PoolRecord(
            pool_address=created.pool_address,
            exchange_name=self.name,
            chain_id=self.chain_id,
            token0=self._token(created.token0),
            token1=self._token(created.token1),
            fee=created.fee,
            liquidity_usd=liquidity_usd,
            volume_24h=0.0,
            is_active=True,
            data_quality_score=DEFAULT_DATA_QUALITY_SCORE,
            last_updated_at=datetime.now(timezone.utc),
        )
