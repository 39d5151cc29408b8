import pathlib
import threading
from collections import defaultdict

import pytest
from dotenv import load_dotenv
from eth_abi import abi
from sqlalchemy.orm import sessionmaker

# Automatically load .env from project root
load_dotenv(dotenv_path=pathlib.Path(__file__).parent.parent.parent / ".env")

from pool_discovery.config.settings import ScanConfig  # noqa: E402
from pool_discovery.sources.evm.factories import (  # noqa: E402
    FactoryDescriptor,
    PoolKind,
    PAIR_CREATED_TOPIC,
    POOL_CREATED_TOPIC,
)
from pool_discovery.storage.db import build_engine  # noqa: E402
from pool_discovery.storage.db_utils import create_tables  # noqa: E402
from pool_discovery.storage.pool_store import PoolStore  # noqa: E402
from pool_discovery.storage.progress_tracker import ProgressTracker  # noqa: E402

WETH = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"
USDC = "0xff970a61a04b1ca14834a43f5de4533ebddb5cc8"


def _topic(address: str) -> str:
    return "0x" + "0" * 24 + address.lower().replace("0x", "")


def v3_log(token0, token1, fee, pool, block, tick_spacing=60):
    return {
        "address": "0x1f98431c8ad98523631ae4a59f267346ea31f984",
        "topics": [POOL_CREATED_TOPIC, _topic(token0), _topic(token1), "0x" + fee.to_bytes(32, "big").hex()],
        "data": "0x" + abi.encode(["int24", "address"], [tick_spacing, pool]).hex(),
        "blockNumber": block,
        "transactionHash": "0x" + "ab" * 32,
        "logIndex": 0,
    }


def v2_log(token0, token1, pair, block, index=1):
    return {
        "address": "0xc35dadb65012ec5796536bd9864ed8773abc74c4",
        "topics": [PAIR_CREATED_TOPIC, _topic(token0), _topic(token1)],
        "data": "0x" + abi.encode(["address", "uint256"], [pair, index]).hex(),
        "blockNumber": block,
        "transactionHash": "0x" + "cd" * 32,
        "logIndex": 0,
    }


def addr(n: int) -> str:
    return "0x" + f"{n:040x}"


class FakeChainClient:
    """In-memory stand-in for ``ChainClient``.

    ``logs`` maps exchange name -> raw logs; ``failures`` maps
    (exchange, from_block, to_block) -> exceptions raised on successive calls.
    """

    def __init__(self, head=2_000, logs=None, failures=None, on_query=None):
        self.head = head
        self.logs = defaultdict(list, logs or {})
        self.failures = defaultdict(list, failures or {})
        self.on_query = on_query
        self.calls = []
        self.metadata_calls = []
        self._lock = threading.Lock()

    def current_height(self) -> int:
        return self.head

    def query_creation_events(self, factory, from_block, to_block):
        key = (factory.exchange_name, from_block, to_block)
        with self._lock:
            self.calls.append(key)
            pending = self.failures.get(key)
            error = pending.pop(0) if pending else None
        if self.on_query is not None:
            self.on_query(factory, from_block, to_block)
        if error is not None:
            raise error
        return [
            log for log in self.logs[factory.exchange_name]
            if from_block <= log["blockNumber"] <= to_block
        ]

    def token_metadata(self, token_address):
        with self._lock:
            self.metadata_calls.append(token_address)
        return "TKN", 6

    def ranges_for(self, exchange_name):
        return [(f, t) for name, f, t in self.calls if name == exchange_name]


@pytest.fixture
def fake_chain():
    return FakeChainClient


@pytest.fixture
def v3_factory():
    return FactoryDescriptor("test-v3", "0x1F98431c8aD98523631AE4a59f267346ea31F984", PoolKind.V3, 100)


@pytest.fixture
def v2_factory():
    return FactoryDescriptor("test-v2", "0xc35DADB65012eC5796536bD9864eD8773aBc74C4", PoolKind.V2, 500)


@pytest.fixture
def scan_config():
    return ScanConfig(
        rpc_url="http://localhost:8545",
        chain_id=42161,
        days_back=1,
        blocks_per_day=1_000,
        from_genesis=False,
        min_liquidity_usd=10_000,
        chunk_size=100,
        timeout_mode="skip",
        min_split_blocks=10,
        enabled_factories=(),
        disabled_factories=(),
        rate_limit_backoff_seconds=0,
        chunk_delay_seconds=0,
        heavy_chunk_delay_seconds=0,
        progress_flush_every=2,
        status_interval_seconds=0,
        resolve_token_metadata=False,
        end_block=1_999,
    )


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'pools.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def pool_store(session_factory):
    return PoolStore(session_factory)


@pytest.fixture
def tracker(session_factory):
    return ProgressTracker(session_factory)
