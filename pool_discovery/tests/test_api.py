import pytest
from fastapi.testclient import TestClient

from conftest import USDC, WETH, addr
from pool_discovery.main import app
from pool_discovery.storage.db import get_db
from pool_discovery.utils.types import PoolRecord, ScanProgress, TokenInfo


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed_pool(pool_store, pool, exchange, liquidity):
    pool_store.upsert(PoolRecord(
        pool_address=pool,
        exchange_name=exchange,
        chain_id=42161,
        token0=TokenInfo(WETH, "WETH", 18),
        token1=TokenInfo(USDC, "USDC", 6),
        fee=500,
        liquidity_usd=liquidity,
    ))


def test_root(client):
    assert client.get("/api/").json() == {"message": "Pool discovery API"}


def test_list_pools(client, pool_store):
    seed_pool(pool_store, addr(1), "uniswap-v3", 50_000)
    seed_pool(pool_store, addr(2), "sushiswap", 30_000)

    body = client.get("/api/pools").json()

    assert [p["pool_address"] for p in body] == [addr(1), addr(2)]
    assert body[0]["token0_symbol"] == "WETH"
    assert body[0]["data_quality_score"] == 75.0


def test_list_pools_filters(client, pool_store):
    seed_pool(pool_store, addr(1), "uniswap-v3", 50_000)
    seed_pool(pool_store, addr(2), "sushiswap", 30_000)

    by_exchange = client.get("/api/pools", params={"exchange": "sushiswap"}).json()
    rich = client.get("/api/pools", params={"min_liquidity": 40_000}).json()

    assert [p["pool_address"] for p in by_exchange] == [addr(2)]
    assert [p["pool_address"] for p in rich] == [addr(1)]


def test_list_pools_rejects_bad_limit(client):
    assert client.get("/api/pools", params={"limit": 0}).status_code == 422


def test_scan_progress(client, tracker):
    tracker.upsert(ScanProgress("camelot-v3", 42161, 1_000, 1_500, 2_000, total_events_scanned=12))

    body = client.get("/api/scan-progress").json()

    assert body == [{
        "exchange_name": "camelot-v3",
        "chain_id": 42161,
        "start_block": 1_000,
        "current_block": 1_500,
        "end_block": 2_000,
        "completion_percent": 50.0,
        "completed": False,
        "total_events_scanned": 12,
        "pools_found": 0,
        "pools_added": 0,
    }]
