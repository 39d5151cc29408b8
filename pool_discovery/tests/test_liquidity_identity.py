import threading

from conftest import USDC, WETH, addr
from pool_discovery.discovery.identity import PoolIdentitySet
from pool_discovery.discovery.liquidity import StaticTableEstimator


def test_pool_is_worth_its_richer_token():
    estimator = StaticTableEstimator()

    assert estimator.estimate(WETH, USDC) == 50_000
    assert estimator.estimate(USDC, WETH) == 50_000


def test_unknown_tokens_fall_back_to_floor():
    estimator = StaticTableEstimator(default_floor_usd=1_000)

    assert estimator.estimate(addr(1), addr(2)) == 1_000
    assert estimator.estimate(addr(1), USDC) == 30_000


def test_table_lookup_ignores_address_case():
    estimator = StaticTableEstimator({WETH.upper().replace("0X", "0x"): ("WETH", 42.0)})

    assert estimator.estimate(WETH, addr(3)) == 15_000
    assert estimator.known_symbol(WETH) == "WETH"
    assert estimator.known_symbol(addr(3)) is None


def test_identity_set_is_case_insensitive():
    identities = PoolIdentitySet(["0xABCDEF0000000000000000000000000000000001"])

    assert "0xabcdef0000000000000000000000000000000001" in identities
    assert len(identities) == 1

    identities.add("0xABCDEF0000000000000000000000000000000001")
    assert len(identities) == 1


def test_identity_set_concurrent_adds():
    identities = PoolIdentitySet()

    def worker(offset):
        for i in range(200):
            identities.add(addr(offset * 1000 + i))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(identities) == 800
