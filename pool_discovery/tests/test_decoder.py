import pytest
from hexbytes import HexBytes

from conftest import USDC, WETH, addr, v2_log, v3_log
from pool_discovery.sources.evm.decoder import decode_creation_event
from pool_discovery.sources.evm.errors import DecodeError


def test_decodes_v3_pool_created(v3_factory):
    pool = addr(0xBEEF)
    created = decode_creation_event(v3_log(WETH, USDC, 500, pool, 1234), v3_factory)

    assert created.pool_address == pool
    assert created.token0 == WETH
    assert created.token1 == USDC
    assert created.fee == 500
    assert created.block_number == 1234


def test_decodes_v2_pair_created_with_default_fee(v2_factory):
    pair = addr(0xCAFE)
    created = decode_creation_event(v2_log(WETH, USDC, pair, 77), v2_factory)

    assert created.pool_address == pair
    assert (created.token0, created.token1) == (WETH, USDC)
    assert created.fee == 3000


def test_accepts_bytes_topics_and_data(v3_factory):
    log = v3_log(WETH, USDC, 3000, addr(1), 10)
    log["topics"] = [HexBytes(t) for t in log["topics"]]
    log["data"] = HexBytes(log["data"])
    log["transactionHash"] = HexBytes(log["transactionHash"])

    created = decode_creation_event(log, v3_factory)

    assert created.fee == 3000
    assert created.tx_hash == "0x" + "ab" * 32


def test_missing_fee_topic_is_a_decode_error(v3_factory):
    log = v3_log(WETH, USDC, 3000, addr(1), 10)
    log["topics"] = log["topics"][:3]

    with pytest.raises(DecodeError):
        decode_creation_event(log, v3_factory)


def test_truncated_data_is_a_decode_error(v2_factory):
    log = v2_log(WETH, USDC, addr(2), 10)
    log["data"] = "0x1234"

    with pytest.raises(DecodeError):
        decode_creation_event(log, v2_factory)


def test_log_without_topics_is_a_decode_error(v2_factory):
    with pytest.raises(DecodeError):
        decode_creation_event({"data": "0x"}, v2_factory)
