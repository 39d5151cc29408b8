from unittest.mock import MagicMock

import pytest
import requests
from hexbytes import HexBytes
from web3 import Web3
from web3.datastructures import AttributeDict

from conftest import addr
from pool_discovery.sources.evm.client import ChainClient, classify_rpc_error
from pool_discovery.sources.evm.errors import QueryTimeout, RateLimited, TransientRPCError
from pool_discovery.sources.evm.factories import POOL_CREATED_TOPIC


def http_error(status):
    response = requests.Response()
    response.status_code = status
    return requests.exceptions.HTTPError(f"{status} error", response=response)


class FakeRPCError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.rpc_response = {"error": {"code": code, "message": message}}


@pytest.mark.parametrize("exc, expected", [
    (http_error(429), RateLimited),
    (ValueError({"code": -32005, "message": "daily request count exceeded"}), RateLimited),
    (FakeRPCError(429, "Your app has exceeded its compute units per second capacity"), RateLimited),
    (Exception("Too Many Requests for url"), RateLimited),
    (requests.exceptions.ReadTimeout("read timed out"), QueryTimeout),
    (http_error(504), QueryTimeout),
    (ValueError({"code": -32000, "message": "query timeout exceeded"}), QueryTimeout),
    (http_error(500), TransientRPCError),
    (ConnectionResetError("connection reset by peer"), TransientRPCError),
])
def test_classify_rpc_error(exc, expected):
    err = classify_rpc_error(exc, 10, 20)

    assert type(err) is expected
    assert (err.from_block, err.to_block) == (10, 20)


def test_query_creation_events_filters_by_factory_and_topic(v3_factory):
    w3 = MagicMock()
    w3.eth.get_logs.return_value = [AttributeDict({
        "topics": [HexBytes(POOL_CREATED_TOPIC)],
        "data": HexBytes(b"\x00" * 64),
        "blockNumber": 1_234,
        "transactionHash": HexBytes(b"\x11" * 32),
    })]

    logs = ChainClient(w3).query_creation_events(v3_factory, 1_000, 1_999)

    w3.eth.get_logs.assert_called_once_with({
        "fromBlock": 1_000,
        "toBlock": 1_999,
        "address": Web3.to_checksum_address(v3_factory.address),
        "topics": [POOL_CREATED_TOPIC],
    })
    assert logs[0]["topics"] == [POOL_CREATED_TOPIC]
    assert logs[0]["transactionHash"] == "0x" + "11" * 32
    assert logs[0]["blockNumber"] == 1_234


def test_query_creation_events_raises_typed_errors(v3_factory):
    w3 = MagicMock()
    w3.eth.get_logs.side_effect = http_error(429)

    with pytest.raises(RateLimited) as info:
        ChainClient(w3).query_creation_events(v3_factory, 5, 6)
    assert (info.value.from_block, info.value.to_block) == (5, 6)


def test_current_height():
    w3 = MagicMock()
    w3.eth.block_number = 123_456

    assert ChainClient(w3).current_height() == 123_456


def test_token_metadata_reads_symbol_and_decimals():
    w3 = MagicMock()
    contract = w3.eth.contract.return_value
    contract.functions.symbol.return_value.call.return_value = "USD₮0"
    contract.functions.decimals.return_value.call.return_value = 6

    assert ChainClient(w3).token_metadata(addr(0x51)) == ("USDT0", 6)


def test_token_metadata_falls_back_when_calls_revert():
    w3 = MagicMock()
    contract = w3.eth.contract.return_value
    contract.functions.symbol.return_value.call.side_effect = ValueError("execution reverted")
    contract.functions.decimals.return_value.call.side_effect = ValueError("execution reverted")

    assert ChainClient(w3).token_metadata(addr(0x52)) == ("UNKNOWN", 18)


def test_failed_token_read_is_retried_later():
    w3 = MagicMock()
    symbol_call = w3.eth.contract.return_value.functions.symbol.return_value.call
    symbol_call.side_effect = [http_error(429), "ARB"]
    w3.eth.contract.return_value.functions.decimals.return_value.call.return_value = 18
    client = ChainClient(w3)

    assert client.token_metadata(addr(0x53)) == ("UNKNOWN", 18)
    assert client.token_metadata(addr(0x53)) == ("ARB", 18)


def test_successful_token_read_is_cached():
    w3 = MagicMock()
    functions = w3.eth.contract.return_value.functions
    functions.symbol.return_value.call.return_value = "GMX"
    functions.decimals.return_value.call.return_value = 18
    client = ChainClient(w3)

    client.token_metadata(addr(0x54))
    client.token_metadata(addr(0x54))

    assert functions.symbol.return_value.call.call_count == 1
    assert functions.decimals.return_value.call.call_count == 1
