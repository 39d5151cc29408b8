from web3 import Web3, HTTPProvider
import backoff
import logging
import threading
import requests
from functools import lru_cache
from typing import Dict, List, Tuple

from pool_discovery.config.settings import RPC_TIMEOUT_SECONDS
from pool_discovery.sources.evm.errors import (
    ChainClientError,
    QueryTimeout,
    RateLimited,
    TransientRPCError,
)
from pool_discovery.sources.evm.factories import FactoryDescriptor
from pool_discovery.utils.clean_util import clean_symbol
from pool_discovery.utils.constants import DEFAULT_DECIMALS, UNKNOWN_SYMBOL
from pool_discovery.utils.log_utils import sanitize_log

logger = logging.getLogger(__name__)

ERC20_META_ABI = [
    { "name": "decimals", "outputs": [ { "type": "uint8" } ],
      "inputs": [], "stateMutability": "view", "type": "function"},
    { "name": "symbol", "outputs": [ { "type": "string" } ],
      "inputs": [], "stateMutability": "view", "type": "function"},
]

# JSON-RPC error codes providers use for throughput exhaustion
RATE_LIMIT_CODES = {-32005, 429}
RATE_LIMIT_MARKERS = ("429", "rate limit", "compute units", "too many requests", "limit exceeded")
TIMEOUT_MARKERS = ("query timeout", "timed out", "timeout")

# Cache of Web3 clients per RPC URL
_web3_clients: Dict[str, Web3] = {}
_clients_lock = threading.Lock()


@backoff.on_exception(backoff.expo, ConnectionError, max_tries=5, jitter=None)
def _create_web3_client(rpc_url: str) -> Web3:
    logger.info(f"Connecting to RPC: {rpc_url}")
    w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": RPC_TIMEOUT_SECONDS}))

    if not w3.is_connected():
        raise ConnectionError(f"Failed to connect to RPC: {rpc_url}")

    logger.info(f"Connected to {rpc_url} ✅")
    return w3


def get_web3_client(rpc_url: str) -> Web3:
    """Returns a cached or newly created Web3 client for a given RPC URL."""
    with _clients_lock:
        if rpc_url not in _web3_clients:
            _web3_clients[rpc_url] = _create_web3_client(rpc_url)
        return _web3_clients[rpc_url]


def _rpc_error_payload(exc: Exception):
    """Pull ``{"code": .., "message": ..}`` out of a web3 RPC error, if any."""
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            return arg
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        return rpc_response["error"]
    return None


def classify_rpc_error(exc: Exception, from_block=None, to_block=None) -> ChainClientError:
    """Map whatever the provider stack raised onto the typed error taxonomy."""
    if isinstance(exc, ChainClientError):
        return exc

    if isinstance(exc, requests.exceptions.Timeout):
        return QueryTimeout(str(exc), from_block, to_block)

    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        if exc.response.status_code == 429:
            return RateLimited(str(exc), from_block, to_block)
        if exc.response.status_code in (408, 504):
            return QueryTimeout(str(exc), from_block, to_block)

    payload = _rpc_error_payload(exc)
    if payload is not None and payload.get("code") in RATE_LIMIT_CODES:
        return RateLimited(str(payload.get("message", exc)), from_block, to_block)

    message = str(payload.get("message", "")) if payload else str(exc)
    lowered = message.lower()
    if any(marker in lowered for marker in RATE_LIMIT_MARKERS):
        return RateLimited(message, from_block, to_block)
    if isinstance(exc, TimeoutError) or any(marker in lowered for marker in TIMEOUT_MARKERS):
        return QueryTimeout(message, from_block, to_block)
    return TransientRPCError(message or repr(exc), from_block, to_block)


class ChainClient:
    """Read-only chain access shared by every scan task.

    web3's HTTPProvider keeps one ``requests`` session per thread, so a
    single instance may be used from all scan threads at once.
    """

    def __init__(self, w3: Web3):
        self.w3 = w3

    @classmethod
    def from_rpc_url(cls, rpc_url: str) -> "ChainClient":
        try:
            return cls(get_web3_client(rpc_url))
        except ConnectionError as exc:
            raise TransientRPCError(str(exc)) from exc

    @backoff.on_exception(backoff.expo, TransientRPCError, max_tries=3, jitter=None)
    def current_height(self) -> int:
        try:
            return self.w3.eth.block_number
        except Exception as exc:
            err = classify_rpc_error(exc)
            raise TransientRPCError(str(err)) from exc

    def query_creation_events(
        self,
        factory: FactoryDescriptor,
        from_block: int,
        to_block: int,
    ) -> List[dict]:
        """Creation logs emitted by ``factory`` in [from_block, to_block]."""
        try:
            logs = self.w3.eth.get_logs({
                "fromBlock": from_block,
                "toBlock": to_block,
                "address": Web3.to_checksum_address(factory.address),
                "topics": [factory.event_topic],
            })
        except Exception as exc:
            raise classify_rpc_error(exc, from_block, to_block) from exc
        return [sanitize_log(log) for log in logs]

    def token_metadata(self, token_address: str) -> Tuple[str, int]:
        """ERC-20 symbol and decimals, UNKNOWN / 18 for whatever the token does not answer.

        Fallbacks are never cached, so a token that failed on a rate-limited
        call is read again the next time it shows up.
        """
        try:
            symbol = _token_symbol(self.w3, token_address)
        except Exception as exc:
            logger.debug(f"symbol() failed for {token_address}: {exc}")
            symbol = UNKNOWN_SYMBOL
        try:
            decimals = _token_decimals(self.w3, token_address)
        except Exception as exc:
            logger.debug(f"decimals() failed for {token_address}: {exc}")
            decimals = DEFAULT_DECIMALS
        return symbol, decimals


def _erc20(w3: Web3, token_addr: str):
    return w3.eth.contract(address=Web3.to_checksum_address(token_addr), abi=ERC20_META_ABI)


# lru_cache only keeps returned values; a raising call is retried next time
@lru_cache(maxsize=4096)
def _token_symbol(w3: Web3, token_addr: str) -> str:
    return clean_symbol(_erc20(w3, token_addr).functions.symbol().call())


@lru_cache(maxsize=4096)
def _token_decimals(w3: Web3, token_addr: str) -> int:
    return int(_erc20(w3, token_addr).functions.decimals().call())
