# --------------------------------------------------------------
# Decode factory "pool created" logs (Uni V2 PairCreated / V3 PoolCreated)
# --------------------------------------------------------------
from dataclasses import dataclass
from typing import Optional

from eth_abi import abi
from hexbytes import HexBytes

from pool_discovery.sources.evm.errors import DecodeError
from pool_discovery.sources.evm.factories import FactoryDescriptor, PoolKind
from pool_discovery.utils.clean_util import normalize_address


@dataclass(frozen=True)
class CreatedPool:
    pool_address: str
    token0: str
    token1: str
    fee: int
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return bytes(HexBytes(value))
    return bytes(value)


def _topic_address(topic) -> str:
    raw = _as_bytes(topic)
    if len(raw) != 32:
        raise DecodeError(f"topic is {len(raw)} bytes, expected 32")
    return normalize_address(raw[-20:])


def decode_creation_event(log: dict, factory: FactoryDescriptor) -> CreatedPool:
    """Turn one raw factory log into a ``CreatedPool``.

    V3 factories index token0, token1 and the fee tier; tickSpacing and the
    pool address sit in ``data``. V2 factories index the two tokens and put
    (pair, allPairsLength) in ``data``; the factory's default fee is used.

    Raises ``DecodeError`` for anything that does not fit the shape.
    """
    try:
        topics = log["topics"]
        data = _as_bytes(log["data"])
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeError(f"malformed log: {exc}") from exc

    expected_topics = 4 if factory.pool_kind is PoolKind.V3 else 3
    if len(topics) < expected_topics:
        raise DecodeError(
            f"{factory.event_name} needs {expected_topics} topics, got {len(topics)}"
        )

    try:
        token0 = _topic_address(topics[1])
        token1 = _topic_address(topics[2])
        if factory.pool_kind is PoolKind.V3:
            fee = int.from_bytes(_as_bytes(topics[3]), "big")
            _tick_spacing, pool = abi.decode(["int24", "address"], data)
        else:
            fee = factory.default_fee
            pool, _pair_index = abi.decode(["address", "uint256"], data)
    except DecodeError:
        raise
    except Exception as exc:
        raise DecodeError(f"cannot decode {factory.event_name}: {exc}") from exc

    tx_hash = log.get("transactionHash")
    if isinstance(tx_hash, (bytes, bytearray)):
        tx_hash = "0x" + bytes(tx_hash).hex()

    return CreatedPool(
        pool_address=normalize_address(pool),
        token0=token0,
        token1=token1,
        fee=fee,
        block_number=log.get("blockNumber"),
        tx_hash=tx_hash,
    )
