from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from eth_utils import event_abi_to_log_topic

from pool_discovery.utils.constants import V2_DEFAULT_FEE


class PoolKind(str, Enum):
    V2 = "v2"   # fixed fee, PairCreated
    V3 = "v3"   # variable fee tier, PoolCreated


# PoolCreated(address indexed token0, address indexed token1,
#             uint24 indexed fee, int24 tickSpacing, address pool)
POOL_CREATED_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "token0", "type": "address"},
        {"indexed": True, "internalType": "address", "name": "token1", "type": "address"},
        {"indexed": True, "internalType": "uint24", "name": "fee", "type": "uint24"},
        {"indexed": False, "internalType": "int24", "name": "tickSpacing", "type": "int24"},
        {"indexed": False, "internalType": "address", "name": "pool", "type": "address"},
    ],
    "name": "PoolCreated",
    "type": "event",
}

# PairCreated(address indexed token0, address indexed token1, address pair, uint256)
PAIR_CREATED_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "token0", "type": "address"},
        {"indexed": True, "internalType": "address", "name": "token1", "type": "address"},
        {"indexed": False, "internalType": "address", "name": "pair", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "", "type": "uint256"},
    ],
    "name": "PairCreated",
    "type": "event",
}

POOL_CREATED_TOPIC = "0x" + event_abi_to_log_topic(POOL_CREATED_ABI).hex()
PAIR_CREATED_TOPIC = "0x" + event_abi_to_log_topic(PAIR_CREATED_ABI).hex()


@dataclass(frozen=True)
class FactoryDescriptor:
    exchange_name: str
    address: str
    pool_kind: PoolKind
    deployment_block: int = 0
    default_fee: int = V2_DEFAULT_FEE

    @property
    def event_abi(self) -> dict:
        return POOL_CREATED_ABI if self.pool_kind is PoolKind.V3 else PAIR_CREATED_ABI

    @property
    def event_name(self) -> str:
        return self.event_abi["name"]

    @property
    def event_topic(self) -> str:
        return POOL_CREATED_TOPIC if self.pool_kind is PoolKind.V3 else PAIR_CREATED_TOPIC


ARBITRUM_FACTORIES: Dict[str, FactoryDescriptor] = {
    f.exchange_name: f
    for f in (
        FactoryDescriptor("uniswap-v3", "0x1F98431c8aD98523631AE4a59f267346ea31F984", PoolKind.V3, 165),
        FactoryDescriptor("uniswap-v2", "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f", PoolKind.V2, 1_000_000),
        FactoryDescriptor("pancakeswap-v3", "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865", PoolKind.V3, 58_000_000),
        FactoryDescriptor("pancakeswap-v2", "0x02a84c1b3BBD7401a5f7fa98a384EBC70bB5749E", PoolKind.V2, 50_000_000),
        FactoryDescriptor("sushiswap", "0xc35DADB65012eC5796536bD9864eD8773aBc74C4", PoolKind.V2, 2_000_000),
        FactoryDescriptor("camelot-v3", "0x1a3c9B1d2F0529D97f2afC5136Cc23e58f1FD35B", PoolKind.V3, 0),
        FactoryDescriptor("camelot-v2", "0x6EcCab422D763aC031210895C81787E87B43A652", PoolKind.V2, 0),
        FactoryDescriptor("ramses", "0xAAA20D08e59F6561f242b08513D36266C5A29415", PoolKind.V2, 0),
    )
}


def select_factories(config, registry: Dict[str, FactoryDescriptor] = None) -> List[FactoryDescriptor]:
    """Factories of ``registry`` that the run configuration leaves enabled."""
    registry = ARBITRUM_FACTORIES if registry is None else registry
    unknown = set(config.enabled_factories) - set(registry)
    if unknown:
        raise ValueError(f"Unknown factories: {', '.join(sorted(unknown))}")
    return [f for name, f in registry.items() if config.factory_enabled(name)]
