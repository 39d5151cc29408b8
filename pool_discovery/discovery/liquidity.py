from typing import Dict, Mapping, Optional, Protocol, Tuple

from pool_discovery.utils.constants import DEFAULT_LIQUIDITY_FLOOR_USD, KNOWN_TOKEN_LIQUIDITY


class LiquidityEstimator(Protocol):
    def estimate(self, token0: str, token1: str) -> float:
        ...

    def known_symbol(self, token: str) -> Optional[str]:
        ...


class StaticTableEstimator:
    """Coarse USD liquidity guess from a fixed address -> (symbol, usd) table.

    Not a price oracle: a pool is worth the larger of its two tokens' table
    values, with any unrecognised token counted at ``default_floor_usd``.
    Swap in a real oracle by implementing ``LiquidityEstimator``.
    """

    def __init__(
        self,
        table: Mapping[str, Tuple[str, float]] = None,
        default_floor_usd: float = DEFAULT_LIQUIDITY_FLOOR_USD,
    ):
        table = KNOWN_TOKEN_LIQUIDITY if table is None else table
        self.table: Dict[str, Tuple[str, float]] = {k.lower(): v for k, v in table.items()}
        self.default_floor_usd = float(default_floor_usd)

    def _value(self, token: str) -> float:
        entry = self.table.get(token.lower())
        return float(entry[1]) if entry else self.default_floor_usd

    def estimate(self, token0: str, token1: str) -> float:
        return max(self._value(token0), self._value(token1))

    def known_symbol(self, token: str) -> Optional[str]:
        entry = self.table.get(token.lower())
        return entry[0] if entry else None
