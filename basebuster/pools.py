"""Pool kinds and pool snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from basebuster.hashing import address_to_word, word_to_address


def _normalize(address: str) -> str:
    return word_to_address(address_to_word(address))


class PoolType(Enum):
    """The exchange protocol a pool belongs to."""

    UNISWAP_V2 = "UniswapV2"
    PANCAKESWAP_V2 = "PancakeSwapV2"
    SUSHISWAP_V2 = "SushiSwapV2"
    BASESWAP_V2 = "BaseSwapV2"
    ALIENBASE_V2 = "AlienBaseV2"
    SWAPBASED_V2 = "SwapBasedV2"
    DACKIESWAP_V2 = "DackieSwapV2"
    AERODROME = "Aerodrome"
    UNISWAP_V3 = "UniswapV3"
    SUSHISWAP_V3 = "SushiSwapV3"
    PANCAKESWAP_V3 = "PancakeSwapV3"
    BASESWAP_V3 = "BaseSwapV3"
    ALIENBASE_V3 = "AlienBaseV3"
    SWAPBASED_V3 = "SwapBasedV3"
    DACKIESWAP_V3 = "DackieSwapV3"
    SLIPSTREAM = "Slipstream"

    def is_v3(self) -> bool:
        """True for concentrated-liquidity pools."""
        return self in _V3_TYPES

    def is_v2(self) -> bool:
        """True for constant-product pools."""
        return not self.is_v3()


_V3_TYPES = frozenset(
    {
        PoolType.UNISWAP_V3,
        PoolType.SUSHISWAP_V3,
        PoolType.PANCAKESWAP_V3,
        PoolType.BASESWAP_V3,
        PoolType.ALIENBASE_V3,
        PoolType.SWAPBASED_V3,
        PoolType.DACKIESWAP_V3,
        PoolType.SLIPSTREAM,
    }
)


@dataclass(frozen=True)
class TickInfo:
    """Liquidity data of an initialised tick."""

    liquidity_net: int
    initialized: bool
    liquidity_gross: int


@dataclass
class V2Pool:
    """Snapshot of a constant-product pool."""

    address: str
    token0: str
    token1: str
    token0_name: str
    token1_name: str
    token0_decimals: int
    token1_decimals: int
    token0_reserves: int
    token1_reserves: int
    stable: bool | None = None
    fee: int | None = None
    pool_type: PoolType = PoolType.UNISWAP_V2

    def __post_init__(self) -> None:
        if not self.pool_type.is_v2():
            raise ValueError(f"{self.pool_type.value} is not a v2 pool type")
        self.address = _normalize(self.address)
        self.token0 = _normalize(self.token0)
        self.token1 = _normalize(self.token1)

    def is_v2(self) -> bool:
        return True

    def is_v3(self) -> bool:
        return False


@dataclass
class V3Pool:
    """Snapshot of a concentrated-liquidity pool."""

    address: str
    token0: str
    token1: str
    token0_name: str
    token1_name: str
    token0_decimals: int
    token1_decimals: int
    liquidity: int
    sqrt_price: int
    fee: int
    tick: int
    tick_spacing: int
    tick_bitmap: dict[int, int] = field(default_factory=dict)
    ticks: dict[int, TickInfo] = field(default_factory=dict)
    pool_type: PoolType = PoolType.UNISWAP_V3

    def __post_init__(self) -> None:
        if not self.pool_type.is_v3():
            raise ValueError(f"{self.pool_type.value} is not a v3 pool type")
        self.address = _normalize(self.address)
        self.token0 = _normalize(self.token0)
        self.token1 = _normalize(self.token1)

    def is_v2(self) -> bool:
        return False

    def is_v3(self) -> bool:
        return True