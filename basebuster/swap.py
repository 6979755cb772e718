"""Arbitrage paths and the quoter's swap parameters."""

from __future__ import annotations

from dataclasses import dataclass, field

from basebuster.hashing import address_to_word, word_to_address
from basebuster.pools import PoolType

AMOUNT = 10**15
"""Input amount a path is first evaluated with."""


@dataclass(frozen=True)
class SwapStep:
    """A single swap through one pool."""

    pool_address: str
    token_in: str
    token_out: str
    protocol: PoolType
    fee: int

    def __post_init__(self) -> None:
        for name in ("pool_address", "token_in", "token_out"):
            value = getattr(self, name)
            object.__setattr__(self, name, word_to_address(address_to_word(value)))


@dataclass(frozen=True)
class SwapPath:
    """A cycle of swap steps together with its identifying hash."""

    steps: tuple[SwapStep, ...]
    hash: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))


@dataclass
class SwapParams:
    """Pools, their versions (0 for v2, 1 for v3) and the input amount."""

    pools: list[str] = field(default_factory=list)
    pool_versions: list[int] = field(default_factory=list)
    amount_in: int = AMOUNT

    @classmethod
    def from_path(cls, path: SwapPath) -> "SwapParams":
        """Build parameters for ``path`` with the default input amount."""
        return cls(
            pools=[step.pool_address for step in path.steps],
            pool_versions=[1 if step.protocol.is_v3() else 0 for step in path.steps],
            amount_in=AMOUNT,
        )