"""Storage layout of concentrated-liquidity (v3) pools."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from basebuster.hashing import address_to_word, mapping_slot, word_to_address
from basebuster.pools import V3Pool

log = logging.getLogger(__name__)

SLOT0_SLOT = 0
LIQUIDITY_SLOT = 4
TICKS_SLOT = 5
TICK_BITMAP_SLOT = 6
TICK_SPACING_SLOT = 14

_MASK160 = (1 << 160) - 1
_MASK24 = (1 << 24) - 1
_MASK16 = (1 << 16) - 1
_MASK8 = (1 << 8) - 1
_U128_MAX = (1 << 128) - 1
_I32_MAX = (1 << 31) - 1


def _key(address: str) -> str:
    return word_to_address(address_to_word(address))


def _check_range(name: str, value: int, bits: int) -> None:
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise ValueError(f"{name} {value} does not fit in int{bits}")


@dataclass(frozen=True)
class Slot0:
    """The decoded slot0 word of a v3 pool."""

    sqrt_price_x96: int
    tick: int
    observation_index: int
    observation_cardinality: int
    observation_cardinality_next: int
    fee_protocol: int
    unlocked: bool


class V3StateMixin:
    """Reads and writes v3 pool state in a block state database.

    The host class provides ``add_pool(pool)``, ``storage_ref(address, slot)``,
    ``_put_slot(address, slot, value)`` and ``_cached_slot(address, slot)``.
    ``_put_slot`` stores a custom value in an account already held;
    ``_cached_slot`` returns a value held locally. Both raise ``KeyError``
    when the account or slot is missing.
    """

    def insert_v3(self, pool: V3Pool) -> None:
        """Track ``pool`` and write its price, liquidity and ticks into storage."""
        if not isinstance(pool, V3Pool):
            raise TypeError(f"expected a v3 pool, got {type(pool).__name__}")
        log.debug("Adding new v3 pool %s", pool.address)
        self.add_pool(pool)
        self.insert_slot0(pool.address, pool.sqrt_price, pool.tick)
        self.insert_liquidity(pool.address, pool.liquidity)
        self.insert_tick_spacing(pool.address, pool.tick_spacing)
        for tick, info in pool.ticks.items():
            self.insert_tick_liquidity_net(pool.address, tick, info.liquidity_net)
        for word_pos, bitmap in pool.tick_bitmap.items():
            self.insert_tick_bitmap(pool.address, word_pos, bitmap)

    def insert_tick_bitmap(self, pool: str, word_pos: int, bitmap: int) -> None:
        _check_range("word position", word_pos, 16)
        if not 0 <= bitmap < 1 << 256:
            raise ValueError("bitmap out of 256-bit range")
        self._put_slot(_key(pool), mapping_slot(word_pos, TICK_BITMAP_SLOT), bitmap)

    def insert_liquidity(self, pool: str, liquidity: int) -> None:
        if not 0 <= liquidity <= _U128_MAX:
            raise ValueError(f"liquidity {liquidity} does not fit in uint128")
        self._put_slot(_key(pool), LIQUIDITY_SLOT, liquidity)

    def insert_tick_liquidity_net(self, pool: str, tick: int, liquidity_net: int) -> None:
        """Store a tick's net liquidity in the upper 128 bits of its tick word."""
        _check_range("tick", tick, 32)
        _check_range("liquidity net", liquidity_net, 128)
        unsigned = liquidity_net & _U128_MAX
        self._put_slot(_key(pool), mapping_slot(tick, TICKS_SLOT), unsigned << 128)

    def insert_slot0(self, pool: str, sqrt_price: int, tick: int) -> None:
        """Store price and tick, with zeroed observations and the pool unlocked."""
        if not 0 <= sqrt_price <= _MASK160:
            raise ValueError(f"sqrt price {sqrt_price} does not fit in uint160")
        _check_range("tick", tick, 32)
        value = sqrt_price | ((tick & _MASK24) << 160) | (1 << (160 + 24 + 16 + 16 + 16 + 8))
        self._put_slot(_key(pool), SLOT0_SLOT, value)

    def insert_tick_spacing(self, pool: str, tick_spacing: int) -> None:
        if tick_spacing < 0:
            raise ValueError("tick spacing must not be negative")
        self._put_slot(_key(pool), TICK_SPACING_SLOT, tick_spacing)

    def tick_spacing(self, address: str) -> int:
        return min(self._cached_slot(_key(address), TICK_SPACING_SLOT), _I32_MAX)

    def slot0(self, address: str) -> Slot0:
        """Decode the pool's slot0 word."""
        cell = self._cached_slot(_key(address), SLOT0_SLOT)
        raw_tick = (cell >> 160) & _MASK24
        tick = raw_tick - (1 << 24) if raw_tick & (1 << 23) else raw_tick
        return Slot0(
            sqrt_price_x96=cell & _MASK160,
            tick=tick,
            observation_index=(cell >> (160 + 24)) & _MASK16,
            observation_cardinality=(cell >> (160 + 24 + 16)) & _MASK16,
            observation_cardinality_next=(cell >> (160 + 24 + 16 + 16)) & _MASK16,
            fee_protocol=(cell >> (160 + 24 + 16 + 16 + 16)) & _MASK8,
            unlocked=bool((cell >> (160 + 24 + 16 + 16 + 16 + 8)) & 1),
        )

    def liquidity(self, address: str) -> int:
        return min(self._cached_slot(_key(address), LIQUIDITY_SLOT), _U128_MAX)

    def ticks_liquidity_net(self, address: str, tick: int) -> int:
        """Return the signed net liquidity of ``tick``."""
        _check_range("tick", tick, 32)
        cell = self.storage_ref(_key(address), mapping_slot(tick, TICKS_SLOT))
        unsigned = (cell >> 128) & _U128_MAX
        return unsigned - (1 << 128) if unsigned >> 127 else unsigned

    def tick_bitmap(self, address: str, word_pos: int) -> int:
        _check_range("word position", word_pos, 16)
        return self.storage_ref(_key(address), mapping_slot(word_pos, TICK_BITMAP_SLOT))