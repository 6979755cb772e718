"""Storage layout of constant-product (v2) pools."""

from __future__ import annotations

import logging

from basebuster.hashing import address_to_word, word_to_address
from basebuster.pools import V2Pool

log = logging.getLogger(__name__)

RESERVES_SLOT = 8
TOKEN0_SLOT = 6
TOKEN1_SLOT = 7

_U112_MASK = (1 << 112) - 1
_U256_MASK = (1 << 256) - 1


def _key(address: str) -> str:
    return word_to_address(address_to_word(address))


class V2StateMixin:
    """Reads and writes v2 pool state in a block state database.

    The host class provides ``add_pool(pool)``, ``storage_ref(address, slot)``
    and ``_put_slot(address, slot, value)``; the last stores a custom slot
    value in an account that is already held and raises ``KeyError`` when the
    account is not.
    """

    def insert_v2(self, pool: V2Pool) -> None:
        """Track ``pool`` and write its reserves and tokens into storage."""
        if not isinstance(pool, V2Pool):
            raise TypeError(f"expected a v2 pool, got {type(pool).__name__}")
        log.debug("Adding new v2 pool %s", pool.address)
        self.add_pool(pool)
        self.insert_reserves(pool.address, pool.token0_reserves, pool.token1_reserves)
        self.insert_token0(pool.address, pool.token0)
        self.insert_token1(pool.address, pool.token1)

    def get_reserves(self, pool: str) -> tuple[int, int]:
        """Return the pool's (reserve0, reserve1)."""
        value = self.storage_ref(_key(pool), RESERVES_SLOT)
        return value & _U112_MASK, (value >> 112) & _U112_MASK

    def get_token0(self, pool: str) -> str:
        return word_to_address(self.storage_ref(_key(pool), TOKEN0_SLOT))

    def get_token1(self, pool: str) -> str:
        return word_to_address(self.storage_ref(_key(pool), TOKEN1_SLOT))

    def insert_reserves(self, pool: str, reserve0: int, reserve1: int) -> None:
        """Pack both reserves into the reserves slot."""
        if reserve0 < 0 or reserve1 < 0:
            raise ValueError("reserves must not be negative")
        packed = ((reserve1 << 112) | reserve0) & _U256_MASK
        log.debug("V2 Database: Inserting reserves for %s", pool)
        self._put_slot(_key(pool), RESERVES_SLOT, packed)

    def insert_token0(self, pool: str, token: str) -> None:
        log.debug("V2 Database: Inserting token 0 for %s", pool)
        self._put_slot(_key(pool), TOKEN0_SLOT, address_to_word(token))

    def insert_token1(self, pool: str, token: str) -> None:
        log.debug("V2 Database: Inserting token 1 for %s", pool)
        self._put_slot(_key(pool), TOKEN1_SLOT, address_to_word(token))