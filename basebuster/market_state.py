"""Market state: the block state database kept in step with the chain."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from basebuster.pools import V2Pool, V3Pool
from basebuster.state_db import BlockStateDB, StateProvider
from basebuster.tracing import debug_trace_block

log = logging.getLogger(__name__)


class _Tracer(Protocol):
    def request(self, method: str, params: list | None = None) -> Any: ...

    def get_block_number(self) -> int: ...


@dataclass(frozen=True)
class NewBlock:
    """A new block arrived on the chain."""

    number: int


@dataclass(frozen=True)
class PoolsTouched:
    """The tracked pools whose state changed in a block."""

    pools: frozenset[str]
    block_number: int


class MarketState:
    """Holds the pool state database and applies each block's changes to it.

    ``lock`` guards every access to ``db`` from other threads.
    """

    def __init__(self, db: BlockStateDB) -> None:
        self.db = db
        self.lock = threading.RLock()

    @classmethod
    def from_pools(
        cls, pools: Iterable[V2Pool | V3Pool], provider: StateProvider
    ) -> "MarketState":
        """Build a database backed by ``provider`` and load ``pools`` into it."""
        pools = list(pools)
        log.debug("Populating the db with %d pools", len(pools))
        state = cls(BlockStateDB(provider))
        state.populate(pools)
        return state

    def populate(self, pools: Iterable[V2Pool | V3Pool]) -> None:
        """Insert each pool's state into the database."""
        with self.lock:
            for pool in pools:
                if pool.is_v2():
                    self.db.insert_v2(pool)
                elif pool.is_v3():
                    self.db.insert_v3(pool)

    def update_state(self, tracer: _Tracer, block_number: int) -> set[str]:
        """Trace ``block_number`` and apply its storage changes to tracked pools.

        Returns the addresses of the pools that were updated.
        """
        updates = debug_trace_block(tracer, block_number, True)
        updated: set[str] = set()
        with self.lock:
            for post in updates:
                for address, account_state in post.items():
                    if self.db.tracking_pool(address):
                        log.debug("Updating state for pool %s", address)
                        self.db.update_all_slots(address, account_state)
                        updated.add(address)
        return updated

    def catch_up(self, tracer: _Tracer, last_synced_block: int) -> int:
        """Process every block up to the chain head; return the last one processed."""
        current = tracer.get_block_number()
        while last_synced_block < current:
            log.debug(
                "Catching up. Last synced block %d, Current block %d",
                last_synced_block,
                current,
            )
            for number in range(last_synced_block + 1, current + 1):
                log.debug("Processing block %d", number)
                self.update_state(tracer, number)
            last_synced_block = current
            current = tracer.get_block_number()
        return last_synced_block

    def run_updater(
        self,
        tracer: _Tracer,
        blocks: Iterable[Any],
        touched: Callable[[PoolsTouched], Any],
        last_synced_block: int,
        caught_up: threading.Event,
    ) -> int:
        """Catch up, signal ``caught_up``, then apply each new block.

        Stops when ``blocks`` ends or yields something other than a
        ``NewBlock``. Each processed block's updated pools are passed to
        ``touched``. Returns the last block processed.
        """
        last_synced_block = self.catch_up(tracer, last_synced_block)
        caught_up.set()

        for event in blocks:
            if not isinstance(event, NewBlock):
                break
            start = time.monotonic()
            number = event.number
            if number <= last_synced_block:
                log.debug("Already processed block %d. Skipping", number)
                continue
            log.info("Got new block: %d", number)
            updated = self.update_state(tracer, number)
            log.info(
                "Block processed %d updates in %.3fs",
                len(updated),
                time.monotonic() - start,
            )
            try:
                touched(PoolsTouched(frozenset(updated), number))
            except Exception as exc:  # a failed hand-off must not stop the updater
                log.error("Failed to send updated pools: %s", exc)
            else:
                log.debug("Sent updated addresses for block %d", number)
            last_synced_block = number
        return last_synced_block

    def start_updater(
        self,
        tracer: _Tracer,
        blocks: Iterable[Any],
        touched: Callable[[PoolsTouched], Any],
        last_synced_block: int,
        caught_up: threading.Event,
    ) -> threading.Thread:
        """Run :meth:`run_updater` on a daemon thread and return the thread."""
        thread = threading.Thread(
            target=self.run_updater,
            args=(tracer, blocks, touched, last_synced_block, caught_up),
            name="market-state-updater",
            daemon=True,
        )
        thread.start()
        return thread