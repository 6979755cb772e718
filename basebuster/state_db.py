"""Block state database: accounts, code and storage backed by a node."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from basebuster.hashing import address_to_word, keccak256, word_to_address
from basebuster.pools import V2Pool, V3Pool
from basebuster.rpc import RpcError
from basebuster.tracing import TracedAccount
from basebuster.v2_state import V2StateMixin
from basebuster.v3_state import V3StateMixin

log = logging.getLogger(__name__)

KECCAK_EMPTY = keccak256(b"")
"""Hash of empty code."""

ZERO_HASH = bytes(32)

_FETCH_ERRORS = (RpcError, OSError, ValueError)


def _key(address: str) -> str:
    return word_to_address(address_to_word(address))


class InsertionType(Enum):
    """Where a value in the database came from."""

    CUSTOM = "custom"
    ONCHAIN = "onchain"


class AccountStatus(Enum):
    """Lifecycle state of an account held in the database."""

    NOT_EXISTING = "not_existing"
    TOUCHED = "touched"
    STORAGE_CLEARED = "storage_cleared"
    NONE = "none"


@dataclass
class AccountInfo:
    """Balance, nonce and code of an account."""

    balance: int = 0
    nonce: int = 0
    code_hash: bytes = KECCAK_EMPTY
    code: bytes | None = b""


@dataclass(frozen=True)
class StorageSlot:
    """A storage value and where it came from."""

    value: int
    insertion_type: InsertionType = InsertionType.ONCHAIN


@dataclass
class DBAccount:
    """An account as held by the database."""

    info: AccountInfo = field(default_factory=AccountInfo)
    state: AccountStatus = AccountStatus.NONE
    storage: dict[int, StorageSlot] = field(default_factory=dict)
    insertion_type: InsertionType = InsertionType.ONCHAIN


@dataclass
class AccountChange:
    """The outcome of executing a transaction for one account.

    ``storage`` maps each changed slot to its present value.
    """

    info: AccountInfo = field(default_factory=AccountInfo)
    storage: dict[int, int] = field(default_factory=dict)
    touched: bool = True
    selfdestructed: bool = False
    created: bool = False

    def is_touched(self) -> bool:
        return self.touched


class StateProvider(Protocol):
    """Source of on-chain state for accounts the database does not hold."""

    def get_transaction_count(self, address: str) -> int: ...

    def get_balance(self, address: str) -> int: ...

    def get_code(self, address: str) -> bytes: ...

    def get_storage_at(self, address: str, slot: int) -> int: ...

    def get_block_hash(self, number: int) -> bytes | None: ...


class BlockStateDB(V2StateMixin, V3StateMixin):
    """Local cache of chain state with the pools of the working set."""

    def __init__(self, provider: StateProvider) -> None:
        self.provider = provider
        self.accounts: dict[str, DBAccount] = {}
        self.contracts: dict[bytes, bytes] = {KECCAK_EMPTY: b"", ZERO_HASH: b""}
        self.block_hashes: dict[int, bytes] = {}
        self.pools: set[str] = set()
        self.pool_info: dict[str, V2Pool | V3Pool] = {}

    # working set

    def add_pool(self, pool: V2Pool | V3Pool) -> None:
        """Track ``pool`` and load its on-chain account."""
        address = _key(pool.address)
        log.debug("Adding pool %s to database", address)
        self.pools.add(address)
        self.pool_info[address] = pool
        info = self.basic_ref(address)
        if info is None:
            raise RpcError(f"unable to fetch account {address}")
        self.accounts[address] = DBAccount(info=info, insertion_type=InsertionType.ONCHAIN)

    def get_pool(self, pool_address: str) -> V2Pool | V3Pool:
        return self.pool_info[_key(pool_address)]

    def tracking_pool(self, pool: str) -> bool:
        return _key(pool) in self.pools

    def zero_to_one(self, pool: str, token_in: str) -> bool | None:
        """True if ``token_in`` is the pool's token0; None for unknown pools."""
        info = self.pool_info.get(_key(pool))
        if info is None:
            return None
        return info.token0 == _key(token_in)

    def update_all_slots(self, address: str, account_state: TracedAccount) -> None:
        """Apply traced storage values to an account the database holds."""
        account = self.accounts.get(_key(address))
        if account is None:
            return
        for slot, value in account_state.storage.items():
            account.storage[slot] = StorageSlot(value, InsertionType.CUSTOM)

    # insertion

    def insert_account_info(
        self, address: str, info: AccountInfo, insertion_type: InsertionType
    ) -> None:
        self.accounts[_key(address)] = DBAccount(
            info=info,
            state=AccountStatus.NOT_EXISTING,
            insertion_type=insertion_type,
        )

    def insert_account_storage(
        self, address: str, slot: int, value: int, insertion_type: InsertionType
    ) -> None:
        """Set a storage slot, fetching the account first if it is not held."""
        key = _key(address)
        account = self.accounts.get(key)
        if account is None:
            info = self.basic(key)
            self.insert_account_info(key, info, insertion_type)
            account = self.accounts[key]
        account.storage[slot] = StorageSlot(value, InsertionType.CUSTOM)

    def _put_slot(self, address: str, slot: int, value: int) -> None:
        self.accounts[_key(address)].storage[slot] = StorageSlot(value, InsertionType.CUSTOM)

    def _cached_slot(self, address: str, slot: int) -> int:
        return self.accounts[_key(address)].storage[slot].value

    # caching reads

    def basic(self, address: str) -> AccountInfo:
        """Return account info, fetching and caching it if not held."""
        key = _key(address)
        account = self.accounts.get(key)
        if account is not None:
            return account.info
        info = self.basic_ref(key)
        if info is None:
            raise RpcError(f"unable to fetch account {key}")
        self.insert_account_info(key, info, InsertionType.ONCHAIN)
        return info

    def code_by_hash(self, code_hash: bytes) -> bytes:
        code = self.contracts.get(code_hash)
        if code is not None:
            return code
        code = self.code_by_hash_ref(code_hash)
        self.contracts[code_hash] = code
        return code

    def storage(self, address: str, index: int) -> int:
        """Return a storage value, fetching and caching it if not held."""
        key = _key(address)
        account = self.accounts.get(key)
        if account is not None and index in account.storage:
            return account.storage[index].value
        value = self.storage_ref(key, index)
        if key not in self.accounts:
            self.basic(key)
        self.accounts[key].storage[index] = StorageSlot(value, InsertionType.ONCHAIN)
        return value

    def block_hash(self, number: int) -> bytes:
        cached = self.block_hashes.get(number)
        if cached is not None:
            return cached
        value = self.block_hash_ref(number)
        self.block_hashes[number] = value
        return value

    # non-caching reads

    def basic_ref(self, address: str) -> AccountInfo | None:
        """Return account info without caching; None if the fetch fails."""
        key = _key(address)
        account = self.accounts.get(key)
        if account is not None:
            return account.info
        try:
            nonce = self.provider.get_transaction_count(key)
            balance = self.provider.get_balance(key)
            code = bytes(self.provider.get_code(key))
        except _FETCH_ERRORS:
            log.debug("Unable to fetch account %s from provider", key)
            return None
        return AccountInfo(balance=balance, nonce=nonce, code_hash=keccak256(code), code=code)

    def code_by_hash_ref(self, code_hash: bytes) -> bytes:
        """Return held code; all code must have been loaded beforehand."""
        try:
            return self.contracts[code_hash]
        except KeyError:
            raise KeyError(f"code for hash 0x{bytes(code_hash).hex()} is not loaded") from None

    def storage_ref(self, address: str, index: int) -> int:
        key = _key(address)
        account = self.accounts.get(key)
        if account is not None and index in account.storage:
            return account.storage[index].value
        return self.provider.get_storage_at(key, index)

    def block_hash_ref(self, number: int) -> bytes:
        cached = self.block_hashes.get(number)
        if cached is not None:
            return cached
        value = self.provider.get_block_hash(number)
        if value is None:
            log.warning("No block found for block number: %s", number)
            return ZERO_HASH
        return bytes(value)

    # execution results

    def commit(self, changes: Mapping[str, AccountChange]) -> None:
        """Apply the account changes of an executed transaction."""
        for address, change in changes.items():
            if not change.is_touched():
                continue
            key = _key(address)
            account = self.accounts.setdefault(key, DBAccount())
            if change.selfdestructed:
                account.storage.clear()
                account.state = AccountStatus.NOT_EXISTING
                account.info = AccountInfo()
                continue

            info = replace(change.info)
            if info.code:
                if info.code_hash == KECCAK_EMPTY:
                    info.code_hash = keccak256(info.code)
                self.contracts.setdefault(info.code_hash, info.code)
            account.info = info

            if change.created:
                account.storage.clear()
                account.state = AccountStatus.STORAGE_CLEARED
            elif account.state is AccountStatus.STORAGE_CLEARED:
                account.state = AccountStatus.STORAGE_CLEARED
            else:
                account.state = AccountStatus.TOUCHED
            for slot, value in change.storage.items():
                account.storage[slot] = StorageSlot(value, InsertionType.CUSTOM)