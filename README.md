# basebuster

`basebuster` keeps a local, in-memory picture of on-chain state for a working
set of AMM pools (Uniswap V2 and V3 style). Swap quotes can then be worked out
against it without asking a node for every lookup.

The state is stored in the same form the pool contracts use: packed words in the
storage slots the contracts read. V2 reserves live in slot 8 as two 112-bit
halves, and the token addresses live in slots 6 and 7. V3 `slot0` lives in
slot 0, liquidity in slot 4 and tick spacing in slot 14. The tick mapping
(offset 5) and the tick bitmap mapping (offset 6) are keyed the Solidity way,
with `keccak256(key . offset)`.

## Installing

```
pip install .
pip install ".[test]"   # adds pytest for the test suite
```

The only runtime dependency is `pycryptodome`, which supplies Keccak-256.

## Modules

- `basebuster.hashing`
  - `keccak256(data)` returns the 32-byte digest.
  - `mapping_slot(key, offset)` gives the storage slot of a mapping entry. Negative keys are encoded as 256-bit two's complement.
  - `address_to_word(address)` and `word_to_address(word)` convert between 20-byte addresses and storage words. Addresses come back as lower-case `0x` hex strings.
- `basebuster.pools`
  - `PoolType` is an enum of the supported exchanges. Each member answers `is_v2()` and `is_v3()`.
  - `V2Pool`, `V3Pool` and `TickInfo` are the pool snapshots the database is seeded from.
  - A pool built with a `pool_type` of the wrong kind raises `ValueError`.
- `basebuster.swap`
  - `SwapStep` and `SwapPath` describe an arbitrage cycle.
  - `SwapParams.from_path(path)` turns a path into quoting parameters: pool addresses, a version flag per pool (0 for v2, 1 for v3), and `amount_in` set to `AMOUNT`, which is 10**15.
- `basebuster.rpc`
  - `JsonRpcClient(url, timeout)` is a small blocking JSON-RPC client over HTTP.
  - It has `request(method, params)`, `get_block_number`, `get_transaction_count`, `get_balance`, `get_code`, `get_storage_at` and `get_block_hash`.
  - Transport failures, invalid JSON and node errors are raised as `RpcError`, which carries the node's error `code` when there is one.
- `basebuster.tracing`
  - `debug_trace_block(client, block, diff_mode)` runs the prestate tracer over a block.
  - It returns one mapping per transaction, from address to `TracedAccount` (balance, nonce, code, storage), describing the post state.
  - Failed traces are skipped. Traces that are not prestate diffs are logged and skipped.
- `basebuster.state_db`
  - `BlockStateDB(provider)` is the cache of accounts, storage and code.
  - The caching reads `basic`, `storage`, `code_by_hash` and `block_hash` fetch anything missing from the provider and keep it.
  - The `*_ref` variants read without storing.
  - `code_by_hash_ref` raises `KeyError` for code that was never loaded.
  - `basic` raises `RpcError` when the account cannot be fetched.
  - `commit(changes)` applies a mapping of address to `AccountChange`, covering self-destructs, new accounts and storage updates.
  - Working-set helpers: `add_pool`, `get_pool`, `tracking_pool`, `zero_to_one` and `update_all_slots`.
  - Insertion helpers: `insert_account_info` and `insert_account_storage`.
- `basebuster.v2_state` / `basebuster.v3_state`
  - These are mixins that `BlockStateDB` inherits.
  - V2: `insert_v2`, `insert_reserves`, `insert_token0`, `insert_token1`, `get_reserves`, `get_token0` and `get_token1`.
  - V3 writes: `insert_v3`, `insert_slot0`, `insert_liquidity`, `insert_tick_spacing`, `insert_tick_liquidity_net` and `insert_tick_bitmap`.
  - V3 reads: `slot0` (returned as a `Slot0`), `liquidity`, `tick_spacing`, `ticks_liquidity_net` and `tick_bitmap`.
  - Values that do not fit their on-chain width raise `ValueError`.
- `basebuster.market_state`
  - `MarketState` holds a `BlockStateDB` together with a `lock`.
  - `from_pools(pools, provider)` builds and populates one.
  - `update_state(tracer, block_number)` traces a block, applies storage changes to tracked pools, and returns their addresses.
  - `catch_up(tracer, last_synced_block)` processes blocks up to the chain head.
  - `run_updater(...)` and `start_updater(...)` follow new blocks, as described below.

## Using it

`JsonRpcClient` serves both as the provider the database fetches from and as
the tracer.

```python
from basebuster.market_state import MarketState
from basebuster.rpc import JsonRpcClient

client = JsonRpcClient("http://localhost:8545", 10.0)

# pools: a list of V2Pool / V3Pool objects describing your working set
market = MarketState.from_pools(pools, client)

# apply the storage changes of one block and see which pools moved
touched = market.update_state(client, client.get_block_number())
```

Reading pool state back:

```python
with market.lock:
    reserve0, reserve1 = market.db.get_reserves(v2_address)
    slot0 = market.db.slot0(v3_address)
    liquidity = market.db.liquidity(v3_address)
```

Storage written locally is marked `InsertionType.CUSTOM`. Values fetched from
the node are marked `InsertionType.ONCHAIN`.

### Following the chain

```python
import threading
from basebuster.market_state import NewBlock

caught_up = threading.Event()
thread = market.start_updater(client, blocks, on_touched, last_synced_block, caught_up)
```

`start_updater` runs `run_updater` on a daemon thread:

1. It catches up from `last_synced_block` to the chain head.
2. It sets `caught_up`.
3. It reads events from the iterable `blocks` and calls `on_touched` with a `PoolsTouched(pools, block_number)` for every block it processes.

It skips blocks at or below the last processed one. It stops when `blocks` ends
or yields anything other than a `NewBlock`. An exception raised by `on_touched`
is logged and does not stop the updater.

## What it does not do

- It has no EVM. `commit` applies the results of executed transactions, but nothing in the package executes calls or simulates swaps.
- It does not subscribe to new blocks. You supply the `NewBlock` events.
- It does not discover or sync pools. You supply the pool snapshots.
- It does not search for arbitrage and does not sign or send transactions.
- There is no command-line program.