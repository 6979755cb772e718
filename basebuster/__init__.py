"""In-memory EVM state cache for V2/V3 AMM pools, updated from block traces."""

__version__ = "0.1.0"

__all__ = [
    "hashing",
    "pools",
    "swap",
    "rpc",
    "tracing",
    "v2_state",
    "v3_state",
    "state_db",
    "market_state",
]