"""Block tracing with the prestate tracer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from basebuster.hashing import address_to_word, word_to_address

log = logging.getLogger(__name__)


class _Client(Protocol):
    def request(self, method: str, params: list | None = None) -> Any: ...


@dataclass
class TracedAccount:
    """An account's state as reported by the prestate tracer."""

    balance: int | None = None
    nonce: int | None = None
    code: bytes | None = None
    storage: dict[int, int] = field(default_factory=dict)


def _int(value: Any) -> int:
    return value if isinstance(value, int) else int(value, 16)


def _parse_account(raw: dict) -> TracedAccount:
    code = raw.get("code")
    return TracedAccount(
        balance=None if raw.get("balance") is None else _int(raw["balance"]),
        nonce=None if raw.get("nonce") is None else _int(raw["nonce"]),
        code=None if code is None else bytes.fromhex(code[2:] if code.startswith("0x") else code),
        storage={_int(slot): _int(value) for slot, value in (raw.get("storage") or {}).items()},
    )


def _block_param(block: int | str) -> str:
    if isinstance(block, bool):
        raise TypeError("block must be a number or a tag")
    if isinstance(block, int):
        if block < 0:
            raise ValueError("block number must not be negative")
        return hex(block)
    return block


def debug_trace_block(
    client: _Client, block: int | str, diff_mode: bool = True
) -> list[dict[str, TracedAccount]]:
    """Trace every transaction in ``block`` and return each one's post state.

    Failed traces are skipped; traces that are not prestate diffs are
    logged and skipped.
    """
    options = {
        "tracer": "prestateTracer",
        "tracerConfig": {
            "diffMode": diff_mode,
            "disableCode": False,
            "disableStorage": False,
        },
    }
    results = client.request("debug_traceBlockByNumber", [_block_param(block), options])
    post_states: list[dict[str, TracedAccount]] = []
    for entry in results or []:
        if "result" not in entry or entry.get("error") is not None:
            continue
        frame = entry["result"]
        if not isinstance(frame, dict) or "post" not in frame or "pre" not in frame:
            log.warning("Invalid trace")
            continue
        post = {
            word_to_address(address_to_word(address)): _parse_account(account)
            for address, account in frame["post"].items()
        }
        post_states.append(dict(sorted(post.items())))
    return post_states