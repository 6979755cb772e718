"""Minimal JSON-RPC client for an Ethereum node."""

from __future__ import annotations

import itertools
import json
import urllib.error
import urllib.request
from typing import Any


class RpcError(Exception):
    """A request to the node failed or returned an error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


def _to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class JsonRpcClient:
    """Sends JSON-RPC requests over HTTP."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout
        self._ids = itertools.count(1)

    def request(self, method: str, params: list | None = None) -> Any:
        """Call ``method`` with ``params`` and return its result."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(params or []),
            "id": next(self._ids),
        }
        req = urllib.request.Request(
            self.url,
            data=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = json.loads(resp.read())
        except (urllib.error.URLError, OSError) as exc:
            raise RpcError(f"{method} failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise RpcError(f"{method} returned invalid JSON") from exc
        if "error" in body and body["error"] is not None:
            error = body["error"]
            raise RpcError(error.get("message", str(error)), error.get("code"))
        if "result" not in body:
            raise RpcError(f"{method} returned no result")
        return body["result"]

    def get_block_number(self) -> int:
        return _to_int(self.request("eth_blockNumber"))

    def get_transaction_count(self, address: str) -> int:
        return _to_int(self.request("eth_getTransactionCount", [address, "latest"]))

    def get_balance(self, address: str) -> int:
        return _to_int(self.request("eth_getBalance", [address, "latest"]))

    def get_code(self, address: str) -> bytes:
        return _to_bytes(self.request("eth_getCode", [address, "latest"]))

    def get_storage_at(self, address: str, slot: int) -> int:
        return _to_int(
            self.request("eth_getStorageAt", [address, "0x" + format(slot, "064x"), "latest"])
        )

    def get_block_hash(self, number: int) -> bytes | None:
        """Return the hash of block ``number``, or None if there is no such block."""
        block = self.request("eth_getBlockByNumber", [hex(number), False])
        if block is None:
            return None
        return _to_bytes(block["hash"])