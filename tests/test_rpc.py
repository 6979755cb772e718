import json
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from basebuster.rpc import JsonRpcClient, RpcError

ADDRESS = "0x4200000000000000000000000000000000000006"


class _Handler(BaseHTTPRequestHandler):
    def do_POST(self):
        body = json.loads(self.rfile.read(int(self.headers["Content-Length"])))
        self.server.received.append(body)
        reply = {"jsonrpc": "2.0", "id": body["id"]}
        reply.update(self.server.replies[body["method"]])
        data = json.dumps(reply).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, *args):
        pass


@pytest.fixture
def node():
    server = HTTPServer(("127.0.0.1", 0), _Handler)
    server.received = []
    server.replies = {}
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    client = JsonRpcClient(f"http://127.0.0.1:{server.server_port}", timeout=5.0)
    yield client, server
    server.shutdown()
    server.server_close()


def test_block_number(node):
    client, server = node
    server.replies["eth_blockNumber"] = {"result": "0x1b4"}
    assert client.get_block_number() == 0x1B4
    assert server.received[0]["params"] == []
    assert server.received[0]["jsonrpc"] == "2.0"


def test_account_queries(node):
    client, server = node
    server.replies["eth_getTransactionCount"] = {"result": "0x5"}
    server.replies["eth_getBalance"] = {"result": "0xde0b6b3a7640000"}
    server.replies["eth_getCode"] = {"result": "0x6001"}
    assert client.get_transaction_count(ADDRESS) == 5
    assert client.get_balance(ADDRESS) == 0xDE0B6B3A7640000
    assert client.get_code(ADDRESS) == b"\x60\x01"
    assert [r["params"] for r in server.received] == [[ADDRESS, "latest"]] * 3


def test_request_ids_increase(node):
    client, server = node
    server.replies["eth_blockNumber"] = {"result": "0x1"}
    client.get_block_number()
    client.get_block_number()
    ids = [r["id"] for r in server.received]
    assert ids[1] > ids[0]


def test_storage_slot_is_padded(node):
    client, server = node
    server.replies["eth_getStorageAt"] = {"result": "0x" + "00" * 31 + "2a"}
    assert client.get_storage_at(ADDRESS, 8) == 42
    params = server.received[0]["params"]
    assert params[0] == ADDRESS
    assert int(params[1], 16) == 8
    assert len(params[1]) == 66
    assert params[2] == "latest"


def test_block_hash_present_and_missing(node):
    client, server = node
    block_hash = "0x" + "ab" * 32
    server.replies["eth_getBlockByNumber"] = {"result": {"hash": block_hash}}
    assert client.get_block_hash(100) == bytes.fromhex("ab" * 32)
    assert server.received[0]["params"] == [hex(100), False]
    server.replies["eth_getBlockByNumber"] = {"result": None}
    assert client.get_block_hash(100) is None


def test_error_reply_raises(node):
    client, server = node
    server.replies["eth_blockNumber"] = {"error": {"code": -32000, "message": "boom"}}
    with pytest.raises(RpcError) as info:
        client.get_block_number()
    assert info.value.code == -32000
    assert "boom" in str(info.value)


def test_unreachable_node_raises():
    server = HTTPServer(("127.0.0.1", 0), _Handler)
    port = server.server_port
    server.server_close()
    client = JsonRpcClient(f"http://127.0.0.1:{port}", timeout=2.0)
    with pytest.raises(RpcError):
        client.request("eth_blockNumber", [])