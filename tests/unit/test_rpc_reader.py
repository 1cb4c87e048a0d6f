"""
Unit tests for obelysk_privacy.merkle.rpc — JSON-RPC storage reads, mocked with httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

pytest.importorskip("starknet_py")

from starknet_py.hash.selector import get_selector_from_name  # noqa: E402
from starknet_py.hash.storage import get_storage_var_address  # noqa: E402

from obelysk_privacy.core.errors import StorageReadError  # noqa: E402
from obelysk_privacy.merkle.lean_imt import rebuild_tree  # noqa: E402
from obelysk_privacy.merkle.rpc import StarknetStorageReader, node_storage_key  # noqa: E402
from obelysk_privacy.merkle.storage import OnChainMerkleProver  # noqa: E402

RPC_URL = "https://rpc.test/v0_7"
POOL = "0x0abc"
LEAVES = [0x111, 0x222, 0x333]


def pool_handler(leaves, requests=None):
    keys = {node_storage_key(0, i): leaf for i, leaf in enumerate(leaves)}
    stats = hex(get_selector_from_name("get_pp_stats"))
    root = hex(get_selector_from_name("get_global_deposit_root"))

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if requests is not None:
            requests.append(body)
        if body["method"] == "starknet_call":
            selector = body["params"]["request"]["entry_point_selector"]
            if selector == stats:
                result = [hex(len(leaves)), "0x0", "0x0"]
            elif selector == root:
                result = [hex(rebuild_tree(leaves).root)]
            else:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"],
                                                 "error": {"code": 21, "message": "Invalid message selector"}})
        else:
            result = hex(keys.get(body["params"]["key"], 0))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return handler


def make_reader(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StarknetStorageReader(RPC_URL, POOL, client=client)


def run(coro):
    return asyncio.run(coro)


class TestStorageKey:

    def test_matches_storage_var_address(self):
        assert node_storage_key(0, 5) == hex(get_storage_var_address("global_deposit_nodes", 0, 5))

    def test_distinct_keys(self):
        assert node_storage_key(0, 1) != node_storage_key(1, 0)


class TestStarknetStorageReader:

    def test_reads(self):
        requests = []
        reader = make_reader(pool_handler(LEAVES, requests))

        async def scenario():
            return (
                await reader.read_leaf_count(),
                await reader.read_node(0, 1),
                await reader.read_node(0, 9),
                await reader.read_root(),
            )

        count, node, empty, root = run(scenario())
        assert count == 3
        assert node == 0x222
        assert empty == 0
        assert root == rebuild_tree(LEAVES).root
        assert requests[0]["params"]["block_id"] == "latest"
        assert requests[1]["params"]["contract_address"] == "0xabc"
        assert [r["id"] for r in requests] == [1, 2, 3, 4]

    def test_prover_over_rpc(self):
        reader = make_reader(pool_handler(LEAVES))
        prover = OnChainMerkleProver(reader, network="devnet", pool_address=POOL)

        async def scenario():
            proof = await prover.get_proof(0x333)
            check = await prover.verify_root_against_chain()
            return proof, check

        proof, check = run(scenario())
        assert proof.leaf_index == 2
        assert proof.verify()
        assert check.match

    def test_rpc_error(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1,
                                             "error": {"code": 20, "message": "Contract not found"}})

        with pytest.raises(StorageReadError, match="Contract not found"):
            run(make_reader(handler).read_leaf_count())

    def test_http_500(self):
        with pytest.raises(StorageReadError):
            run(make_reader(lambda request: httpx.Response(500)).read_node(0, 0))

    def test_invalid_json(self):
        with pytest.raises(StorageReadError, match="invalid JSON"):
            run(make_reader(lambda request: httpx.Response(200, text="<html>")).read_node(0, 0))

    def test_missing_result(self):
        reader = make_reader(lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}))
        with pytest.raises(StorageReadError, match="no result"):
            run(reader.read_node(0, 0))

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(StorageReadError):
            run(make_reader(handler).read_leaf_count())

    def test_empty_root_result(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": []})

        with pytest.raises(StorageReadError):
            run(make_reader(handler).read_root())

    def test_empty_stats_means_empty_pool(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": []})

        assert run(make_reader(handler).read_leaf_count()) == 0
