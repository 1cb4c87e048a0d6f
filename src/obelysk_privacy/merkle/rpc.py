"""
StarknetStorageReader: JSON-RPC reads against the privacy pool contract.

Needs the optional `rpc` extra (starknet-py) for selector and storage-key
derivation:

    pip install obelysk-privacy[rpc]

Storage layout:
    global_deposit_nodes: Map<(u8, u64), felt252>
    key(level, index) = pedersen(pedersen(sn_keccak("global_deposit_nodes"), level), index)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from starknet_py.hash.selector import get_selector_from_name
from starknet_py.hash.storage import get_storage_var_address

from obelysk_privacy.core.errors import StorageReadError
from obelysk_privacy.crypto.curve import felt_to_int, to_felt_hex

logger = logging.getLogger("obelysk_privacy.merkle")

NODES_STORAGE_VAR = "global_deposit_nodes"
STATS_ENTRY_POINT = "get_pp_stats"
ROOT_ENTRY_POINT = "get_global_deposit_root"
BLOCK_ID = "latest"


def node_storage_key(level: int, index: int) -> str:
    """Storage address of global_deposit_nodes[(level, index)] as a hex felt."""
    return to_felt_hex(get_storage_var_address(NODES_STORAGE_VAR, level, index))


class StarknetStorageReader:
    """
    Async StorageReader over a Starknet JSON-RPC endpoint.

    Usage:
        async with StarknetStorageReader(rpc_url, pool_address) as reader:
            prover = OnChainMerkleProver(reader, network="sepolia", pool_address=pool_address)
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.rpc_url = rpc_url
        self.contract_address = to_felt_hex(felt_to_int(contract_address))
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"}, timeout=timeout
        )
        self._request_id = 0

    # ------------------------------------------------------------------
    # StorageReader
    # ------------------------------------------------------------------

    async def read_leaf_count(self) -> int:
        """total_deposits, the first word returned by get_pp_stats()."""
        result = await self._call(STATS_ENTRY_POINT)
        if not result:
            return 0
        return felt_to_int(result[0])

    async def read_node(self, level: int, index: int) -> int:
        result = await self._rpc("starknet_getStorageAt", {
            "contract_address": self.contract_address,
            "key": node_storage_key(level, index),
            "block_id": BLOCK_ID,
        })
        return felt_to_int(result)

    async def read_root(self) -> int:
        result = await self._call(ROOT_ENTRY_POINT)
        if not result:
            raise StorageReadError(f"{ROOT_ENTRY_POINT} returned no data")
        return felt_to_int(result[0])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call(self, entry_point: str, calldata: list[str] | None = None) -> list[str]:
        return await self._rpc("starknet_call", {
            "request": {
                "contract_address": self.contract_address,
                "entry_point_selector": to_felt_hex(get_selector_from_name(entry_point)),
                "calldata": calldata or [],
            },
            "block_id": BLOCK_ID,
        })

    async def _rpc(self, method: str, params: dict[str, Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": self._request_id}
        try:
            resp = await self._client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as e:
            raise StorageReadError(f"RPC {method} failed: {e}") from e
        except ValueError as e:
            raise StorageReadError(f"RPC {method} returned invalid JSON") from e

        if body.get("error"):
            err = body["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise StorageReadError(f"RPC error ({method}): {message}")
        if "result" not in body:
            raise StorageReadError(f"RPC {method} response has no result")
        return body["result"]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> StarknetStorageReader:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
