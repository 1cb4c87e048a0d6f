"""
Integration tests for obelysk_privacy.merkle.rpc against a live Starknet RPC node.

Skipped unless OBELYSK_RPC_URL is set. OBELYSK_POOL_ADDRESS selects the pool
(defaults to the sepolia deployment).

Run:  OBELYSK_RPC_URL=https://... pytest tests/integration/ -v -m integration
"""

import asyncio
import os

import pytest

pytest.importorskip("starknet_py")

from obelysk_privacy.core.config import DEFAULT_NETWORKS  # noqa: E402
from obelysk_privacy.merkle.rpc import StarknetStorageReader  # noqa: E402
from obelysk_privacy.merkle.storage import OnChainMerkleProver  # noqa: E402

RPC_URL = os.environ.get("OBELYSK_RPC_URL")
POOL_ADDRESS = os.environ.get(
    "OBELYSK_POOL_ADDRESS", DEFAULT_NETWORKS["sepolia"].privacy_pools_address
)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not RPC_URL, reason="OBELYSK_RPC_URL not set"),
]


def test_leaf_count():
    async def scenario():
        async with StarknetStorageReader(RPC_URL, POOL_ADDRESS, timeout=30.0) as reader:
            return await reader.read_leaf_count()

    assert asyncio.run(scenario()) >= 0


def test_rebuilt_root_matches_contract():
    async def scenario():
        async with StarknetStorageReader(RPC_URL, POOL_ADDRESS, timeout=30.0) as reader:
            prover = OnChainMerkleProver(reader, pool_address=POOL_ADDRESS, read_timeout=30.0)
            snapshot = await prover.snapshot()
            check = await prover.verify_root_against_chain()
            proof = await prover.get_proof(snapshot.leaves[0]) if snapshot.size else None
            return snapshot, check, proof

    snapshot, check, proof = asyncio.run(scenario())
    if snapshot.size == 0:
        pytest.skip("Pool has no deposits yet")
    assert check.match, f"local={check.local_root} on-chain={check.on_chain_root}"
    assert proof is not None and proof.verify()
