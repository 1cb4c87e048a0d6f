"""
obelysk_privacy.merkle — deposit-tree reconstruction and inclusion proofs.

Provides:
- LeanIMT hashing, depth, rebuild and sparse proofs (lean_imt)
- Async storage protocol, cached prover sessions and registry (storage)
- Coordinator fast path with on-chain fallback (coordinator)

The Starknet JSON-RPC reader lives in obelysk_privacy.merkle.rpc and needs
the optional `rpc` extra.
"""

from obelysk_privacy.merkle.coordinator import CoordinatorClient, fetch_merkle_proof_with_fallback
from obelysk_privacy.merkle.lean_imt import (
    EMPTY_NODE,
    LEAN_IMT_DOMAIN,
    MerkleProof,
    TreeSnapshot,
    calculate_depth,
    generate_proof,
    hash_pair,
    rebuild_tree,
    verify_proof,
)
from obelysk_privacy.merkle.storage import (
    MerkleProverRegistry,
    OnChainMerkleProver,
    RootCheck,
    StorageReader,
    fetch_leaves,
)

__all__ = [
    "EMPTY_NODE",
    "LEAN_IMT_DOMAIN",
    "CoordinatorClient",
    "MerkleProof",
    "MerkleProverRegistry",
    "OnChainMerkleProver",
    "RootCheck",
    "StorageReader",
    "TreeSnapshot",
    "calculate_depth",
    "fetch_leaves",
    "fetch_merkle_proof_with_fallback",
    "generate_proof",
    "hash_pair",
    "rebuild_tree",
    "verify_proof",
]
