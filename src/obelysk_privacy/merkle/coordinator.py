"""
Coordinator fast path for Merkle proofs, with the on-chain prover as fallback.

The coordinator serves precomputed proofs at GET /api/privacy/proof/{commitment}.
It is an optimisation only: any failure (timeout, HTTP error, malformed body,
proof that does not verify) sends the caller to the local rebuild.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from obelysk_privacy.crypto.curve import felt_to_int, to_felt_hex
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme
from obelysk_privacy.merkle.lean_imt import MerkleProof
from obelysk_privacy.merkle.storage import OnChainMerkleProver

logger = logging.getLogger("obelysk_privacy.merkle")

DEFAULT_COORDINATOR_TIMEOUT = 5.0


class CoordinatorClient:
    """
    Async client for the coordinator proof API.

    Usage:
        coordinator = CoordinatorClient("https://coordinator.example")
        proof = await coordinator.fetch_proof("0x1234...")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_COORDINATOR_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_proof(self, commitment: int | str) -> MerkleProof | None:
        """
        Ask the coordinator for a proof.

        Returns:
            The parsed proof, or None when the coordinator is unreachable,
            answers with an error, or does not know the commitment.
        """
        commitment_hex = to_felt_hex(felt_to_int(commitment))
        try:
            resp = await self._client.get(f"{self.base_url}/api/privacy/proof/{commitment_hex}")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Coordinator unavailable: {e}")
            return None

        if not isinstance(data, dict) or not data.get("found"):
            logger.debug(f"Coordinator has no proof for {commitment_hex}")
            return None
        try:
            return _parse_proof(felt_to_int(commitment_hex), data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Coordinator returned a malformed proof: {e}")
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> CoordinatorClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def _parse_proof(leaf: int, data: dict[str, Any]) -> MerkleProof:
    siblings = tuple(felt_to_int(s) for s in data["siblings"])
    path_indices = tuple(int(p) for p in data["path_indices"])
    root = data.get("current_root") or data["root"]
    return MerkleProof(
        leaf=leaf,
        leaf_index=int(data["leaf_index"]),
        siblings=siblings,
        path_indices=path_indices,
        root=felt_to_int(root),
        tree_size=int(data.get("tree_size", 0)),
    )


async def fetch_merkle_proof_with_fallback(
    commitment: int | str,
    prover: OnChainMerkleProver,
    coordinator: CoordinatorClient | None = None,
    scheme: HashScheme = DEFAULT_HASH,
) -> MerkleProof | None:
    """
    Coordinator first, then the on-chain rebuild.

    A coordinator proof is only accepted if it verifies locally.

    Raises:
        StorageReadError: If the fallback's remote reads fail.
    """
    if coordinator is not None:
        proof = await coordinator.fetch_proof(commitment)
        if proof is not None:
            if proof.verify(scheme):
                logger.info("Using coordinator Merkle proof")
                return proof
            logger.warning("Coordinator proof failed local verification")
    logger.info("Building Merkle proof from on-chain storage")
    return await prover.get_proof(commitment)
