"""
On-chain storage adapter and prover sessions for the deposit tree.

Provides:
- StorageReader: async protocol for the three remote reads the prover needs
- fetch_leaves: bounded-concurrency leaf reads with per-read timeouts
- OnChainMerkleProver: one cached tree per (network, pool), rebuilt under a
  lock and published as an immutable snapshot
- MerkleProverRegistry: explicit session registry keyed by (network, pool)

Cache discipline:
    The tree is built lazily on the first proof request and reused after
    that. There is no background polling: callers invalidate() after any
    deposit that may have added a leaf. A lookup that misses the cached
    tree triggers exactly one refetch before the commitment is reported as
    not found.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from obelysk_privacy.core.errors import StorageReadError
from obelysk_privacy.crypto.curve import felt_to_int, to_felt_hex
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme
from obelysk_privacy.merkle.lean_imt import MerkleProof, TreeSnapshot, generate_proof, rebuild_tree

logger = logging.getLogger("obelysk_privacy.merkle")

DEFAULT_BATCH_SIZE = 10
DEFAULT_READ_TIMEOUT = 15.0


@runtime_checkable
class StorageReader(Protocol):
    """Remote reads against the pool contract. Values are field elements."""

    async def read_leaf_count(self) -> int:
        """Total number of deposits inserted into the tree."""
        ...

    async def read_node(self, level: int, index: int) -> int:
        """Stored node hash at (level, index); 0 when empty."""
        ...

    async def read_root(self) -> int:
        """The contract's current tree root."""
        ...


async def _with_timeout(coro, timeout: float, what: str):
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise StorageReadError(f"Timed out after {timeout}s reading {what}") from e


async def fetch_leaves(
    reader: StorageReader,
    total: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
    read_timeout: float = DEFAULT_READ_TIMEOUT,
) -> list[int]:
    """
    Read leaves 0..total-1 with at most batch_size reads in flight.

    Raises:
        ValueError: If batch_size < 1 or total < 0.
        StorageReadError: If any read fails or exceeds read_timeout.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if total < 0:
        raise ValueError(f"total must be non-negative, got {total}")

    semaphore = asyncio.Semaphore(batch_size)

    async def read_one(index: int) -> int:
        async with semaphore:
            value = await _with_timeout(reader.read_node(0, index), read_timeout, f"leaf {index}")
            return felt_to_int(value)

    tasks = [asyncio.create_task(read_one(i)) for i in range(total)]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        # First failure wins; queued and in-flight reads are abandoned
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


@dataclass(frozen=True)
class RootCheck:
    match: bool
    local_root: str | None
    on_chain_root: str | None


# ==============================================================================
# Prover session
# ==============================================================================


class OnChainMerkleProver:
    """
    Merkle proof session for one privacy pool on one network.

    Usage:
        prover = OnChainMerkleProver(reader, network="sepolia", pool_address="0x...")
        proof = await prover.get_proof(commitment_felt)
        ...
        prover.invalidate()   # after submitting a deposit
    """

    def __init__(
        self,
        reader: StorageReader,
        network: str = "sepolia",
        pool_address: str = "0x0",
        batch_size: int = DEFAULT_BATCH_SIZE,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        scheme: HashScheme = DEFAULT_HASH,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.reader = reader
        self.network = network
        self.pool_address = pool_address
        self.batch_size = batch_size
        self.read_timeout = read_timeout
        self.scheme = scheme
        self._snapshot: TreeSnapshot | None = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def key(self) -> tuple[str, str]:
        return (self.network, self.pool_address)

    @property
    def cached_snapshot(self) -> TreeSnapshot | None:
        """The last published tree, without triggering a fetch."""
        return self._snapshot

    def invalidate(self) -> None:
        """
        Drop the cached tree; the next request refetches.

        A rebuild already in flight when this is called is not published.
        """
        if self._snapshot is not None:
            logger.debug(f"Invalidating Merkle cache for {self.network}:{self.pool_address}")
        self._generation += 1
        self._snapshot = None

    async def _refresh(self) -> TreeSnapshot:
        # Caller holds self._lock. Build fully, then publish unless invalidated meanwhile.
        while True:
            generation = self._generation
            logger.info(f"Reading deposits from {self.network}:{self.pool_address}")
            total = felt_to_int(await _with_timeout(
                self.reader.read_leaf_count(), self.read_timeout, "leaf count"
            ))
            leaves = await fetch_leaves(self.reader, total, self.batch_size, self.read_timeout)
            snapshot = rebuild_tree(leaves, self.scheme)
            if generation == self._generation:
                break
            logger.debug("Merkle cache invalidated during rebuild, reading again")
        self._snapshot = snapshot
        logger.info(
            f"LeanIMT rebuilt: root={to_felt_hex(snapshot.root)[:20]}... "
            f"depth={snapshot.depth} size={snapshot.size}"
        )
        return snapshot

    async def snapshot(self) -> TreeSnapshot:
        """The cached tree, building it on first use."""
        async with self._lock:
            if self._snapshot is None:
                return await self._refresh()
            logger.debug("Merkle cache hit")
            return self._snapshot

    async def get_proof(self, commitment: int | str) -> MerkleProof | None:
        """
        Inclusion proof for a commitment leaf.

        Returns:
            The locally verified proof, or None if the commitment is not in
            the tree after one refetch (or the proof fails local verification).

        Raises:
            StorageReadError: If the remote reads fail.
        """
        target = felt_to_int(commitment)
        async with self._lock:
            fetched = False
            snapshot = self._snapshot
            if snapshot is None:
                snapshot = await self._refresh()
                fetched = True
            leaf_index = snapshot.index_of(target)
            if leaf_index is None and not fetched:
                logger.info("Commitment not in cached tree, refetching")
                snapshot = await self._refresh()
                leaf_index = snapshot.index_of(target)

        if leaf_index is None:
            logger.warning(f"Commitment not found: {to_felt_hex(target)}")
            return None

        proof = generate_proof(snapshot, leaf_index)
        if not proof.verify(self.scheme):
            logger.error("Local Merkle proof verification failed")
            return None
        logger.info(f"Proof verified: siblings={len(proof.siblings)} root={to_felt_hex(proof.root)[:20]}...")
        return proof

    async def verify_root_against_chain(self) -> RootCheck:
        """Compare the cached root with the contract's current root."""
        snapshot = self._snapshot
        if snapshot is None:
            return RootCheck(match=False, local_root=None, on_chain_root=None)
        local_root = to_felt_hex(snapshot.root)
        try:
            on_chain = felt_to_int(await _with_timeout(
                self.reader.read_root(), self.read_timeout, "tree root"
            ))
        except StorageReadError as e:
            logger.warning(f"Could not read on-chain root: {e}")
            return RootCheck(match=False, local_root=local_root, on_chain_root=None)
        on_chain_root = to_felt_hex(on_chain)
        match = on_chain == snapshot.root
        if not match:
            logger.warning(f"Root mismatch: local={local_root} on-chain={on_chain_root}")
        return RootCheck(match=match, local_root=local_root, on_chain_root=on_chain_root)


# ==============================================================================
# Registry
# ==============================================================================


class MerkleProverRegistry:
    """Prover sessions keyed by (network, pool address)."""

    def __init__(self) -> None:
        self._provers: dict[tuple[str, str], OnChainMerkleProver] = {}

    def register(self, prover: OnChainMerkleProver) -> OnChainMerkleProver:
        self._provers[prover.key] = prover
        return prover

    def get(self, network: str, pool_address: str) -> OnChainMerkleProver | None:
        return self._provers.get((network, pool_address))

    def get_or_create(
        self,
        network: str,
        pool_address: str,
        factory: Callable[[], OnChainMerkleProver],
    ) -> OnChainMerkleProver:
        prover = self._provers.get((network, pool_address))
        if prover is None:
            prover = factory()
            if prover.key != (network, pool_address):
                raise ValueError(
                    f"Factory built a prover for {prover.key}, expected {(network, pool_address)}"
                )
            self._provers[prover.key] = prover
        return prover

    def invalidate(self, network: str | None = None, pool_address: str | None = None) -> int:
        """
        Invalidate matching sessions; None matches everything.

        Returns:
            Number of sessions invalidated.
        """
        count = 0
        for (net, pool), prover in self._provers.items():
            if network is not None and net != network:
                continue
            if pool_address is not None and pool != pool_address:
                continue
            prover.invalidate()
            count += 1
        return count

    def __len__(self) -> int:
        return len(self._provers)
