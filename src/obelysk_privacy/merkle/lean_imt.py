"""
LeanIMT: the pool's sparse incremental Merkle tree, rebuilt client-side.

The pool contract inserts every deposit commitment as a leaf of a LeanIMT
and stores the tree nodes. Spending a note needs an inclusion proof, which
we get by replaying the insertions locally and reading the path off the
rebuilt node map.

Tree rules (must match the contract exactly):
    hash_pair(l, r) = H_many('OBELYSK_LEAN_IMT_V1', l, r)
    depth(n)        = 0 for n = 0, 1 for n = 1, else ceil(log2 n)
    insertion i     : walk depth(i + 1) levels; at each level, if the sibling
                      slot is empty (0) the current hash moves up unchanged,
                      otherwise it is hashed with the sibling in left/right
                      order given by the index parity
    proof           : only non-zero siblings, so the proof length is the
                      number of occupied sibling slots, not the depth
    root            : node(depth, 0)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from obelysk_privacy.crypto.curve import felt_to_int, to_felt_hex
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme, short_string_to_felt

logger = logging.getLogger("obelysk_privacy.merkle")

LEAN_IMT_DOMAIN = short_string_to_felt("OBELYSK_LEAN_IMT_V1")

EMPTY_NODE = 0


def hash_pair(left: int, right: int, scheme: HashScheme = DEFAULT_HASH) -> int:
    return scheme.hash_many([LEAN_IMT_DOMAIN, left, right])


def calculate_depth(size: int) -> int:
    """
    Tree depth for a given leaf count: 0, 1, 1, 2, 2, 3, ... for n = 0, 1, 2, 3, 4, 5.

    Raises:
        ValueError: If size is negative.
    """
    if size < 0:
        raise ValueError(f"size must be non-negative, got {size}")
    if size <= 1:
        return size
    depth = 0
    remaining = size - 1
    while remaining > 0:
        remaining //= 2
        depth += 1
    return depth


# ==============================================================================
# Tree reconstruction
# ==============================================================================


@dataclass(frozen=True)
class TreeSnapshot:
    """
    An immutable rebuilt tree.

    Attributes:
        leaves: Leaf values in insertion order.
        nodes: (level, index) → hash for every written node; missing means empty.
        root: node(depth, 0), or 0 for an empty tree.
        depth: calculate_depth(len(leaves)).
    """
    leaves: tuple[int, ...]
    nodes: Mapping[tuple[int, int], int]
    root: int
    depth: int

    @property
    def size(self) -> int:
        return len(self.leaves)

    def node(self, level: int, index: int) -> int:
        return self.nodes.get((level, index), EMPTY_NODE)

    def index_of(self, leaf: int | str) -> int | None:
        """First index holding this leaf value, or None."""
        target = felt_to_int(leaf)
        for i, value in enumerate(self.leaves):
            if value == target:
                return i
        return None


def rebuild_tree(leaves: Sequence[int | str], scheme: HashScheme = DEFAULT_HASH) -> TreeSnapshot:
    """
    Replay insertions of leaves in index order.

    Args:
        leaves: Leaf values (ints or hex felts) in on-chain order.
        scheme: Hash scheme; must be the contract's Poseidon for real pools.

    Returns:
        A TreeSnapshot of the final tree.
    """
    values = tuple(felt_to_int(leaf) for leaf in leaves)
    nodes: dict[tuple[int, int], int] = {}

    for insert_index, leaf in enumerate(values):
        depth = calculate_depth(insert_index + 1)
        nodes[(0, insert_index)] = leaf

        current_hash = leaf
        current_index = insert_index
        for level in range(depth):
            is_right = current_index % 2 == 1
            sibling_index = current_index - 1 if is_right else current_index + 1
            sibling = nodes.get((level, sibling_index), EMPTY_NODE)
            if sibling != EMPTY_NODE:
                if is_right:
                    current_hash = hash_pair(sibling, current_hash, scheme)
                else:
                    current_hash = hash_pair(current_hash, sibling, scheme)
            current_index //= 2
            nodes[(level + 1, current_index)] = current_hash

    depth = calculate_depth(len(values))
    root = nodes.get((depth, 0), EMPTY_NODE) if values else EMPTY_NODE
    logger.debug(f"Rebuilt LeanIMT: size={len(values)} depth={depth}")
    return TreeSnapshot(leaves=values, nodes=nodes, root=root, depth=depth)


# ==============================================================================
# Proofs
# ==============================================================================


@dataclass(frozen=True)
class MerkleProof:
    """
    A sparse LeanIMT inclusion proof.

    Attributes:
        leaf: The leaf value.
        leaf_index: Its position in the tree.
        siblings: Non-zero sibling hashes from the leaf upwards.
        path_indices: 1 where the sibling sits on the left, 0 where it sits on the right.
        root: Root of the tree the proof was generated against.
        tree_size: Number of leaves in that tree.
    """
    leaf: int
    leaf_index: int
    siblings: tuple[int, ...]
    path_indices: tuple[int, ...]
    root: int
    tree_size: int

    def verify(self, scheme: HashScheme = DEFAULT_HASH) -> bool:
        return verify_proof(self.leaf, self.siblings, self.path_indices, self.root, scheme)

    def to_contract_format(self) -> dict[str, Any]:
        """Withdrawal calldata fields, felts as hex strings."""
        return {
            "siblings": [to_felt_hex(s) for s in self.siblings],
            "path_indices": list(self.path_indices),
            "root": to_felt_hex(self.root),
            "leaf_index": self.leaf_index,
            "tree_size": self.tree_size,
        }


def generate_proof(snapshot: TreeSnapshot, leaf_index: int) -> MerkleProof:
    """
    Read the sparse inclusion path of one leaf off a rebuilt tree.

    Raises:
        IndexError: If leaf_index is outside [0, snapshot.size).
    """
    if not 0 <= leaf_index < snapshot.size:
        raise IndexError(f"leaf_index {leaf_index} out of range for tree of size {snapshot.size}")

    siblings: list[int] = []
    path_indices: list[int] = []
    current_index = leaf_index
    for level in range(snapshot.depth):
        is_right = current_index % 2 == 1
        sibling_index = current_index - 1 if is_right else current_index + 1
        sibling = snapshot.node(level, sibling_index)
        if sibling != EMPTY_NODE:
            siblings.append(sibling)
            path_indices.append(1 if is_right else 0)
        current_index //= 2

    return MerkleProof(
        leaf=snapshot.leaves[leaf_index],
        leaf_index=leaf_index,
        siblings=tuple(siblings),
        path_indices=tuple(path_indices),
        root=snapshot.node(snapshot.depth, 0),
        tree_size=snapshot.size,
    )


def verify_proof(
    leaf: int | str,
    siblings: Sequence[int | str],
    path_indices: Sequence[int],
    root: int | str,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    """Fold the leaf up through the siblings and compare with the root."""
    if len(siblings) != len(path_indices):
        return False
    current = felt_to_int(leaf)
    for sibling, on_left in zip(siblings, path_indices):
        sibling_value = felt_to_int(sibling)
        if on_left:
            current = hash_pair(sibling_value, current, scheme)
        else:
            current = hash_pair(current, sibling_value, scheme)
    return current == felt_to_int(root)
