"""
Nullifier derivation for privacy pool spends.

A nullifier is a deterministic tag revealed at spend time. The pool contract
keeps the set of revealed nullifiers and rejects a second spend of the same
note without learning which leaf was spent.

Provides:
- derive_nullifier / derive_nullifier_with_domain / derive_nullifier_batch
- NullifierWitness: (secret, leaf index, nullifier) triple for proof inputs
- Key images (ring-signature style linkability tags)
- Stealth nullifiers and view tags for fast output scanning
- is_nullifier_spent: pass-through to an injected contract reader

Mathematical foundation:
    nullifier = H(nullifier_secret, leaf_index)
    key_image = sk · H_p(PK)      where H_p = hash_to_curve(H(PK.x, PK.y))
    view_tag  = H(ECDH_shared, output_index) mod 2^16

Inputs are reduced modulo the curve order before hashing, matching the
contract-side encoding of scalars.

References:
    [Zcash] Zcash Protocol Specification, §4.16 (nullifiers).
    [CN]    CryptoNote v2.0, §4.4 (key images).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from obelysk_privacy.crypto.curve import (
    CURVE_ORDER,
    ECPoint,
    felt_to_int,
    hash_to_curve,
    is_infinity,
    mod,
    random_scalar,
    scalar_mult,
    to_felt_hex,
)
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme

logger = logging.getLogger("obelysk_privacy.nullifier")

VIEW_TAG_MASK = 0xFFFF


def scalar_hash(values: Sequence[int], scheme: HashScheme) -> int:
    if not values:
        raise ValueError("Cannot hash zero inputs")
    return scheme.hash_many([mod(v, CURVE_ORDER) for v in values])


def _string_to_scalar(text: str) -> int:
    return mod(int.from_bytes(text.encode("utf-8"), "big"), CURVE_ORDER)


def generate_nullifier_secret() -> int:
    """A fresh nullifier secret from the OS CSPRNG."""
    return random_scalar()


# ==============================================================================
# Nullifiers
# ==============================================================================


def derive_nullifier(
    nullifier_secret: int,
    leaf_index: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """
    Derive the spend nullifier H(nullifier_secret, leaf_index).

    Args:
        nullifier_secret: The note's secret scalar.
        leaf_index: Position of the note's commitment in the Merkle tree.
        scheme: Hash scheme; must match the verifier.

    Returns:
        The nullifier as a field element.

    Raises:
        ValueError: If leaf_index is negative.
    """
    if leaf_index < 0:
        raise ValueError(f"leaf_index must be non-negative, got {leaf_index}")
    return scalar_hash([nullifier_secret, leaf_index], scheme)


def derive_nullifier_with_domain(
    nullifier_secret: int,
    leaf_index: int,
    domain: str,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """Derive H(domain, nullifier_secret, leaf_index) with a string domain tag."""
    if leaf_index < 0:
        raise ValueError(f"leaf_index must be non-negative, got {leaf_index}")
    return scalar_hash([_string_to_scalar(domain), nullifier_secret, leaf_index], scheme)


def derive_nullifier_batch(
    nullifier_secrets: Sequence[int],
    leaf_indices: Sequence[int],
    scheme: HashScheme = DEFAULT_HASH,
) -> list[int]:
    """
    Derive one nullifier per (secret, index) pair.

    Raises:
        ValueError: If the two sequences differ in length.
    """
    if len(nullifier_secrets) != len(leaf_indices):
        raise ValueError(
            f"Secrets and indices must have the same length "
            f"({len(nullifier_secrets)} != {len(leaf_indices)})"
        )
    return [
        derive_nullifier(secret, index, scheme)
        for secret, index in zip(nullifier_secrets, leaf_indices)
    ]


@dataclass(frozen=True)
class NullifierWitness:
    """Private inputs proving knowledge of s with H(s, idx) = nullifier."""
    nullifier_secret: int
    leaf_index: int
    nullifier: int


def create_nullifier_witness(
    nullifier_secret: int,
    leaf_index: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> NullifierWitness:
    return NullifierWitness(
        nullifier_secret=nullifier_secret,
        leaf_index=leaf_index,
        nullifier=derive_nullifier(nullifier_secret, leaf_index, scheme),
    )


def verify_nullifier_derivation(
    witness: NullifierWitness,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    try:
        expected = derive_nullifier(witness.nullifier_secret, witness.leaf_index, scheme)
    except ValueError:
        return False
    return expected == witness.nullifier


def nullifier_to_felt(nullifier: int) -> str:
    return to_felt_hex(nullifier)


def felt_to_nullifier(felt: str) -> int:
    return felt_to_int(felt)


async def is_nullifier_spent(
    nullifier: int,
    contract_read: Callable[[str], Awaitable[bool]],
) -> bool:
    """
    Ask the pool contract whether a nullifier has been revealed.

    The RPC itself belongs to the caller; contract_read receives the
    nullifier as a hex felt.
    """
    spent = await contract_read(nullifier_to_felt(nullifier))
    logger.debug(f"Nullifier {nullifier_to_felt(nullifier)[:18]}... spent={spent}")
    return bool(spent)


# ==============================================================================
# Key images
# ==============================================================================


def derive_key_image(
    private_key: int,
    public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> ECPoint:
    """
    Derive the key image I = sk · H_p(PK).

    H_p maps the public key to a curve point by try-and-increment over
    H(PK.x, PK.y), so I is a real curve point and the same key always yields
    the same image. Try-and-increment is not constant time.

    Raises:
        ValueError: If the private key is zero or the public key is infinity.
    """
    if mod(private_key, CURVE_ORDER) == 0:
        raise ValueError("private_key must be non-zero modulo the curve order")
    if is_infinity(public_key):
        raise ValueError("public_key must not be the point at infinity")
    seed = scheme.hash_many([public_key.x, public_key.y])
    base = hash_to_curve(seed, scheme)
    return scalar_mult(private_key, base)


async def is_key_image_used(
    key_image: ECPoint,
    contract_read: Callable[[str, str], Awaitable[bool]],
) -> bool:
    x_hex, y_hex = key_image.to_felts()
    return bool(await contract_read(x_hex, y_hex))


# ==============================================================================
# Stealth nullifiers and view tags
# ==============================================================================


def derive_stealth_nullifier(
    view_key: int,
    spend_key: int,
    ephemeral_public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """Nullifier for a stealth output: H(view_key, spend_key, R.x, R.y)."""
    return scalar_hash(
        [view_key, spend_key, ephemeral_public_key.x, ephemeral_public_key.y], scheme
    )


def view_tag_shared_secret(
    scalar: int,
    point: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """
    Hash of the ECDH point scalar · point.

    The sender computes it as r · viewPK and the receiver as viewSK · R;
    both yield the same point and therefore the same secret.
    """
    shared_point = scalar_mult(scalar, point)
    if is_infinity(shared_point):
        raise ValueError("ECDH produced the point at infinity")
    return scheme.hash_many([shared_point.x, shared_point.y])


def derive_view_tag(
    shared_secret: int,
    output_index: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """The low 16 bits of H(shared_secret, output_index)."""
    return scalar_hash([shared_secret, output_index], scheme) & VIEW_TAG_MASK


def match_view_tag(
    view_private_key: int,
    ephemeral_public_key: ECPoint,
    output_index: int,
    expected_tag: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    """
    Receiver-side scan filter.

    A match only means "probably mine" (1 in 65536 false positives); the
    caller still has to check the full stealth key.
    """
    try:
        shared = view_tag_shared_secret(view_private_key, ephemeral_public_key, scheme)
    except ValueError:
        return False
    return derive_view_tag(shared, output_index, scheme) == expected_tag


def generate_view_tag_for_output(
    ephemeral_secret: int,
    view_public_key: ECPoint,
    output_index: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """Sender-side view tag for a freshly created stealth output."""
    shared = view_tag_shared_secret(ephemeral_secret, view_public_key, scheme)
    return derive_view_tag(shared, output_index, scheme)
