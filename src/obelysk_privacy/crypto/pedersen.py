"""
Pedersen commitments for privacy pool notes.

Provides:
- derive_h_generator: NUMS (Nothing-Up-My-Sleeve) re-derivation of H
- commit / verify_opening / open_commitment over the Stark curve
- Homomorphic add / subtract / scalar multiply over commitments
- commitment_to_felt: the single-felt leaf ID stored in the pool's Merkle tree
- NoteData: (value, blinding, nullifier secret, commitment) and its JSON codec
- Fixed-denomination conversions for the pool's deposit sizes

Mathematical foundation:
    C = v·G + r·H
    where H = hash_to_curve("OBELYSK_PEDERSEN_H_V1") has unknown discrete log
    w.r.t. G, so C is perfectly hiding and computationally binding.
    C(a, r1) + C(b, r2) = C(a + b, r1 + r2 mod n)

References:
    [Ped91] T.P. Pedersen, "Non-Interactive and Information-Theoretic Secure
            Verifiable Secret Sharing", CRYPTO '91, §3.
    [H2C]   IETF draft-irtf-cfrg-hash-to-curve, §5 (try-and-increment method).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from obelysk_privacy.core.errors import MalformedSerializationError
from obelysk_privacy.crypto.curve import (
    CURVE_ORDER,
    G,
    ECPoint,
    add_points,
    get_pedersen_h,
    hash_to_curve,
    is_on_curve,
    mod,
    negate_point,
    random_scalar,
    scalar_mult,
    to_felt_hex,
    validate_point,
)
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme

__all__ = [
    "PEDERSEN_H_DOMAIN",
    "PRIVACY_DENOMINATIONS",
    "NoteData",
    "add_commitments",
    "commit",
    "commit_with_random_blinding",
    "commitment_to_contract_format",
    "commitment_to_felt",
    "create_note",
    "derive_h_generator",
    "deserialize_note",
    "fixed_denomination_to_value",
    "get_pedersen_h",
    "is_supported_denomination",
    "open_commitment",
    "scalar_mult_commitment",
    "serialize_note",
    "subtract_commitments",
    "value_to_fixed_denomination",
    "verify_commitment",
    "verify_opening",
]

PEDERSEN_H_DOMAIN = "OBELYSK_PEDERSEN_H_V1"

# Pool deposit sizes, in whole tokens
PRIVACY_DENOMINATIONS: tuple[Decimal, ...] = (
    Decimal("0.1"),
    Decimal("1"),
    Decimal("10"),
    Decimal("100"),
    Decimal("1000"),
)


def derive_h_generator(scheme: HashScheme = DEFAULT_HASH) -> ECPoint:
    """
    Re-derive the secondary generator H from its domain tag.

    With the Poseidon scheme this reproduces get_pedersen_h() exactly.
    """
    return hash_to_curve(PEDERSEN_H_DOMAIN, scheme)


# ==============================================================================
# Commitments
# ==============================================================================


def commit(value: int, blinding: int) -> ECPoint:
    """
    Create a Pedersen commitment C = v·G + r·H.

    Both inputs are reduced modulo the curve order, so the function is
    total and deterministic for fixed (v, r).
    """
    v_g = scalar_mult(mod(value, CURVE_ORDER), G)
    r_h = scalar_mult(mod(blinding, CURVE_ORDER), get_pedersen_h())
    return add_points(v_g, r_h)


def commit_with_random_blinding(value: int) -> tuple[ECPoint, int]:
    """Commit with a fresh blinding factor; returns (commitment, blinding)."""
    blinding = random_scalar()
    return commit(value, blinding), blinding


def verify_opening(commitment: ECPoint, value: int, blinding: int) -> bool:
    """Check that C == v·G + r·H."""
    try:
        return commit(value, blinding) == commitment
    except ValueError:
        return False


def open_commitment(commitment: ECPoint, value: int) -> ECPoint:
    """Strip the value term: C - v·G = r·H."""
    return add_points(commitment, negate_point(scalar_mult(mod(value, CURVE_ORDER), G)))


def add_commitments(c1: ECPoint, c2: ECPoint) -> ECPoint:
    return add_points(c1, c2)


def subtract_commitments(c1: ECPoint, c2: ECPoint) -> ECPoint:
    return add_points(c1, negate_point(c2))


def scalar_mult_commitment(k: int, commitment: ECPoint) -> ECPoint:
    """k·C = C(k·v, k·r)."""
    return scalar_mult(k, commitment)


def verify_commitment(commitment: ECPoint) -> bool:
    return is_on_curve(commitment)


def commitment_to_felt(commitment: ECPoint, scheme: HashScheme = DEFAULT_HASH) -> str:
    """Collapse a commitment to H(C.x, C.y), the leaf value inserted on-chain."""
    return to_felt_hex(scheme.hash_many([commitment.x, commitment.y]))


def commitment_to_contract_format(commitment: ECPoint) -> dict[str, str]:
    return {"x": to_felt_hex(commitment.x), "y": to_felt_hex(commitment.y)}


# ==============================================================================
# Notes
# ==============================================================================


@dataclass(frozen=True)
class NoteData:
    """
    The secret material behind one pool deposit.

    Attributes:
        value: Amount in base units (wei).
        blinding: Commitment blinding factor r.
        nullifier_secret: Secret s for nullifier = H(s, leaf_index).
        commitment: C = value·G + blinding·H.
    """
    value: int
    blinding: int
    nullifier_secret: int
    commitment: ECPoint


def create_note(value: int) -> NoteData:
    """
    Create a note with fresh blinding and nullifier secret.

    Raises:
        ValueError: If value is negative.
    """
    if value < 0:
        raise ValueError(f"value must be non-negative, got {value}")
    blinding = random_scalar()
    nullifier_secret = random_scalar()
    return NoteData(
        value=value,
        blinding=blinding,
        nullifier_secret=nullifier_secret,
        commitment=commit(value, blinding),
    )


def serialize_note(note: NoteData) -> str:
    """
    Serialize a note to JSON with decimal-string integers.

    The output is plaintext secret material; encrypting it at rest is the
    note store's job.
    """
    return json.dumps({
        "value": str(note.value),
        "blinding": str(note.blinding),
        "nullifierSecret": str(note.nullifier_secret),
        "commitment": {
            "x": str(note.commitment.x),
            "y": str(note.commitment.y),
        },
    })


def deserialize_note(data: str) -> NoteData:
    """
    Parse a note produced by serialize_note.

    Raises:
        MalformedSerializationError: On invalid JSON or missing fields.
        InvalidPointError: If the stored commitment is off-curve.
    """
    try:
        parsed = json.loads(data)
        note = NoteData(
            value=int(parsed["value"]),
            blinding=int(parsed["blinding"]),
            nullifier_secret=int(parsed["nullifierSecret"]),
            commitment=ECPoint(int(parsed["commitment"]["x"]), int(parsed["commitment"]["y"])),
        )
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise MalformedSerializationError(f"Invalid note encoding: {e}") from e
    validate_point(note.commitment)
    return note


# ==============================================================================
# Denominations
# ==============================================================================


def value_to_fixed_denomination(value: int | str | Decimal, decimals: int = 18) -> int:
    """
    Scale a human-readable amount to base units with exact decimal arithmetic.

    Example: value_to_fixed_denomination("0.1") == 10**17.

    Raises:
        ValueError: If the value is negative or decimals is negative.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    amount = Decimal(str(value))
    if amount < 0:
        raise ValueError(f"value must be non-negative, got {value}")
    scaled = amount.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(scaled)


def fixed_denomination_to_value(fixed_value: int, decimals: int = 18) -> Decimal:
    """Inverse of value_to_fixed_denomination."""
    return Decimal(fixed_value).scaleb(-decimals)


def is_supported_denomination(value: int | str | Decimal) -> bool:
    try:
        return Decimal(str(value)) in PRIVACY_DENOMINATIONS
    except ArithmeticError:
        return False
