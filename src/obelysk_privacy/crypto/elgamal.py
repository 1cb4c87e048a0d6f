"""
Additively homomorphic ElGamal over the Stark curve.

Provides:
- ElGamalCiphertext: (c1, c2) pair with the fixed 4-felt wire layout
- encrypt / decrypt (bounded baby-step/giant-step on base H)
- Homomorphic add / subtract / scalar multiply, re-randomization
- verify_ciphertext: well-formedness (both points on the curve)

Mathematical foundation:
    Enc(m; r) = (r·G, m·H + r·PK)          PK = sk·G
    Dec:       m·H = c2 - sk·c1,  then m = log_H(m·H) for m ≤ max_value

    The message lives on H, not G, so the amount cannot be read off via a
    discrete log against the well-known generator, and the c2 term lines up
    with Pedersen commitments v·G + r·H used elsewhere in the pool.

    Enc(a) + Enc(b) = Enc(a + b)       k·Enc(m) = Enc(k·m)

References:
    [ElG85] T. ElGamal, "A Public Key Cryptosystem and a Signature Scheme
            Based on Discrete Logarithms", IEEE Trans. IT-31, 1985.
    [Sha71] D. Shanks, "Class number, a theory of factorization, and
            genera", 1971 (baby-step/giant-step).
"""

from __future__ import annotations

import functools
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from obelysk_privacy.core.errors import DiscreteLogNotFoundError, MalformedSerializationError
from obelysk_privacy.crypto.curve import (
    G,
    H,
    POINT_AT_INFINITY,
    ECPoint,
    add_points,
    felt_to_int,
    is_on_curve,
    negate_point,
    random_scalar,
    scalar_mult,
    to_felt_hex,
    validate_point,
)

logger = logging.getLogger("obelysk_privacy.elgamal")

# Largest plaintext searched by default (~1.1e12)
DEFAULT_MAX_VALUE = 2**40


@dataclass(frozen=True)
class ElGamalCiphertext:
    """
    An ElGamal ciphertext.

    Attributes:
        c1: r·G, the ephemeral randomness point.
        c2: m·H + r·PK, the masked amount.
    """
    c1: ECPoint
    c2: ECPoint

    def to_felts(self) -> list[str]:
        """Serialize as [c1.x, c1.y, c2.x, c2.y] hex felts."""
        return [
            to_felt_hex(self.c1.x),
            to_felt_hex(self.c1.y),
            to_felt_hex(self.c2.x),
            to_felt_hex(self.c2.y),
        ]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> ElGamalCiphertext:
        """
        Parse a ciphertext from exactly 4 felts.

        Raises:
            MalformedSerializationError: If the element count is not 4.
            InvalidPointError: If either point is off-curve.
        """
        if len(felts) != 4:
            raise MalformedSerializationError(f"Expected 4 felts for a ciphertext, got {len(felts)}")
        values = [felt_to_int(f) for f in felts]
        return cls(
            c1=validate_point(ECPoint(values[0], values[1])),
            c2=validate_point(ECPoint(values[2], values[3])),
        )


# ==============================================================================
# Encryption
# ==============================================================================


def encrypt(message: int, public_key: ECPoint, randomness: int | None = None) -> ElGamalCiphertext:
    """
    Encrypt an amount to a public key.

    Args:
        message: The amount m (encoded on H).
        public_key: Receiver's PK = sk·G.
        randomness: Ephemeral scalar r; drawn from the CSPRNG when omitted.

    Returns:
        ElGamalCiphertext (r·G, m·H + r·PK).
    """
    r = random_scalar() if randomness is None else randomness
    c1 = scalar_mult(r, G)
    c2 = add_points(scalar_mult(message, H), scalar_mult(r, public_key))
    return ElGamalCiphertext(c1=c1, c2=c2)


def decrypt_to_point(ciphertext: ElGamalCiphertext, private_key: int) -> ECPoint:
    """Strip the mask and return m·H = c2 - sk·c1."""
    return add_points(ciphertext.c2, negate_point(scalar_mult(private_key, ciphertext.c1)))


def decrypt(
    ciphertext: ElGamalCiphertext,
    private_key: int,
    max_value: int = DEFAULT_MAX_VALUE,
) -> int:
    """
    Decrypt an amount by bounded discrete log on H.

    Cost is O(√max_value) point additions.

    Raises:
        DiscreteLogNotFoundError: If the plaintext is larger than max_value
            (or the wrong key was used).
    """
    return discrete_log_h(decrypt_to_point(ciphertext, private_key), max_value)


@functools.lru_cache(maxsize=2)
def _baby_steps(step: int) -> dict[tuple[int, int], int]:
    logger.debug(f"Building baby-step table with {step + 1} entries")
    table: dict[tuple[int, int], int] = {}
    current = POINT_AT_INFINITY
    for i in range(step + 1):
        table.setdefault((current.x, current.y), i)
        current = add_points(current, H)
    return table


def discrete_log_h(target: ECPoint, max_value: int = DEFAULT_MAX_VALUE) -> int:
    """
    Find m in [0, max_value] with m·H == target (baby-step/giant-step).

    Baby-step tables are memoised per step size, so repeated decryptions
    with the same bound only pay for the giant steps. Each table holds
    √max_value + 1 points (about 1M entries at the default bound, a few
    hundred MB), and only the two most recent step sizes are kept.

    Raises:
        ValueError: If max_value is negative.
        DiscreteLogNotFoundError: If no such m exists in range.
    """
    if max_value < 0:
        raise ValueError(f"max_value must be non-negative, got {max_value}")
    step = math.isqrt(max_value - 1) + 1 if max_value > 0 else 1
    baby = _baby_steps(step)
    giant = negate_point(scalar_mult(step, H))

    current = target
    for j in range(step + 1):
        i = baby.get((current.x, current.y))
        if i is not None:
            m = j * step + i
            if m > max_value:
                break
            return m
        current = add_points(current, giant)

    raise DiscreteLogNotFoundError(f"Discrete log not found within [0, {max_value}]")


# ==============================================================================
# Homomorphic operations
# ==============================================================================


def add_ciphertexts(a: ElGamalCiphertext, b: ElGamalCiphertext) -> ElGamalCiphertext:
    """Enc(m1) + Enc(m2) = Enc(m1 + m2)."""
    return ElGamalCiphertext(c1=add_points(a.c1, b.c1), c2=add_points(a.c2, b.c2))


def subtract_ciphertexts(a: ElGamalCiphertext, b: ElGamalCiphertext) -> ElGamalCiphertext:
    """Enc(m1) - Enc(m2) = Enc(m1 - m2)."""
    return ElGamalCiphertext(
        c1=add_points(a.c1, negate_point(b.c1)),
        c2=add_points(a.c2, negate_point(b.c2)),
    )


def scalar_mult_ciphertext(k: int, ciphertext: ElGamalCiphertext) -> ElGamalCiphertext:
    """k·Enc(m) = Enc(k·m)."""
    return ElGamalCiphertext(c1=scalar_mult(k, ciphertext.c1), c2=scalar_mult(k, ciphertext.c2))


def rerandomize(
    ciphertext: ElGamalCiphertext,
    public_key: ECPoint,
    randomness: int | None = None,
) -> ElGamalCiphertext:
    """Add a fresh Enc(0): new ciphertext bytes, same plaintext."""
    return add_ciphertexts(ciphertext, encrypt(0, public_key, randomness))


def verify_ciphertext(ciphertext: ElGamalCiphertext) -> bool:
    return is_on_curve(ciphertext.c1) and is_on_curve(ciphertext.c2)
