"""
Stark field and curve arithmetic.

Provides:
- Modular helpers: mod, mod_inverse (extended Euclid), mod_pow, sqrt_mod (Tonelli-Shanks)
- ECPoint: affine point on the Stark curve, with (0, 0) as the point at infinity
- Point predicates, negation, addition, doubling and scalar multiplication
- Compressed-point and felt-array codecs
- Cryptographically secure scalar and key-pair generation

Mathematical foundation:
    E: y² = x³ + α·x + β  over F_p
    p = 2^251 + 17·2^192 + 1,  α = 1
    G generates the prime-order group of size n = CURVE_ORDER.
    H is a second generator with unknown discrete log w.r.t. G
    (hash-to-curve of "OBELYSK_PEDERSEN_H_V1", see pedersen.derive_h_generator).

Scalar multiplication runs on ecdsa's PointJacobi over STARK_CURVE and
converts back to an affine ECPoint; the result is identical to repeated
add_points.

References:
    [SEC1]  SEC 1: Elliptic Curve Cryptography v2, §2.2.1 (group law), §2.3.4 (point decompression).
    [Stark] StarkWare, "STARK curve", https://docs.starkware.co/starkex/crypto/stark-curve.html
"""

from __future__ import annotations

import secrets
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import ecdsa.ellipticcurve as ec

from obelysk_privacy.core.errors import (
    InvalidPointError,
    MalformedSerializationError,
    NotInvertibleError,
)

if TYPE_CHECKING:
    from obelysk_privacy.crypto.hashing import HashScheme

# ==============================================================================
# Stark curve constants
# ==============================================================================

# Field prime
STARK_PRIME = 0x800000000000011000000000000000000000000000000000000000000000001

# Group order
CURVE_ORDER = 0x800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F

# Curve coefficients: y² = x³ + ALPHA·x + BETA
ALPHA = 1
BETA = 0x6F21413EFBE40DE150E596D72F7A8C5609AD26C15C915C1F4CDFCB99CEE9E89

GENERATOR_X = 0x1EF15C18599971B7BECED415A40F0C7DEACFD9B0D1819E03D723D8BC943CFCA
GENERATOR_Y = 0x5668060AA49730B7BE4801DF46EC62DE53ECD11ABE43A32873000C36E8DC1F

PEDERSEN_H_X = 0x49EE3EBA8C1600700EE1B87EB599F16716B0B1022947733551FDE4050CA6804
PEDERSEN_H_Y = 0x3CA0CFE4B3BC6DDF346D49D06EA0ED34E621062C0E056C1D0405D266E10268A

# The Stark curve as an ecdsa curve object (membership checks and scalar multiplication)
STARK_CURVE = ec.CurveFp(STARK_PRIME, ALPHA, BETA)


# ==============================================================================
# Modular arithmetic
# ==============================================================================


def mod(a: int, m: int) -> int:
    """Return a reduced into [0, m), also for negative a."""
    result = a % m
    return result + m if result < 0 else result


def mod_inverse(a: int, m: int) -> int:
    """
    Modular inverse via the extended Euclidean algorithm.

    Raises:
        NotInvertibleError: If gcd(a, m) != 1 (this includes a ≡ 0 mod m).
    """
    if m <= 0:
        raise ValueError(f"modulus must be positive, got {m}")
    old_r, r = mod(a, m), m
    old_s, s = 1, 0
    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_s, s = s, old_s - quotient * s
    if old_r != 1:
        raise NotInvertibleError(f"{a:#x} has no inverse modulo {m:#x}")
    return mod(old_s, m)


def mod_pow(base: int, exp: int, m: int) -> int:
    """Square-and-multiply modular exponentiation. Returns 0 when m == 1."""
    if exp < 0:
        raise ValueError(f"exponent must be non-negative, got {exp}")
    if m == 1:
        return 0
    result = 1
    base = mod(base, m)
    while exp > 0:
        if exp & 1:
            result = result * base % m
        exp >>= 1
        base = base * base % m
    return result


def sqrt_mod(n: int, p: int = STARK_PRIME) -> int | None:
    """
    Square root modulo an odd prime via Tonelli-Shanks.

    The Stark prime satisfies p ≡ 1 (mod 4) with p - 1 = 2^192 · q, so the
    (p+1)/4 shortcut does not apply and the full algorithm is required.

    Returns:
        A root r with r² ≡ n (mod p), or None if n is a non-residue.
    """
    n = mod(n, p)
    if n == 0:
        return 0
    if p == 2:
        return n
    # Euler criterion
    if mod_pow(n, (p - 1) // 2, p) != 1:
        return None
    if p % 4 == 3:
        return mod_pow(n, (p + 1) // 4, p)

    # Factor p - 1 = q · 2^s
    q, s = p - 1, 0
    while q % 2 == 0:
        q //= 2
        s += 1

    # Any quadratic non-residue z
    z = 2
    while mod_pow(z, (p - 1) // 2, p) != p - 1:
        z += 1

    m = s
    c = mod_pow(z, q, p)
    t = mod_pow(n, q, p)
    r = mod_pow(n, (q + 1) // 2, p)

    while t != 1:
        # Least i in (0, m) with t^(2^i) == 1
        i, t2i = 0, t
        while t2i != 1:
            t2i = t2i * t2i % p
            i += 1
            if i == m:
                return None
        b = mod_pow(c, 1 << (m - i - 1), p)
        m = i
        c = b * b % p
        t = t * c % p
        r = r * b % p
    return r


def felt_to_int(value: int | str) -> int:
    """Parse a felt given as an int, a 0x-prefixed hex string or a decimal string."""
    if isinstance(value, bool):
        raise MalformedSerializationError(f"Not a felt: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    except (AttributeError, ValueError) as e:
        raise MalformedSerializationError(f"Not a felt: {value!r}") from e


def to_felt_hex(value: int) -> str:
    """Encode a non-negative integer as a 0x-prefixed lowercase hex felt."""
    return hex(value)


# ==============================================================================
# ECPoint
# ==============================================================================


@dataclass(frozen=True)
class ECPoint:
    """
    An affine point on the Stark curve.

    The sentinel (0, 0) is the point at infinity; (0, 0) is not on the curve
    since β ≠ 0, so the encoding is unambiguous. Points built from in-memory
    integers are not validated; every deserialization path is.
    """
    x: int
    y: int

    def to_felts(self) -> list[str]:
        """Serialize as [x, y] hex felts (contract call order)."""
        return [to_felt_hex(self.x), to_felt_hex(self.y)]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> ECPoint:
        """
        Parse a point from exactly 2 felts.

        Raises:
            MalformedSerializationError: If the element count is not 2.
            InvalidPointError: If the point is not on the curve.
        """
        if len(felts) != 2:
            raise MalformedSerializationError(f"Expected 2 felts for a point, got {len(felts)}")
        point = cls(felt_to_int(felts[0]), felt_to_int(felts[1]))
        return validate_point(point)

    def __neg__(self) -> ECPoint:
        return negate_point(self)

    def __add__(self, other: ECPoint) -> ECPoint:
        return add_points(self, other)

    def __sub__(self, other: ECPoint) -> ECPoint:
        return add_points(self, negate_point(other))

    def __rmul__(self, k: int) -> ECPoint:
        return scalar_mult(k, self)


POINT_AT_INFINITY = ECPoint(0, 0)
INFINITY = POINT_AT_INFINITY

G = ECPoint(GENERATOR_X, GENERATOR_Y)
"""The Stark curve generator."""

H = ECPoint(PEDERSEN_H_X, PEDERSEN_H_Y)
"""Second generator for amount encoding and Pedersen commitments."""


def get_generator() -> ECPoint:
    return G


def get_pedersen_h() -> ECPoint:
    return H


# ==============================================================================
# Predicates and group law
# ==============================================================================


def is_infinity(p: ECPoint) -> bool:
    return p.x == 0 and p.y == 0


def is_on_curve(p: ECPoint) -> bool:
    """True for the infinity sentinel, otherwise checks y² = x³ + αx + β (mod p)."""
    if is_infinity(p):
        return True
    if not (0 <= p.x < STARK_PRIME and 0 <= p.y < STARK_PRIME):
        return False
    return STARK_CURVE.contains_point(p.x, p.y)


def validate_point(p: ECPoint) -> ECPoint:
    """Return p unchanged, or raise InvalidPointError if it is off-curve."""
    if not is_on_curve(p):
        raise InvalidPointError(f"Point ({p.x:#x}, {p.y:#x}) is not on the Stark curve")
    return p


def negate_point(p: ECPoint) -> ECPoint:
    if is_infinity(p):
        return POINT_AT_INFINITY
    return ECPoint(p.x, mod(-p.y, STARK_PRIME))


def add_points(p1: ECPoint, p2: ECPoint) -> ECPoint:
    """
    Affine point addition.

    Branches: O is the identity, P + (-P) = O, P + P uses the tangent slope.
    Inputs that share an x-coordinate without being equal or opposite are
    off-curve and raise NotInvertibleError.
    """
    if is_infinity(p1):
        return p2
    if is_infinity(p2):
        return p1

    if p1.x == p2.x and p1.y == mod(-p2.y, STARK_PRIME):
        return POINT_AT_INFINITY

    if p1.x == p2.x and p1.y == p2.y:
        numerator = mod(3 * p1.x * p1.x + ALPHA, STARK_PRIME)
        denominator = mod_inverse(2 * p1.y, STARK_PRIME)
    else:
        numerator = mod(p2.y - p1.y, STARK_PRIME)
        denominator = mod_inverse(p2.x - p1.x, STARK_PRIME)
    slope = numerator * denominator % STARK_PRIME

    x3 = mod(slope * slope - p1.x - p2.x, STARK_PRIME)
    y3 = mod(slope * (p1.x - x3) - p1.y, STARK_PRIME)
    return ECPoint(x3, y3)


def double_point(p: ECPoint) -> ECPoint:
    return add_points(p, p)


def _to_jacobian(p: ECPoint) -> ec.PointJacobi:
    return ec.PointJacobi(STARK_CURVE, p.x, p.y, 1, CURVE_ORDER)


def scalar_mult(k: int, p: ECPoint) -> ECPoint:
    """
    Compute k·P.

    Negative k negates the point and uses |k|; k is reduced modulo the
    curve order before multiplying.
    """
    if k == 0 or is_infinity(p):
        return POINT_AT_INFINITY
    if k < 0:
        k = -k
        p = negate_point(p)
    k = mod(k, CURVE_ORDER)
    if k == 0:
        return POINT_AT_INFINITY

    result = _to_jacobian(p) * k
    if result == ec.INFINITY:
        return POINT_AT_INFINITY
    return ECPoint(result.x(), result.y())


def points_equal(p1: ECPoint, p2: ECPoint) -> bool:
    return p1.x == p2.x and p1.y == p2.y


# ==============================================================================
# Compressed points
# ==============================================================================


def compress_point(point: ECPoint) -> str:
    """
    Encode a point as 66 hex chars: 02/03 sign byte + 32-byte big-endian x.

    Raises:
        InvalidPointError: If the point is the point at infinity.
    """
    if is_infinity(point):
        raise InvalidPointError("Cannot compress the point at infinity")
    prefix = "03" if point.y & 1 else "02"
    return prefix + format(point.x, "064x")


def decompress_point(compressed: str) -> ECPoint:
    """
    Decode a compressed point, recomputing y with Tonelli-Shanks.

    Raises:
        MalformedSerializationError: If the length or prefix is wrong.
        InvalidPointError: If x does not correspond to a curve point.
    """
    if len(compressed) != 66:
        raise MalformedSerializationError(
            f"Expected 66 hex chars for a compressed point, got {len(compressed)}"
        )
    prefix = compressed[:2]
    if prefix not in ("02", "03"):
        raise MalformedSerializationError(f"Invalid prefix byte: 0x{prefix}")
    try:
        x = int(compressed[2:], 16)
    except ValueError as e:
        raise MalformedSerializationError(f"Invalid hex in compressed point: {compressed!r}") from e
    if x >= STARK_PRIME:
        raise InvalidPointError(f"x-coordinate {x:#x} is not a field element")

    rhs = (x * x * x + ALPHA * x + BETA) % STARK_PRIME
    y = sqrt_mod(rhs, STARK_PRIME)
    if y is None:
        raise InvalidPointError(f"x-coordinate {x:#x} does not correspond to a curve point")

    sign_bit = 1 if prefix == "03" else 0
    if y & 1 != sign_bit:
        y = mod(-y, STARK_PRIME)
    return ECPoint(x, y)


# ==============================================================================
# Hash-to-curve (try-and-increment)
# ==============================================================================

MAX_HASH_TO_CURVE_ATTEMPTS = 1000


def hash_to_curve(domain: int | str, scheme: HashScheme | None = None) -> ECPoint:
    """
    Map a domain tag to a curve point with no known discrete log.

    Algorithm (try-and-increment):
        1. x = H(domain, counter) for counter = 0, 1, 2, ...
        2. Keep the first x for which x³ + x + β is a quadratic residue.
        3. y = sqrt(x³ + x + β), canonicalised to y ≤ p/2.

    The loop exits after a data-dependent number of hashes, so this is not
    constant time.

    Args:
        domain: Field element, or a Cairo short string such as "OBELYSK_PEDERSEN_H_V1".
        scheme: Hash scheme; defaults to the Starknet Poseidon hash.

    Returns:
        A point on the Stark curve.

    Raises:
        RuntimeError: If no valid point is found within the attempt budget.
    """
    from obelysk_privacy.crypto.hashing import DEFAULT_HASH, short_string_to_felt

    scheme = scheme or DEFAULT_HASH
    domain_felt = short_string_to_felt(domain) if isinstance(domain, str) else domain

    for counter in range(MAX_HASH_TO_CURVE_ATTEMPTS):
        x = scheme.hash_many([domain_felt, counter])
        rhs = (x * x * x + ALPHA * x + BETA) % STARK_PRIME
        y = sqrt_mod(rhs, STARK_PRIME)
        if y is None:
            continue
        if y > STARK_PRIME // 2:
            y = STARK_PRIME - y
        return ECPoint(x, y)

    raise RuntimeError(f"hash_to_curve failed after {MAX_HASH_TO_CURVE_ATTEMPTS} attempts")


def point_to_felts(point: ECPoint) -> list[str]:
    return point.to_felts()


def felts_to_point(felts: Sequence[int | str]) -> ECPoint:
    return ECPoint.from_felts(felts)


# ==============================================================================
# Randomness and keys
# ==============================================================================


def random_scalar() -> int:
    """A uniformly random scalar in [1, n-1] from the OS CSPRNG."""
    return secrets.randbelow(CURVE_ORDER - 1) + 1


@dataclass(frozen=True)
class PrivacyKeyPair:
    """An ElGamal / Schnorr key pair: public_key = private_key · G."""
    private_key: int
    public_key: ECPoint


def generate_key_pair() -> PrivacyKeyPair:
    private_key = random_scalar()
    return PrivacyKeyPair(private_key=private_key, public_key=scalar_mult(private_key, G))


def key_pair_from_private(private_key: int) -> PrivacyKeyPair:
    """Rebuild a key pair from a known private scalar."""
    private_key = mod(private_key, CURVE_ORDER)
    if private_key == 0:
        raise ValueError("private_key must be non-zero modulo the curve order")
    return PrivacyKeyPair(private_key=private_key, public_key=scalar_mult(private_key, G))
