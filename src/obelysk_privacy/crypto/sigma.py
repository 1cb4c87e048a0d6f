"""
Sigma-protocol proofs made non-interactive with Fiat-Shamir.

Provides:
- compute_challenge: transcript hash over points, integers and strings
- SchnorrProof: knowledge of sk with PK = sk·G
- PedersenOpeningProof: knowledge of (v, r) with C = v·G + r·H
- BlindingProof: knowledge of r with P = r·H
- AmountEncryptionProof: an ElGamal ciphertext and a commitment hide the same amount
- SameEncryptionProof: two ElGamal ciphertexts share the same randomness r

Mathematical foundation:
    Schnorr:   A = k·G,  c = H(G, PK, A),  s = k + c·sk
               verify s·G == A + c·PK
    Opening:   A = k_v·G + k_r·H,  e = H(G, H, C, A)
               s_v = k_v + e·v,  s_r = k_r + e·r
               verify s_v·G + s_r·H == A + e·C
    Blinding:  A = k·H,  c = H(H, P, A),  s = k + c·r
               verify s·H == A + c·P
    Same-enc:  A = k·G,  c = H(G, c1_a, c1_b, A),  s = k + c·r
               verify s·G == A + c·c1_a  and  c1_a == c1_b

    Verifiers always recompute the challenge from the transcript, so a
    proof with a substituted challenge is rejected.

References:
    [Sch91] C.P. Schnorr, "Efficient Signature Generation by Smart Cards",
            J. Cryptology 4(3), 1991.
    [FS86]  A. Fiat, A. Shamir, "How to Prove Yourself", CRYPTO '86.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from obelysk_privacy.core.errors import MalformedSerializationError
from obelysk_privacy.crypto.curve import (
    CURVE_ORDER,
    STARK_PRIME,
    G,
    H,
    ECPoint,
    add_points,
    felt_to_int,
    is_on_curve,
    mod,
    random_scalar,
    scalar_mult,
    to_felt_hex,
    validate_point,
)
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme

ChallengeInput = ECPoint | int | str


def compute_challenge(*inputs: ChallengeInput, scheme: HashScheme = DEFAULT_HASH) -> int:
    """
    Fiat-Shamir challenge over a proof transcript.

    Points contribute (x, y), integers are reduced modulo p, and strings are
    encoded as the big-endian integer of their UTF-8 bytes. The digest is
    reduced modulo the curve order; an empty transcript yields 0.
    """
    values: list[int] = []
    for item in inputs:
        if isinstance(item, ECPoint):
            values.append(mod(item.x, STARK_PRIME))
            values.append(mod(item.y, STARK_PRIME))
        elif isinstance(item, str):
            values.append(mod(int.from_bytes(item.encode("utf-8"), "big"), STARK_PRIME))
        elif isinstance(item, int) and not isinstance(item, bool):
            values.append(mod(item, STARK_PRIME))
        else:
            raise TypeError(f"Unsupported challenge input type: {type(item).__name__}")
    if not values:
        return 0
    return mod(scheme.hash_many(values), CURVE_ORDER)


def _parse_felts(felts: Sequence[int | str], expected: int, name: str) -> list[int]:
    if len(felts) != expected:
        raise MalformedSerializationError(f"Expected {expected} felts for {name}, got {len(felts)}")
    return [felt_to_int(f) for f in felts]


# ==============================================================================
# Schnorr proof of key ownership
# ==============================================================================


@dataclass(frozen=True)
class SchnorrProof:
    """
    Proof of knowledge of sk with PK = sk·G.

    Attributes:
        commitment: A = k·G.
        response: s = k + c·sk mod n.
        challenge: c = H(G, PK, A).
    """
    commitment: ECPoint
    response: int
    challenge: int

    def to_felts(self) -> list[str]:
        """Wire order: [A.x, A.y, s, c]."""
        return [*self.commitment.to_felts(), to_felt_hex(self.response), to_felt_hex(self.challenge)]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> SchnorrProof:
        ax, ay, s, c = _parse_felts(felts, 4, "a Schnorr proof")
        return cls(commitment=validate_point(ECPoint(ax, ay)), response=s, challenge=c)


def generate_schnorr_proof(
    private_key: int,
    public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> SchnorrProof:
    """
    Prove ownership of public_key.

    Raises:
        ValueError: If public_key != private_key·G.
    """
    if scalar_mult(private_key, G) != public_key:
        raise ValueError("public_key does not match private_key")
    k = random_scalar()
    commitment = scalar_mult(k, G)
    challenge = compute_challenge(G, public_key, commitment, scheme=scheme)
    response = mod(k + challenge * private_key, CURVE_ORDER)
    return SchnorrProof(commitment=commitment, response=response, challenge=challenge)


def verify_schnorr_proof(
    proof: SchnorrProof,
    public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    try:
        if not (is_on_curve(proof.commitment) and is_on_curve(public_key)):
            return False
        expected = compute_challenge(G, public_key, proof.commitment, scheme=scheme)
        if proof.challenge != expected:
            return False
        lhs = scalar_mult(proof.response, G)
        rhs = add_points(proof.commitment, scalar_mult(proof.challenge, public_key))
        return lhs == rhs
    except ValueError:
        return False


# ==============================================================================
# Pedersen opening proof
# ==============================================================================


@dataclass(frozen=True)
class PedersenOpeningProof:
    """
    Proof of knowledge of an opening (v, r) of C = v·G + r·H.

    Attributes:
        commitment: A = k_v·G + k_r·H.
        challenge: e = H(G, H, C, A).
        value_response: s_v = k_v + e·v mod n.
        blinding_response: s_r = k_r + e·r mod n.
    """
    commitment: ECPoint
    challenge: int
    value_response: int
    blinding_response: int

    def to_felts(self) -> list[str]:
        """Wire order: [A.x, A.y, e, s_v, s_r]."""
        return [
            *self.commitment.to_felts(),
            to_felt_hex(self.challenge),
            to_felt_hex(self.value_response),
            to_felt_hex(self.blinding_response),
        ]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> PedersenOpeningProof:
        ax, ay, e, s_v, s_r = _parse_felts(felts, 5, "an opening proof")
        return cls(
            commitment=validate_point(ECPoint(ax, ay)),
            challenge=e,
            value_response=s_v,
            blinding_response=s_r,
        )


def generate_opening_proof(
    value: int,
    blinding: int,
    commitment: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> PedersenOpeningProof:
    k_v = random_scalar()
    k_r = random_scalar()
    nonce_commitment = add_points(scalar_mult(k_v, G), scalar_mult(k_r, H))
    challenge = compute_challenge(G, H, commitment, nonce_commitment, scheme=scheme)
    return PedersenOpeningProof(
        commitment=nonce_commitment,
        challenge=challenge,
        value_response=mod(k_v + challenge * value, CURVE_ORDER),
        blinding_response=mod(k_r + challenge * blinding, CURVE_ORDER),
    )


def verify_opening_proof(
    proof: PedersenOpeningProof,
    commitment: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    try:
        if not (is_on_curve(proof.commitment) and is_on_curve(commitment)):
            return False
        expected = compute_challenge(G, H, commitment, proof.commitment, scheme=scheme)
        if proof.challenge != expected:
            return False
        lhs = add_points(
            scalar_mult(proof.value_response, G),
            scalar_mult(proof.blinding_response, H),
        )
        rhs = add_points(proof.commitment, scalar_mult(proof.challenge, commitment))
        return lhs == rhs
    except ValueError:
        return False


# ==============================================================================
# Blinding proof (discrete log on H)
# ==============================================================================


@dataclass(frozen=True)
class BlindingProof:
    """
    Proof of knowledge of r with P = r·H.

    Used on the residue of a balance update, C_old - C_new - spent = Δr·H,
    which only has this form when the committed values balance.

    Attributes:
        commitment: A = k·H.
        response: s = k + c·r mod n.
        challenge: c = H(H, P, A).
    """
    commitment: ECPoint
    response: int
    challenge: int

    def to_felts(self) -> list[str]:
        """Wire order: [A.x, A.y, s, c]."""
        return [*self.commitment.to_felts(), to_felt_hex(self.response), to_felt_hex(self.challenge)]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> BlindingProof:
        ax, ay, s, c = _parse_felts(felts, 4, "a blinding proof")
        return cls(commitment=validate_point(ECPoint(ax, ay)), response=s, challenge=c)


def generate_blinding_proof(
    blinding: int,
    target: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> BlindingProof:
    """
    Prove knowledge of blinding with target = blinding·H.

    Raises:
        ValueError: If target != blinding·H.
    """
    if scalar_mult(blinding, H) != target:
        raise ValueError("target is not blinding·H")
    k = random_scalar()
    commitment = scalar_mult(k, H)
    challenge = compute_challenge(H, target, commitment, scheme=scheme)
    response = mod(k + challenge * blinding, CURVE_ORDER)
    return BlindingProof(commitment=commitment, response=response, challenge=challenge)


def verify_blinding_proof(
    proof: BlindingProof,
    target: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    try:
        if not (is_on_curve(proof.commitment) and is_on_curve(target)):
            return False
        expected = compute_challenge(H, target, proof.commitment, scheme=scheme)
        if proof.challenge != expected:
            return False
        lhs = scalar_mult(proof.response, H)
        rhs = add_points(proof.commitment, scalar_mult(proof.challenge, target))
        return lhs == rhs
    except ValueError:
        return False


# ==============================================================================
# Amount encryption proof
# ==============================================================================


@dataclass(frozen=True)
class AmountEncryptionProof:
    """
    Proof that an ElGamal ciphertext and a Pedersen commitment hide the same amount.

    Witness (a, r, r_a) for c1 = r·G, c2 = a·H + r·PK and C_a = a·G + r_a·H.

    Attributes:
        randomness_commitment: A1 = k_r·G.
        masked_commitment: A2 = k_a·H + k_r·PK.
        value_commitment: A3 = k_a·G + k_b·H.
        challenge: e = H(G, H, PK, c1, c2, C_a, A1, A2, A3).
        amount_response: s_a = k_a + e·a.
        randomness_response: s_r = k_r + e·r.
        blinding_response: s_b = k_b + e·r_a.
    """
    randomness_commitment: ECPoint
    masked_commitment: ECPoint
    value_commitment: ECPoint
    challenge: int
    amount_response: int
    randomness_response: int
    blinding_response: int

    def to_felts(self) -> list[str]:
        """Wire order: [A1.x, A1.y, A2.x, A2.y, A3.x, A3.y, e, s_a, s_r, s_b]."""
        return [
            *self.randomness_commitment.to_felts(),
            *self.masked_commitment.to_felts(),
            *self.value_commitment.to_felts(),
            to_felt_hex(self.challenge),
            to_felt_hex(self.amount_response),
            to_felt_hex(self.randomness_response),
            to_felt_hex(self.blinding_response),
        ]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> AmountEncryptionProof:
        v = _parse_felts(felts, 10, "an amount encryption proof")
        return cls(
            randomness_commitment=validate_point(ECPoint(v[0], v[1])),
            masked_commitment=validate_point(ECPoint(v[2], v[3])),
            value_commitment=validate_point(ECPoint(v[4], v[5])),
            challenge=v[6],
            amount_response=v[7],
            randomness_response=v[8],
            blinding_response=v[9],
        )


def generate_amount_encryption_proof(
    amount: int,
    randomness: int,
    amount_blinding: int,
    public_key: ECPoint,
    ciphertext: ElGamalCiphertext,
    amount_commitment: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> AmountEncryptionProof:
    """
    Prove that ciphertext encrypts amount to public_key under randomness and
    that amount_commitment = amount·G + amount_blinding·H.

    Raises:
        ValueError: If the ciphertext or the commitment does not match the witness.
    """
    if scalar_mult(randomness, G) != ciphertext.c1:
        raise ValueError("ciphertext.c1 is not randomness·G")
    if add_points(scalar_mult(amount, H), scalar_mult(randomness, public_key)) != ciphertext.c2:
        raise ValueError("ciphertext.c2 does not encrypt amount to public_key")
    if add_points(scalar_mult(amount, G), scalar_mult(amount_blinding, H)) != amount_commitment:
        raise ValueError("amount_commitment does not open to amount")

    k_a, k_r, k_b = random_scalar(), random_scalar(), random_scalar()
    a1 = scalar_mult(k_r, G)
    a2 = add_points(scalar_mult(k_a, H), scalar_mult(k_r, public_key))
    a3 = add_points(scalar_mult(k_a, G), scalar_mult(k_b, H))
    challenge = compute_challenge(
        G, H, public_key, ciphertext.c1, ciphertext.c2, amount_commitment, a1, a2, a3,
        scheme=scheme,
    )
    return AmountEncryptionProof(
        randomness_commitment=a1,
        masked_commitment=a2,
        value_commitment=a3,
        challenge=challenge,
        amount_response=mod(k_a + challenge * amount, CURVE_ORDER),
        randomness_response=mod(k_r + challenge * randomness, CURVE_ORDER),
        blinding_response=mod(k_b + challenge * amount_blinding, CURVE_ORDER),
    )


def verify_amount_encryption_proof(
    proof: AmountEncryptionProof,
    public_key: ECPoint,
    ciphertext: ElGamalCiphertext,
    amount_commitment: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    try:
        points = (
            proof.randomness_commitment,
            proof.masked_commitment,
            proof.value_commitment,
            public_key,
            ciphertext.c1,
            ciphertext.c2,
            amount_commitment,
        )
        if not all(is_on_curve(p) for p in points):
            return False
        expected = compute_challenge(
            G, H, public_key, ciphertext.c1, ciphertext.c2, amount_commitment,
            proof.randomness_commitment, proof.masked_commitment, proof.value_commitment,
            scheme=scheme,
        )
        if proof.challenge != expected:
            return False

        e = proof.challenge
        s_a, s_r, s_b = proof.amount_response, proof.randomness_response, proof.blinding_response
        if scalar_mult(s_r, G) != add_points(proof.randomness_commitment, scalar_mult(e, ciphertext.c1)):
            return False
        lhs2 = add_points(scalar_mult(s_a, H), scalar_mult(s_r, public_key))
        if lhs2 != add_points(proof.masked_commitment, scalar_mult(e, ciphertext.c2)):
            return False
        lhs3 = add_points(scalar_mult(s_a, G), scalar_mult(s_b, H))
        return lhs3 == add_points(proof.value_commitment, scalar_mult(e, amount_commitment))
    except ValueError:
        return False


# ==============================================================================
# Same-encryption proof
# ==============================================================================


@dataclass(frozen=True)
class SameEncryptionProof:
    """
    Proof that two ciphertexts were built with the same randomness r.

    Attributes:
        commitment: A = k·G.
        response: s = k + c·r mod n.
        challenge: c = H(G, c1_a, c1_b, A).
    """
    commitment: ECPoint
    response: int
    challenge: int

    def to_felts(self) -> list[str]:
        """Wire order: [A.x, A.y, s, c]."""
        return [*self.commitment.to_felts(), to_felt_hex(self.response), to_felt_hex(self.challenge)]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> SameEncryptionProof:
        ax, ay, s, c = _parse_felts(felts, 4, "a same-encryption proof")
        return cls(commitment=validate_point(ECPoint(ax, ay)), response=s, challenge=c)


def generate_same_encryption_proof(
    randomness: int,
    ciphertext_a: ElGamalCiphertext,
    ciphertext_b: ElGamalCiphertext,
    scheme: HashScheme = DEFAULT_HASH,
) -> SameEncryptionProof:
    """
    Prove that both ciphertexts carry c1 = r·G.

    Raises:
        ValueError: If either ciphertext's c1 is not randomness·G.
    """
    expected_c1 = scalar_mult(randomness, G)
    if ciphertext_a.c1 != expected_c1 or ciphertext_b.c1 != expected_c1:
        raise ValueError("Ciphertexts were not both encrypted with the given randomness")
    k = random_scalar()
    commitment = scalar_mult(k, G)
    challenge = compute_challenge(G, ciphertext_a.c1, ciphertext_b.c1, commitment, scheme=scheme)
    response = mod(k + challenge * randomness, CURVE_ORDER)
    return SameEncryptionProof(commitment=commitment, response=response, challenge=challenge)


def verify_same_encryption_proof(
    proof: SameEncryptionProof,
    ciphertext_a: ElGamalCiphertext,
    ciphertext_b: ElGamalCiphertext,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    try:
        c1_a, c1_b = ciphertext_a.c1, ciphertext_b.c1
        if not (is_on_curve(proof.commitment) and is_on_curve(c1_a) and is_on_curve(c1_b)):
            return False
        expected = compute_challenge(G, c1_a, c1_b, proof.commitment, scheme=scheme)
        if proof.challenge != expected:
            return False
        lhs = scalar_mult(proof.response, G)
        rhs = add_points(proof.commitment, scalar_mult(proof.challenge, c1_a))
        if lhs != rhs:
            return False
        return c1_a == c1_b
    except ValueError:
        return False
