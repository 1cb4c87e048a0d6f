"""
Range and balance proofs over Pedersen commitments.

Provides:
- RangeProof: proves a committed value v satisfies 0 ≤ v < 2^bits
- BalanceProof: proves new_balance = old_balance - amount with new_balance ≥ 0

Architecture:
    The range proof is a bit decomposition in which every bit commitment
    carries a two-branch OR-Sigma proof ("C_i opens to 0 OR to 1"):

        v = Σ b_i·2^i,          C_i = b_i·G + r_i·H,       Σ r_i·2^i = r

    For each bit the prover runs the real branch honestly and simulates the
    other one (picks its challenge and response, then solves for its nonce
    commitment). A single aggregate Fiat-Shamir challenge covers every bit
    commitment and nonce commitment; bit i gets e_i = H(agg, i), split as
    e_0 + e_1 = e_i. The verifier checks

        s_0·H == R_0 + e_0·C_i              (C_i = r_i·H)
        s_1·H == R_1 + e_1·(C_i - G)        (C_i - G = r_i·H)
        Σ 2^i·C_i == C_v

    The last check ties the bits back to the claimed commitment; without it
    a prover could attach valid bits for an unrelated value.

    The balance proof commits to the new balance, range-proves it, and
    proves knowledge of Δr with C_old - C_new - amount·G = Δr·H for the
    public amount. The residue has no G component only when the values
    balance, so a prover cannot substitute a different amount.

References:
    [CDS94] R. Cramer, I. Damgård, B. Schoenmakers, "Proofs of Partial
            Knowledge and Simplified Design of Witness Hiding Protocols",
            CRYPTO '94 (OR-composition).
    [Ped91] T.P. Pedersen, "Non-Interactive and Information-Theoretic Secure
            Verifiable Secret Sharing", CRYPTO '91.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from obelysk_privacy.core.errors import (
    InsufficientBalanceError,
    MalformedSerializationError,
    OutOfRangeError,
)
from obelysk_privacy.crypto.curve import (
    CURVE_ORDER,
    G,
    H,
    POINT_AT_INFINITY,
    ECPoint,
    add_points,
    double_point,
    felt_to_int,
    is_on_curve,
    mod,
    mod_inverse,
    negate_point,
    random_scalar,
    scalar_mult,
    to_felt_hex,
    validate_point,
)
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme
from obelysk_privacy.crypto.pedersen import commit, subtract_commitments
from obelysk_privacy.crypto.sigma import (
    BlindingProof,
    compute_challenge,
    generate_blinding_proof,
    verify_blinding_proof,
)

logger = logging.getLogger("obelysk_privacy.range_proof")

# ==============================================================================
# Constants
# ==============================================================================

BIT_LENGTH = 64
"""Default number of bits for range proofs."""

MAX_BIT_LENGTH = CURVE_ORDER.bit_length() - 1
"""Largest supported bit width (251); 2^bits must stay below the curve order."""

# Felts per bit on the wire: C_i (2) + branch 0 (4) + branch 1 (4)
_FELTS_PER_BIT = 10


def _check_bits(bits: int) -> None:
    if not 1 <= bits <= MAX_BIT_LENGTH:
        raise OutOfRangeError(f"bits must be in [1, {MAX_BIT_LENGTH}], got {bits}")


# ==============================================================================
# Proof structures
# ==============================================================================


@dataclass(frozen=True)
class OrBranchProof:
    """One branch of a bit's OR-proof: (R, e, s)."""
    nonce_commitment: ECPoint
    challenge: int
    response: int


@dataclass(frozen=True)
class BitOrProof:
    """OR-proof that a bit commitment opens to 0 (proof0) or 1 (proof1)."""
    proof0: OrBranchProof
    proof1: OrBranchProof


@dataclass(frozen=True)
class RangeProof:
    """
    A range proof attesting that a Pedersen commitment hides a value in [0, 2^bits).

    Attributes:
        bit_commitments: C_i = b_i·G + r_i·H, least significant bit first.
        bit_or_proofs: One OR-proof per bit commitment.
        aggregate_challenge: Fiat-Shamir challenge over the whole transcript.
    """
    bit_commitments: tuple[ECPoint, ...]
    bit_or_proofs: tuple[BitOrProof, ...]
    aggregate_challenge: int

    @property
    def bits(self) -> int:
        return len(self.bit_commitments)

    def to_felts(self) -> list[str]:
        """
        Wire order:
            [bits,
             C_0.x, C_0.y, ..., C_{n-1}.x, C_{n-1}.y,
             for each bit: R0.x, R0.y, e0, s0, R1.x, R1.y, e1, s1,
             aggregate_challenge]
        """
        felts = [to_felt_hex(self.bits)]
        for c in self.bit_commitments:
            felts.extend(c.to_felts())
        for bit_proof in self.bit_or_proofs:
            for branch in (bit_proof.proof0, bit_proof.proof1):
                felts.extend(branch.nonce_commitment.to_felts())
                felts.append(to_felt_hex(branch.challenge))
                felts.append(to_felt_hex(branch.response))
        felts.append(to_felt_hex(self.aggregate_challenge))
        return felts

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> RangeProof:
        """
        Parse a range proof produced by to_felts.

        Raises:
            MalformedSerializationError: If the element count does not match
                the leading bit count.
            InvalidPointError: If any point is off-curve.
        """
        if not felts:
            raise MalformedSerializationError("Empty range proof encoding")
        values = [felt_to_int(f) for f in felts]
        bits = values[0]
        if not 1 <= bits <= MAX_BIT_LENGTH:
            raise MalformedSerializationError(f"Invalid bit count in range proof: {bits}")
        expected = 2 + bits * _FELTS_PER_BIT
        if len(values) != expected:
            raise MalformedSerializationError(
                f"Expected {expected} felts for a {bits}-bit range proof, got {len(values)}"
            )

        pos = 1
        commitments = []
        for _ in range(bits):
            commitments.append(validate_point(ECPoint(values[pos], values[pos + 1])))
            pos += 2

        or_proofs = []
        for _ in range(bits):
            branches = []
            for _branch in range(2):
                r = validate_point(ECPoint(values[pos], values[pos + 1]))
                branches.append(OrBranchProof(r, values[pos + 2], values[pos + 3]))
                pos += 4
            or_proofs.append(BitOrProof(proof0=branches[0], proof1=branches[1]))

        return cls(
            bit_commitments=tuple(commitments),
            bit_or_proofs=tuple(or_proofs),
            aggregate_challenge=values[pos],
        )


# ==============================================================================
# Range proof generation
# ==============================================================================


@dataclass
class _PreparedBit:
    bit: int
    blinding: int
    commitment: ECPoint
    k_real: int
    r_real: ECPoint
    e_sim: int
    s_sim: int
    r_sim: ECPoint

    def nonce_commitments(self) -> tuple[ECPoint, ECPoint]:
        """(R_0, R_1) in branch order."""
        if self.bit == 0:
            return self.r_real, self.r_sim
        return self.r_sim, self.r_real


class _RangeProofBuilder:
    """
    Short-lived prover state for one range proof.

    Holds, per bit, which branch is real and the simulated branch's values.
    Discarded once build() returns.
    """

    def __init__(self, value: int, blinding: int, bits: int, scheme: HashScheme):
        self.value = value
        self.blinding = mod(blinding, CURVE_ORDER)
        self.bits = bits
        self.scheme = scheme
        self.prepared: list[_PreparedBit] = []

    def _bit_blindings(self) -> list[int]:
        # r_i random for i < n-1; the last one solves Σ r_i·2^i = r
        blindings: list[int] = []
        remaining = self.blinding
        for i in range(self.bits - 1):
            r_i = random_scalar()
            blindings.append(r_i)
            remaining = mod(remaining - r_i * (1 << i), CURVE_ORDER)
        last_weight_inv = mod_inverse(1 << (self.bits - 1), CURVE_ORDER)
        blindings.append(mod(remaining * last_weight_inv, CURVE_ORDER))
        return blindings

    def _prepare(self) -> None:
        neg_g = negate_point(G)
        for i, r_i in enumerate(self._bit_blindings()):
            bit = (self.value >> i) & 1
            r_h = scalar_mult(r_i, H)
            c_i = add_points(G, r_h) if bit else r_h

            k_real = random_scalar()
            e_sim = random_scalar()
            s_sim = random_scalar()
            # Simulated statement: "C_i - G = r·H" when b=0, "C_i = r·H" when b=1
            target = add_points(c_i, neg_g) if bit == 0 else c_i
            r_sim = add_points(scalar_mult(s_sim, H), negate_point(scalar_mult(e_sim, target)))

            self.prepared.append(_PreparedBit(
                bit=bit,
                blinding=r_i,
                commitment=c_i,
                k_real=k_real,
                r_real=scalar_mult(k_real, H),
                e_sim=e_sim,
                s_sim=s_sim,
                r_sim=r_sim,
            ))

    def build(self) -> RangeProof:
        self._prepare()
        commitments = [p.commitment for p in self.prepared]
        nonces = [r for p in self.prepared for r in p.nonce_commitments()]
        aggregate = compute_challenge(G, H, *commitments, *nonces, self.bits, scheme=self.scheme)

        or_proofs = []
        for i, p in enumerate(self.prepared):
            per_bit = compute_challenge(aggregate, i, scheme=self.scheme)
            e_real = mod(per_bit - p.e_sim, CURVE_ORDER)
            s_real = mod(p.k_real + e_real * p.blinding, CURVE_ORDER)
            real = OrBranchProof(p.r_real, e_real, s_real)
            simulated = OrBranchProof(p.r_sim, p.e_sim, p.s_sim)
            if p.bit == 0:
                or_proofs.append(BitOrProof(proof0=real, proof1=simulated))
            else:
                or_proofs.append(BitOrProof(proof0=simulated, proof1=real))

        return RangeProof(
            bit_commitments=tuple(commitments),
            bit_or_proofs=tuple(or_proofs),
            aggregate_challenge=aggregate,
        )


def generate_range_proof(
    value: int,
    blinding: int,
    bits: int = BIT_LENGTH,
    scheme: HashScheme = DEFAULT_HASH,
) -> RangeProof:
    """
    Generate a range proof that value ∈ [0, 2^bits) for C = value·G + blinding·H.

    Args:
        value: The committed value.
        blinding: The commitment's blinding factor r.
        bits: Bit width of the range (1..MAX_BIT_LENGTH, default 64).
        scheme: Hash scheme for Fiat-Shamir.

    Returns:
        A RangeProof verifiable against commit(value, blinding).

    Raises:
        OutOfRangeError: If value is outside [0, 2^bits) or bits is unsupported.
    """
    _check_bits(bits)
    if value < 0 or value >= (1 << bits):
        raise OutOfRangeError(f"Value {value} out of range [0, 2^{bits})")
    proof = _RangeProofBuilder(value, blinding, bits, scheme).build()
    logger.debug(f"Generated {bits}-bit range proof")
    return proof


def _weighted_sum(commitments: Sequence[ECPoint]) -> ECPoint:
    # Horner: Σ 2^i·C_i = C_0 + 2·(C_1 + 2·(C_2 + ...))
    acc = POINT_AT_INFINITY
    for c in reversed(commitments):
        acc = add_points(double_point(acc), c)
    return acc


def verify_range_proof(
    proof: RangeProof,
    value_commitment: ECPoint,
    bits: int = BIT_LENGTH,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    """
    Verify a range proof against the claimed value commitment.

    Returns:
        True if every bit OR-proof holds under the recomputed challenges and
        Σ 2^i·C_i == value_commitment, False otherwise.
    """
    if not 1 <= bits <= MAX_BIT_LENGTH:
        return False
    if len(proof.bit_commitments) != bits or len(proof.bit_or_proofs) != bits:
        return False

    try:
        nonces: list[ECPoint] = []
        for bit_proof in proof.bit_or_proofs:
            nonces.append(bit_proof.proof0.nonce_commitment)
            nonces.append(bit_proof.proof1.nonce_commitment)
        if not all(is_on_curve(p) for p in (*proof.bit_commitments, *nonces, value_commitment)):
            return False

        expected = compute_challenge(G, H, *proof.bit_commitments, *nonces, bits, scheme=scheme)
        if proof.aggregate_challenge != expected:
            return False

        neg_g = negate_point(G)
        for i, (c_i, bit_proof) in enumerate(zip(proof.bit_commitments, proof.bit_or_proofs)):
            p0, p1 = bit_proof.proof0, bit_proof.proof1
            per_bit = compute_challenge(proof.aggregate_challenge, i, scheme=scheme)
            if mod(p0.challenge + p1.challenge, CURVE_ORDER) != per_bit:
                return False

            lhs0 = scalar_mult(p0.response, H)
            rhs0 = add_points(p0.nonce_commitment, scalar_mult(p0.challenge, c_i))
            if lhs0 != rhs0:
                return False

            lhs1 = scalar_mult(p1.response, H)
            rhs1 = add_points(p1.nonce_commitment, scalar_mult(p1.challenge, add_points(c_i, neg_g)))
            if lhs1 != rhs1:
                return False

        return _weighted_sum(proof.bit_commitments) == value_commitment

    except ValueError:
        return False


# ==============================================================================
# Balance proof
# ==============================================================================


@dataclass(frozen=True)
class BalanceProof:
    """
    Proof that a balance update is consistent and non-negative.

    The spent amount is a public input to the verifier.

    Attributes:
        new_balance_commitment: C_new = (old - amount)·G + r_new·H.
        range_proof: Range proof on the new balance.
        consistency_proof: Blinding proof for C_old - C_new - amount·G = (r_old - r_new)·H.
    """
    new_balance_commitment: ECPoint
    range_proof: RangeProof
    consistency_proof: BlindingProof


def balance_residue(old_commitment: ECPoint, new_commitment: ECPoint, spent: ECPoint) -> ECPoint:
    """C_old - C_new - spent; equals Δr·H exactly when the committed values balance."""
    return subtract_commitments(subtract_commitments(old_commitment, new_commitment), spent)


def generate_balance_proof(
    old_balance: int,
    amount: int,
    old_blinding: int,
    new_blinding: int | None = None,
    bits: int = BIT_LENGTH,
    scheme: HashScheme = DEFAULT_HASH,
) -> BalanceProof:
    """
    Prove new_balance = old_balance - amount and new_balance ≥ 0.

    Args:
        old_balance: Current balance (opening of C_old with old_blinding).
        amount: Amount being spent; the verifier receives it in the clear.
        old_blinding: Blinding factor of C_old.
        new_blinding: Blinding for the new commitment; random when omitted.
        bits: Range proof width for the new balance.
        scheme: Hash scheme for Fiat-Shamir.

    Raises:
        InsufficientBalanceError: If amount exceeds old_balance.
        OutOfRangeError: If amount is negative or wider than bits, or the
            new balance does not fit in bits.
    """
    _check_bits(bits)
    if amount < 0 or amount >= (1 << bits):
        raise OutOfRangeError(f"amount {amount} out of range [0, 2^{bits})")
    new_balance = old_balance - amount
    if new_balance < 0:
        raise InsufficientBalanceError(
            f"Insufficient balance: {old_balance} < {amount}"
        )

    r_new = random_scalar() if new_blinding is None else mod(new_blinding, CURVE_ORDER)
    new_commitment = commit(new_balance, r_new)
    range_proof = generate_range_proof(new_balance, r_new, bits, scheme)

    residue = balance_residue(commit(old_balance, old_blinding), new_commitment, scalar_mult(amount, G))
    consistency = generate_blinding_proof(mod(old_blinding - r_new, CURVE_ORDER), residue, scheme)

    return BalanceProof(
        new_balance_commitment=new_commitment,
        range_proof=range_proof,
        consistency_proof=consistency,
    )


def verify_balance_proof(
    proof: BalanceProof,
    old_commitment: ECPoint,
    amount: int,
    bits: int = BIT_LENGTH,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    """
    Verify a balance proof against the old balance commitment and the spent amount.

    Checks 0 ≤ amount < 2^bits, the range proof on the new commitment, and
    the blinding proof on C_old - C_new - amount·G.
    """
    if not 1 <= bits <= MAX_BIT_LENGTH or not 0 <= amount < (1 << bits):
        return False
    try:
        if not verify_range_proof(proof.range_proof, proof.new_balance_commitment, bits, scheme):
            return False
        residue = balance_residue(old_commitment, proof.new_balance_commitment, scalar_mult(amount, G))
        return verify_blinding_proof(proof.consistency_proof, residue, scheme)
    except ValueError:
        return False
