"""
Composite proof for a confidential transfer.

Provides:
- TransferProof: ownership, amount encryption, amount range, new-balance
  range and balance consistency parts with a fixed felt layout
- generate_transfer_proof / verify_transfer_proof

Statement proven by the sender (amount a hidden throughout):
    PK_s = sk·G                                  (Schnorr ownership)
    (c1, c2) = (r·G, a·H + r·PK_r)               (receiver ciphertext)
    C_a = a·G + r_a·H,  0 ≤ a < 2^bits           (amount encryption + range)
    C_new = b'·G + r'·H,  0 ≤ b' < 2^bits        (new balance range)
    C_old - C_new - C_a = (r_old - r' - r_a)·H   (balance consistency)

Wire order of to_felts():
    [ownership (4), receiver ciphertext (4), C_a (2),
     amount encryption proof (10), amount range proof (2 + 10·bits),
     C_new (2), balance range proof (2 + 10·bits), consistency proof (4)]
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
    ECPoint,
    felt_to_int,
    mod,
    random_scalar,
    scalar_mult,
    validate_point,
)
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext, encrypt
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme
from obelysk_privacy.crypto.pedersen import commit
from obelysk_privacy.crypto.range_proof import (
    BIT_LENGTH,
    MAX_BIT_LENGTH,
    RangeProof,
    balance_residue,
    generate_range_proof,
    verify_range_proof,
)
from obelysk_privacy.crypto.sigma import (
    AmountEncryptionProof,
    BlindingProof,
    SchnorrProof,
    generate_amount_encryption_proof,
    generate_blinding_proof,
    generate_schnorr_proof,
    verify_amount_encryption_proof,
    verify_blinding_proof,
    verify_schnorr_proof,
)

logger = logging.getLogger("obelysk_privacy.transfer")


@dataclass(frozen=True)
class TransferProof:
    """
    Everything a confidential transfer submits alongside its ciphertext.

    Attributes:
        ownership_proof: Schnorr proof for the sender's public key.
        receiver_ciphertext: ElGamal encryption of the amount to the receiver.
        amount_commitment: C_a = a·G + r_a·H.
        encryption_proof: Ties receiver_ciphertext and amount_commitment to one amount.
        amount_range_proof: Range proof on amount_commitment.
        new_balance_commitment: C_new for the sender's remaining balance.
        balance_range_proof: Range proof on new_balance_commitment.
        consistency_proof: Blinding proof on C_old - C_new - C_a.
    """
    ownership_proof: SchnorrProof
    receiver_ciphertext: ElGamalCiphertext
    amount_commitment: ECPoint
    encryption_proof: AmountEncryptionProof
    amount_range_proof: RangeProof
    new_balance_commitment: ECPoint
    balance_range_proof: RangeProof
    consistency_proof: BlindingProof

    def to_felts(self) -> list[str]:
        """Flatten to contract calldata in the fixed order given in the module docstring."""
        return [
            *self.ownership_proof.to_felts(),
            *self.receiver_ciphertext.to_felts(),
            *self.amount_commitment.to_felts(),
            *self.encryption_proof.to_felts(),
            *self.amount_range_proof.to_felts(),
            *self.new_balance_commitment.to_felts(),
            *self.balance_range_proof.to_felts(),
            *self.consistency_proof.to_felts(),
        ]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> TransferProof:
        """
        Parse a transfer proof produced by to_felts.

        Raises:
            MalformedSerializationError: If the array is truncated, carries
                trailing elements, or a range proof header is invalid.
            InvalidPointError: If any point is off-curve.
        """
        reader = _FeltReader(felts)
        proof = cls(
            ownership_proof=SchnorrProof.from_felts(reader.take(4)),
            receiver_ciphertext=ElGamalCiphertext.from_felts(reader.take(4)),
            amount_commitment=ECPoint.from_felts(reader.take(2)),
            encryption_proof=AmountEncryptionProof.from_felts(reader.take(10)),
            amount_range_proof=RangeProof.from_felts(reader.take_range_proof()),
            new_balance_commitment=ECPoint.from_felts(reader.take(2)),
            balance_range_proof=RangeProof.from_felts(reader.take_range_proof()),
            consistency_proof=BlindingProof.from_felts(reader.take(4)),
        )
        reader.finish()
        return proof


class _FeltReader:
    """Sequential cursor over a felt array."""

    def __init__(self, felts: Sequence[int | str]):
        self.felts = list(felts)
        self.pos = 0

    def take(self, count: int) -> list[int | str]:
        end = self.pos + count
        if end > len(self.felts):
            raise MalformedSerializationError(
                f"Transfer proof truncated: need {end} felts, got {len(self.felts)}"
            )
        chunk = self.felts[self.pos:end]
        self.pos = end
        return chunk

    def take_range_proof(self) -> list[int | str]:
        if self.pos >= len(self.felts):
            raise MalformedSerializationError("Transfer proof truncated before a range proof")
        bits = felt_to_int(self.felts[self.pos])
        if not 1 <= bits <= MAX_BIT_LENGTH:
            raise MalformedSerializationError(f"Invalid bit count in range proof: {bits}")
        return self.take(2 + 10 * bits)

    def finish(self) -> None:
        if self.pos != len(self.felts):
            raise MalformedSerializationError(
                f"Transfer proof has {len(self.felts) - self.pos} trailing felts"
            )


def generate_transfer_proof(
    private_key: int,
    receiver_public_key: ECPoint,
    amount: int,
    old_balance: int,
    old_blinding: int,
    randomness: int | None = None,
    amount_blinding: int | None = None,
    new_blinding: int | None = None,
    bits: int = BIT_LENGTH,
    scheme: HashScheme = DEFAULT_HASH,
) -> TransferProof:
    """
    Build the full proof for sending amount out of a committed balance.

    Args:
        private_key: Sender's secret key.
        receiver_public_key: Receiver's ElGamal public key.
        amount: Amount to send (must be positive).
        old_balance: Sender's current balance, opening C_old with old_blinding.
        old_blinding: Blinding factor of C_old.
        randomness: ElGamal randomness for the receiver ciphertext; pass it
            explicitly when AE hints must be keyed to the same value.
        amount_blinding: Blinding for C_a; random when omitted.
        new_blinding: Blinding for C_new; random when omitted.
        bits: Range proof width for the amount and the new balance.
        scheme: Hash scheme for Fiat-Shamir.

    Raises:
        InvalidPointError: If receiver_public_key is off-curve.
        OutOfRangeError: If amount is not in [1, 2^bits) or bits is unsupported.
        InsufficientBalanceError: If amount exceeds old_balance.
    """
    validate_point(receiver_public_key)
    if amount <= 0:
        raise OutOfRangeError(f"Transfer amount must be positive, got {amount}")
    if old_balance < amount:
        raise InsufficientBalanceError(f"Insufficient balance: {old_balance} < {amount}")

    sender_public_key = scalar_mult(private_key, G)
    r = random_scalar() if randomness is None else mod(randomness, CURVE_ORDER)
    r_a = random_scalar() if amount_blinding is None else mod(amount_blinding, CURVE_ORDER)
    r_new = random_scalar() if new_blinding is None else mod(new_blinding, CURVE_ORDER)
    new_balance = old_balance - amount

    ciphertext = encrypt(amount, receiver_public_key, randomness=r)
    amount_commitment = commit(amount, r_a)
    new_commitment = commit(new_balance, r_new)
    residue = balance_residue(commit(old_balance, old_blinding), new_commitment, amount_commitment)

    proof = TransferProof(
        ownership_proof=generate_schnorr_proof(private_key, sender_public_key, scheme),
        receiver_ciphertext=ciphertext,
        amount_commitment=amount_commitment,
        encryption_proof=generate_amount_encryption_proof(
            amount, r, r_a, receiver_public_key, ciphertext, amount_commitment, scheme
        ),
        amount_range_proof=generate_range_proof(amount, r_a, bits, scheme),
        new_balance_commitment=new_commitment,
        balance_range_proof=generate_range_proof(new_balance, r_new, bits, scheme),
        consistency_proof=generate_blinding_proof(
            mod(old_blinding - r_new - r_a, CURVE_ORDER), residue, scheme
        ),
    )
    logger.debug(f"Generated {bits}-bit transfer proof")
    return proof


def verify_transfer_proof(
    proof: TransferProof,
    sender_public_key: ECPoint,
    receiver_public_key: ECPoint,
    old_commitment: ECPoint,
    bits: int = BIT_LENGTH,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    """
    Verify every part of a transfer proof.

    Returns:
        True only if ownership, encryption, both range proofs and the balance
        consistency proof all hold; False otherwise.
    """
    try:
        if not verify_schnorr_proof(proof.ownership_proof, sender_public_key, scheme):
            logger.debug("Transfer proof rejected: ownership")
            return False
        if not verify_amount_encryption_proof(
            proof.encryption_proof,
            receiver_public_key,
            proof.receiver_ciphertext,
            proof.amount_commitment,
            scheme,
        ):
            logger.debug("Transfer proof rejected: amount encryption")
            return False
        if not verify_range_proof(proof.amount_range_proof, proof.amount_commitment, bits, scheme):
            logger.debug("Transfer proof rejected: amount range")
            return False
        if not verify_range_proof(proof.balance_range_proof, proof.new_balance_commitment, bits, scheme):
            logger.debug("Transfer proof rejected: balance range")
            return False
        residue = balance_residue(old_commitment, proof.new_balance_commitment, proof.amount_commitment)
        return verify_blinding_proof(proof.consistency_proof, residue, scheme)
    except ValueError:
        return False
