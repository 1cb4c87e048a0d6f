"""
Authenticated-encryption hints for O(1) balance decryption.

An ElGamal ciphertext on H can only be opened by a discrete-log search.
Alongside it the sender publishes a short hint, symmetric-encrypted under
the same ECDH secret, that the receiver opens with a few hashes.

Provides:
- AEHint: (encrypted_amount, nonce, mac), 3 felts on the wire
- create_ae_hint / decrypt_ae_hint: ECDH between two long-term keys
- create_ae_hint_from_randomness / decrypt_ae_hint_from_ciphertext: reuse the
  ElGamal randomness r, so the receiver derives the secret from c1 = r·G
- TransferHintBundle: sender, receiver and optional auditor hints
- hybrid_decrypt: hint first, bounded baby-step/giant-step as fallback

Key schedule:
    shared  = H(P.x, P.y)                    P = r·PK_recv = sk_recv·c1
    enc_key = H(shared, nonce, "AEGENCHINT")
    mac_key = H(shared, nonce, "AEGMACKEY")
    enc     = amount XOR (enc_key mod 2^128)
    mac     = H(mac_key, enc, nonce)

Amounts are 128-bit; the keystream is truncated to 128 bits so the
ciphertext always stays inside the field.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from obelysk_privacy.core.errors import (
    DiscreteLogNotFoundError,
    MalformedSerializationError,
    OutOfRangeError,
)
from obelysk_privacy.crypto.curve import (
    STARK_PRIME,
    ECPoint,
    felt_to_int,
    is_infinity,
    random_scalar,
    scalar_mult,
    to_felt_hex,
)
from obelysk_privacy.crypto.elgamal import DEFAULT_MAX_VALUE, ElGamalCiphertext, decrypt
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme, short_string_to_felt

logger = logging.getLogger("obelysk_privacy.ae_hints")

AMOUNT_BITS = 128
_AMOUNT_MASK = (1 << AMOUNT_BITS) - 1

ENC_KEY_DOMAIN = short_string_to_felt("AEGENCHINT")
MAC_KEY_DOMAIN = short_string_to_felt("AEGMACKEY")
NONCE_DOMAIN = short_string_to_felt("AEHNONCE")


@dataclass(frozen=True)
class AEHint:
    encrypted_amount: int
    nonce: int
    mac: int

    def to_felts(self) -> list[str]:
        """Wire order: [encrypted_amount, nonce, mac]."""
        return [to_felt_hex(self.encrypted_amount), to_felt_hex(self.nonce), to_felt_hex(self.mac)]

    @classmethod
    def from_felts(cls, felts: Sequence[int | str]) -> AEHint:
        if len(felts) != 3:
            raise MalformedSerializationError(f"Expected 3 felts for an AE hint, got {len(felts)}")
        enc, nonce, mac = (felt_to_int(f) for f in felts)
        return cls(encrypted_amount=enc, nonce=nonce, mac=mac)


@dataclass(frozen=True)
class TransferHintBundle:
    """Hints published with one confidential transfer."""
    sender_hint: AEHint
    receiver_hint: AEHint
    auditor_hint: AEHint | None = None


# ==============================================================================
# Key schedule
# ==============================================================================


def derive_shared_secret(
    private_key: int,
    public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """ECDH: H(x, y) of private_key · public_key."""
    point = scalar_mult(private_key, public_key)
    if is_infinity(point):
        raise ValueError("ECDH produced the point at infinity")
    return scheme.hash_many([point.x, point.y])


def _encryption_key(shared: int, nonce: int, scheme: HashScheme) -> int:
    return scheme.hash_many([shared, nonce, ENC_KEY_DOMAIN])


def _mac_key(shared: int, nonce: int, scheme: HashScheme) -> int:
    return scheme.hash_many([shared, nonce, MAC_KEY_DOMAIN])


def _compute_mac(mac_key: int, encrypted: int, nonce: int, scheme: HashScheme) -> int:
    return scheme.hash_many([mac_key, encrypted, nonce])


def _macs_equal(a: int, b: int) -> bool:
    if not (0 <= a < STARK_PRIME and 0 <= b < STARK_PRIME):
        return False
    return hmac.compare_digest(a.to_bytes(32, "big"), b.to_bytes(32, "big"))


def _check_amount(amount: int) -> None:
    if not 0 <= amount <= _AMOUNT_MASK:
        raise OutOfRangeError(f"AE hint amount must fit in {AMOUNT_BITS} bits, got {amount}")


def _seal(amount: int, shared: int, nonce: int, scheme: HashScheme) -> AEHint:
    _check_amount(amount)
    encrypted = amount ^ (_encryption_key(shared, nonce, scheme) & _AMOUNT_MASK)
    mac = _compute_mac(_mac_key(shared, nonce, scheme), encrypted, nonce, scheme)
    return AEHint(encrypted_amount=encrypted, nonce=nonce, mac=mac)


def _open(hint: AEHint, shared: int, scheme: HashScheme) -> int | None:
    expected = _compute_mac(_mac_key(shared, hint.nonce, scheme), hint.encrypted_amount, hint.nonce, scheme)
    if not _macs_equal(expected, hint.mac):
        logger.warning("AE hint MAC verification failed")
        return None
    amount = hint.encrypted_amount ^ (_encryption_key(shared, hint.nonce, scheme) & _AMOUNT_MASK)
    if amount > _AMOUNT_MASK:
        logger.warning("AE hint decrypted to a value wider than 128 bits")
        return None
    return amount


# ==============================================================================
# Hint creation and decryption
# ==============================================================================


def create_ae_hint(
    amount: int,
    sender_private_key: int,
    receiver_public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> AEHint:
    """
    Create a hint under ECDH(sender_sk, receiver_pk) with a random nonce.

    Raises:
        OutOfRangeError: If amount does not fit in 128 bits.
    """
    shared = derive_shared_secret(sender_private_key, receiver_public_key, scheme)
    return _seal(amount, shared, random_scalar(), scheme)


def create_ae_hint_from_randomness(
    amount: int,
    randomness: int,
    receiver_public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> AEHint:
    """
    Create a hint keyed by the ElGamal randomness r of the matching ciphertext.

    The shared point r·PK equals sk·c1, and the nonce H(r, "AEHNONCE") is
    deterministic, so the receiver needs nothing beyond the ciphertext.
    """
    shared = derive_shared_secret(randomness, receiver_public_key, scheme)
    nonce = scheme.hash_many([randomness, NONCE_DOMAIN])
    return _seal(amount, shared, nonce, scheme)


def decrypt_ae_hint(
    hint: AEHint,
    receiver_private_key: int,
    sender_public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> int | None:
    """
    Open a hint in O(1).

    Returns:
        The amount, or None when the MAC does not verify (wrong key or a
        tampered hint). Never returns a wrong number.
    """
    try:
        shared = derive_shared_secret(receiver_private_key, sender_public_key, scheme)
    except ValueError:
        logger.warning("AE hint ECDH failed")
        return None
    return _open(hint, shared, scheme)


def decrypt_ae_hint_from_ciphertext(
    hint: AEHint,
    ciphertext: ElGamalCiphertext,
    receiver_private_key: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> int | None:
    """Open a hint using the ciphertext's c1 = r·G as the sender's ephemeral key."""
    return decrypt_ae_hint(hint, receiver_private_key, ciphertext.c1, scheme)


def verify_ae_hint(
    hint: AEHint,
    ciphertext: ElGamalCiphertext,
    receiver_private_key: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    return decrypt_ae_hint_from_ciphertext(hint, ciphertext, receiver_private_key, scheme) is not None


def create_transfer_hint_bundle(
    transfer_amount: int,
    sender_new_balance: int,
    randomness: int,
    sender_public_key: ECPoint,
    receiver_public_key: ECPoint,
    auditor_public_key: ECPoint | None = None,
    scheme: HashScheme = DEFAULT_HASH,
) -> TransferHintBundle:
    """
    Hints for one transfer: the sender's new balance, the receiver's incoming
    amount and, optionally, the transfer amount for a compliance auditor.
    """
    auditor_hint = None
    if auditor_public_key is not None:
        auditor_hint = create_ae_hint_from_randomness(
            transfer_amount, randomness, auditor_public_key, scheme
        )
    return TransferHintBundle(
        sender_hint=create_ae_hint_from_randomness(
            sender_new_balance, randomness, sender_public_key, scheme
        ),
        receiver_hint=create_ae_hint_from_randomness(
            transfer_amount, randomness, receiver_public_key, scheme
        ),
        auditor_hint=auditor_hint,
    )


def batch_decrypt_ae_hints(
    hints: Iterable[tuple[AEHint, ElGamalCiphertext]],
    receiver_private_key: int,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """Sum of all hints that verify; hints that fail the MAC are skipped."""
    total = 0
    skipped = 0
    for hint, ciphertext in hints:
        amount = decrypt_ae_hint_from_ciphertext(hint, ciphertext, receiver_private_key, scheme)
        if amount is None:
            skipped += 1
            continue
        total += amount
    if skipped:
        logger.warning(f"Skipped {skipped} AE hints that failed verification")
    return total


def hybrid_decrypt(
    ciphertext: ElGamalCiphertext,
    private_key: int,
    hint: AEHint | None = None,
    max_value: int = DEFAULT_MAX_VALUE,
    scheme: HashScheme = DEFAULT_HASH,
) -> int:
    """
    Decrypt via the hint when possible, otherwise by discrete-log search.

    Raises:
        DiscreteLogNotFoundError: If the hint is missing or invalid and the
            plaintext exceeds max_value.
    """
    if hint is not None:
        amount = decrypt_ae_hint_from_ciphertext(hint, ciphertext, private_key, scheme)
        if amount is not None:
            logger.debug("AE hint decryption succeeded")
            return amount
        logger.warning("AE hint decryption failed, falling back to baby-step/giant-step")

    logger.info(f"Decrypting by baby-step/giant-step (bound {max_value})")
    try:
        return decrypt(ciphertext, private_key, max_value)
    except DiscreteLogNotFoundError:
        logger.error(f"Discrete log not found within bound {max_value}")
        raise
