"""
obelysk_privacy.crypto — Stark-curve primitives for confidential balances.

Provides:
- Field and curve arithmetic, point codecs, hash-to-curve (curve)
- Pluggable Poseidon / Blake2b field hash (hashing)
- ElGamal on H with bounded discrete-log decryption (elgamal)
- Pedersen commitments and private notes (pedersen)
- Schnorr, opening, blinding, amount-encryption and same-encryption Sigma proofs (sigma)
- Bitwise OR-Sigma range proofs and balance proofs (range_proof)
- Composite confidential-transfer proofs (transfer)
- Nullifiers, key images and view tags (nullifier)
- Authenticated-encryption amount hints (ae_hints)
- Stealth addresses (stealth)
"""

from obelysk_privacy.crypto.ae_hints import (
    AEHint,
    TransferHintBundle,
    create_ae_hint,
    create_ae_hint_from_randomness,
    create_transfer_hint_bundle,
    decrypt_ae_hint,
    decrypt_ae_hint_from_ciphertext,
    hybrid_decrypt,
)
from obelysk_privacy.crypto.curve import (
    CURVE_ORDER,
    STARK_PRIME,
    G,
    H,
    ECPoint,
    PrivacyKeyPair,
    compress_point,
    decompress_point,
    generate_key_pair,
    hash_to_curve,
    is_on_curve,
    scalar_mult,
)
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext, decrypt, encrypt
from obelysk_privacy.crypto.hashing import (
    DEFAULT_HASH,
    Blake2bFieldHash,
    HashScheme,
    PoseidonHash,
    get_hash_scheme,
)
from obelysk_privacy.crypto.nullifier import derive_key_image, derive_nullifier, derive_view_tag
from obelysk_privacy.crypto.pedersen import NoteData, commit, create_note
from obelysk_privacy.crypto.range_proof import (
    BalanceProof,
    RangeProof,
    generate_balance_proof,
    generate_range_proof,
    verify_balance_proof,
    verify_range_proof,
)
from obelysk_privacy.crypto.sigma import (
    AmountEncryptionProof,
    BlindingProof,
    PedersenOpeningProof,
    SameEncryptionProof,
    SchnorrProof,
    compute_challenge,
)
from obelysk_privacy.crypto.stealth import derive_stealth_address, recover_stealth_key
from obelysk_privacy.crypto.transfer import (
    TransferProof,
    generate_transfer_proof,
    verify_transfer_proof,
)

__all__ = [
    "CURVE_ORDER",
    "DEFAULT_HASH",
    "STARK_PRIME",
    "AEHint",
    "AmountEncryptionProof",
    "BalanceProof",
    "BlindingProof",
    "Blake2bFieldHash",
    "ECPoint",
    "ElGamalCiphertext",
    "G",
    "H",
    "HashScheme",
    "NoteData",
    "PedersenOpeningProof",
    "PoseidonHash",
    "PrivacyKeyPair",
    "RangeProof",
    "SameEncryptionProof",
    "SchnorrProof",
    "TransferHintBundle",
    "TransferProof",
    "commit",
    "compress_point",
    "compute_challenge",
    "create_ae_hint",
    "create_ae_hint_from_randomness",
    "create_note",
    "create_transfer_hint_bundle",
    "decompress_point",
    "decrypt",
    "decrypt_ae_hint",
    "decrypt_ae_hint_from_ciphertext",
    "derive_key_image",
    "derive_nullifier",
    "derive_stealth_address",
    "derive_view_tag",
    "encrypt",
    "generate_balance_proof",
    "generate_key_pair",
    "generate_range_proof",
    "generate_transfer_proof",
    "get_hash_scheme",
    "hash_to_curve",
    "hybrid_decrypt",
    "is_on_curve",
    "recover_stealth_key",
    "scalar_mult",
    "verify_balance_proof",
    "verify_range_proof",
    "verify_transfer_proof",
]
