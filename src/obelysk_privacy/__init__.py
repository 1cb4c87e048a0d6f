"""
obelysk-privacy: client-side privacy engine for Obelysk pools on Starknet.

Usage:
    from obelysk_privacy import commit, encrypt, generate_key_pair
    from obelysk_privacy.merkle import OnChainMerkleProver
"""

from obelysk_privacy.core.config import PrivacySettings
from obelysk_privacy.core.models import PrivacyNote
from obelysk_privacy.crypto.curve import ECPoint, generate_key_pair
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext, decrypt, encrypt
from obelysk_privacy.crypto.pedersen import commit, create_note

__version__ = "0.1.0"
__all__ = [
    "ECPoint",
    "ElGamalCiphertext",
    "PrivacyNote",
    "PrivacySettings",
    "commit",
    "create_note",
    "decrypt",
    "encrypt",
    "generate_key_pair",
]
