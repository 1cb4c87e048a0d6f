"""
Error taxonomy for the privacy engine.

Generators and constructors raise these when they can detect an invariant
violation locally. Verifiers return False on an invalid proof instead of
raising, and lookups that can legitimately miss (AE hints, Merkle
proofs) return None so callers can fall back without exception-driven
control flow.
"""

from __future__ import annotations


class PrivacyError(Exception):
    """Base class for all errors raised by obelysk_privacy."""
    pass


class InvalidPointError(PrivacyError, ValueError):
    """Raised when coordinates are malformed or do not lie on the Stark curve."""
    pass


class NotInvertibleError(PrivacyError, ValueError):
    """Raised when a modular inverse is requested for a value sharing a factor with the modulus."""
    pass


class OutOfRangeError(PrivacyError, ValueError):
    """Raised when a value does not fit the declared bit-width of a range proof."""
    pass


class InsufficientBalanceError(OutOfRangeError):
    """Raised when a balance update would leave a negative balance."""
    pass


class MalformedSerializationError(PrivacyError, ValueError):
    """Raised when a felt array has the wrong element count or an unparseable element."""
    pass


class DiscreteLogNotFoundError(PrivacyError):
    """Raised when the bounded baby-step/giant-step search is exhausted."""
    pass


class StorageReadError(PrivacyError):
    """Raised when a remote storage read fails or times out."""
    pass
