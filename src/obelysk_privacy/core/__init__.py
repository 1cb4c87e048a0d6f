"""core module init"""
from obelysk_privacy.core.errors import (
    DiscreteLogNotFoundError,
    InsufficientBalanceError,
    InvalidPointError,
    MalformedSerializationError,
    NotInvertibleError,
    OutOfRangeError,
    PrivacyError,
    StorageReadError,
)
from obelysk_privacy.core.config import NetworkConfig, PrivacySettings
from obelysk_privacy.core.models import PrivacyNote

__all__ = [
    "DiscreteLogNotFoundError",
    "InsufficientBalanceError",
    "InvalidPointError",
    "MalformedSerializationError",
    "NetworkConfig",
    "NotInvertibleError",
    "OutOfRangeError",
    "PrivacyError",
    "PrivacyNote",
    "PrivacySettings",
    "StorageReadError",
]
