"""
API module for obelysk-privacy.

Provides a FastAPI coordinator that serves Merkle proofs from a cached
on-chain tree.
"""

from obelysk_privacy.api.models import InvalidateResponse, ProofResponse

__all__ = [
    "InvalidateResponse",
    "ProofResponse",
]
