"""
Wallet-side records for privacy pool notes.
All amounts are in base units (1 token = 10^18 units).
"""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field, field_validator

from obelysk_privacy.crypto.curve import ECPoint, validate_point
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme
from obelysk_privacy.crypto.nullifier import derive_nullifier
from obelysk_privacy.crypto.pedersen import NoteData

DEFAULT_TOKEN = "SAGE"


class PrivacyNote(BaseModel):
    """A deposit note as tracked by a wallet, from creation to spend."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    value: int = Field(..., ge=0, description="Amount in base units")
    blinding: int
    nullifier_secret: int
    commitment: ECPoint
    leaf_index: int = Field(0, ge=0, description="Position in the deposit tree once confirmed")
    spent: bool = False
    token_tag: str = DEFAULT_TOKEN
    encrypted_amount: ElGamalCiphertext | None = None
    encryption_randomness: int | None = None
    deposit_tx_hash: str | None = None
    spent_tx_hash: str | None = None
    created_at: float = Field(default_factory=time.time)

    @field_validator("commitment")
    @classmethod
    def _commitment_on_curve(cls, v: ECPoint) -> ECPoint:
        return validate_point(v)

    @classmethod
    def from_note_data(cls, note: NoteData, token_tag: str = DEFAULT_TOKEN) -> PrivacyNote:
        return cls(
            value=note.value,
            blinding=note.blinding,
            nullifier_secret=note.nullifier_secret,
            commitment=note.commitment,
            token_tag=token_tag,
        )

    def to_note_data(self) -> NoteData:
        return NoteData(
            value=self.value,
            blinding=self.blinding,
            nullifier_secret=self.nullifier_secret,
            commitment=self.commitment,
        )

    def mark_confirmed(self, leaf_index: int, tx_hash: str) -> PrivacyNote:
        """Copy of this note with its on-chain position recorded."""
        return self.model_copy(update={"leaf_index": leaf_index, "deposit_tx_hash": tx_hash})

    def mark_spent(self, tx_hash: str) -> PrivacyNote:
        """
        Copy of this note flagged as spent.

        Raises:
            ValueError: If the note is already spent.
        """
        if self.spent:
            raise ValueError("Note is already spent")
        return self.model_copy(update={"spent": True, "spent_tx_hash": tx_hash})

    def nullifier(self, scheme: HashScheme = DEFAULT_HASH) -> int:
        return derive_nullifier(self.nullifier_secret, self.leaf_index, scheme)

    def to_agent_summary(self) -> str:
        """One-line description without secret material."""
        state = "spent" if self.spent else "unspent"
        return f"{self.token_tag} note #{self.leaf_index}: {self.value} units ({state})"
