"""
Pluggable field hash for commitments, nullifiers, challenges and Merkle nodes.

Provides:
- HashScheme: abstract "hash one / hash many field elements" strategy
- PoseidonHash: Starknet Poseidon (the on-chain verifier's hash)
- Blake2bFieldHash: Blake2b-256 over big-endian felts, reduced into the field
- get_hash_scheme: explicit registry lookup by name
- short_string_to_felt: Cairo short-string encoding for domain tags

The hash is chosen once, at the boundary with the verifier, and passed down.
There is no silent fallback between schemes: commitments, nullifiers and
roots computed with a different hash are silently incompatible on-chain.

Input arity follows starknet.js so results are bit-exact with the contracts:
    1 input   → poseidon(x, 0)
    2 inputs  → poseidon(a, b)
    n inputs  → poseidon_hash_many([...])

References:
    [Poseidon] Grassi et al., "Poseidon: A New Hash Function for Zero-Knowledge
               Proof Systems", USENIX Security '21.
    [Cairo]    Cairo short strings: ASCII bytes packed big-endian into one felt252.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from poseidon_py.poseidon_hash import poseidon_hash, poseidon_hash_many

from obelysk_privacy.crypto.curve import STARK_PRIME, felt_to_int

# Cairo short strings are limited to 31 bytes so they fit below the field prime
MAX_SHORT_STRING_LENGTH = 31


def short_string_to_felt(text: str) -> int:
    """
    Encode an ASCII string of at most 31 characters as a felt.

    Raises:
        ValueError: If the string is not ASCII or longer than 31 characters.
    """
    if len(text) > MAX_SHORT_STRING_LENGTH:
        raise ValueError(f"Short string too long ({len(text)} > {MAX_SHORT_STRING_LENGTH}): {text!r}")
    try:
        raw = text.encode("ascii")
    except UnicodeEncodeError as e:
        raise ValueError(f"Short string must be ASCII: {text!r}") from e
    return int.from_bytes(raw, "big")


def _to_field(values: Iterable[int | str]) -> list[int]:
    return [felt_to_int(v) % STARK_PRIME for v in values]


# ==============================================================================
# Hash schemes
# ==============================================================================


class HashScheme(ABC):
    """A hash from field elements to a single field element."""

    name: str = ""

    @abstractmethod
    def hash_single(self, value: int | str) -> int:
        """Hash one field element."""

    @abstractmethod
    def hash_many(self, values: Sequence[int | str]) -> int:
        """Hash one or more field elements. Zero inputs are an error."""

    def hash(self, *values: int | str) -> int:
        """Dispatch on arity: one value goes to hash_single, otherwise hash_many."""
        if len(values) == 1:
            return self.hash_single(values[0])
        return self.hash_many(values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class PoseidonHash(HashScheme):
    """Starknet Poseidon, via poseidon-py."""

    name = "poseidon"

    def hash_single(self, value: int | str) -> int:
        (x,) = _to_field([value])
        return poseidon_hash(x, 0)

    def hash_many(self, values: Sequence[int | str]) -> int:
        felts = _to_field(values)
        if not felts:
            raise ValueError("Cannot hash zero inputs")
        if len(felts) == 1:
            return poseidon_hash(felts[0], 0)
        if len(felts) == 2:
            return poseidon_hash(felts[0], felts[1])
        return poseidon_hash_many(felts)


class Blake2bFieldHash(HashScheme):
    """
    Blake2b-256 over 32-byte big-endian felts, reduced modulo the Stark prime.

    Suitable for deployments and tests that are not bound to the Starknet
    verifier. Never mix it with Poseidon-derived commitments or roots.
    """

    name = "blake2b"

    def hash_single(self, value: int | str) -> int:
        return self.hash_many([value])

    def hash_many(self, values: Sequence[int | str]) -> int:
        felts = _to_field(values)
        if not felts:
            raise ValueError("Cannot hash zero inputs")
        hasher = hashlib.blake2b(digest_size=32)
        for felt in felts:
            hasher.update(felt.to_bytes(32, "big"))
        return int.from_bytes(hasher.digest(), "big") % STARK_PRIME


_SCHEMES: dict[str, type[HashScheme]] = {
    PoseidonHash.name: PoseidonHash,
    Blake2bFieldHash.name: Blake2bFieldHash,
}

DEFAULT_HASH: HashScheme = PoseidonHash()


def get_hash_scheme(name: str) -> HashScheme:
    """
    Look up a hash scheme by name ("poseidon" or "blake2b").

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        scheme_cls = _SCHEMES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown hash scheme {name!r}; expected one of {sorted(_SCHEMES)}"
        ) from None
    return scheme_cls()
