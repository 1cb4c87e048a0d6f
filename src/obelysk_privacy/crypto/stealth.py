"""
Stealth addresses: one-time receiving keys unlinkable to the recipient.

Mathematical foundation:
    Receiver publishes (spendPK, viewPK) = (b·G, a·G).
    Sender:    r random,  R = r·G,  s = H(r·viewPK) mod n,  P = spendPK + s·G
    Receiver:  s = H(a·R) mod n,  sk_stealth = b + s,  P = sk_stealth·G

    r·viewPK == a·R, so both sides derive the same s and the same P.
    Only someone holding a can link P to the receiver; only someone holding
    b as well can spend from it.

References:
    [CN]  CryptoNote v2.0, §4.3 (unlinkable payments).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from obelysk_privacy.crypto.curve import (
    CURVE_ORDER,
    G,
    ECPoint,
    add_points,
    is_infinity,
    mod,
    random_scalar,
    scalar_mult,
)
from obelysk_privacy.crypto.hashing import DEFAULT_HASH, HashScheme
from obelysk_privacy.crypto.nullifier import scalar_hash

logger = logging.getLogger("obelysk_privacy.stealth")


@dataclass(frozen=True)
class StealthAddressResult:
    """
    Sender-side output of a stealth derivation.

    Attributes:
        stealth_public_key: One-time destination key P.
        ephemeral_public_key: R = r·G; must be published for the receiver.
        ephemeral_secret: r; discard once R is stored.
        shared_secret_hash: s = H(r·viewPK) mod n.
    """
    stealth_public_key: ECPoint
    ephemeral_public_key: ECPoint
    ephemeral_secret: int
    shared_secret_hash: int


@dataclass(frozen=True)
class StealthRecovery:
    stealth_private_key: int
    stealth_public_key: ECPoint


def _shared_scalar(scalar: int, point: ECPoint, scheme: HashScheme) -> int:
    shared_point = scalar_mult(scalar, point)
    if is_infinity(shared_point):
        raise ValueError("ECDH produced the point at infinity")
    return mod(scalar_hash([shared_point.x, shared_point.y], scheme), CURVE_ORDER)


def derive_stealth_address(
    spend_public_key: ECPoint,
    view_public_key: ECPoint,
    ephemeral_secret: int | None = None,
    scheme: HashScheme = DEFAULT_HASH,
) -> StealthAddressResult:
    """
    Derive a fresh stealth public key for (spendPK, viewPK).

    Args:
        spend_public_key: Receiver's spend key b·G.
        view_public_key: Receiver's view key a·G.
        ephemeral_secret: r; drawn from the CSPRNG when omitted.
        scheme: Hash scheme for s.
    """
    r = random_scalar() if ephemeral_secret is None else ephemeral_secret
    s = _shared_scalar(r, view_public_key, scheme)
    stealth_pk = add_points(spend_public_key, scalar_mult(s, G))
    return StealthAddressResult(
        stealth_public_key=stealth_pk,
        ephemeral_public_key=scalar_mult(r, G),
        ephemeral_secret=r,
        shared_secret_hash=s,
    )


# Bridge payments use the same derivation
derive_stealth_address_for_bridge = derive_stealth_address


def recover_stealth_key(
    spend_private_key: int,
    view_private_key: int,
    ephemeral_public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> StealthRecovery:
    """Receiver side: sk_stealth = spendSK + H(viewSK·R) mod n."""
    s = _shared_scalar(view_private_key, ephemeral_public_key, scheme)
    stealth_sk = mod(spend_private_key + s, CURVE_ORDER)
    return StealthRecovery(stealth_private_key=stealth_sk, stealth_public_key=scalar_mult(stealth_sk, G))


def is_stealth_address_for(
    spend_public_key: ECPoint,
    view_private_key: int,
    ephemeral_public_key: ECPoint,
    stealth_public_key: ECPoint,
    scheme: HashScheme = DEFAULT_HASH,
) -> bool:
    """
    Scan check needing only the view key: spendPK + H(viewSK·R)·G == P.
    """
    try:
        s = _shared_scalar(view_private_key, ephemeral_public_key, scheme)
    except ValueError:
        return False
    match = add_points(spend_public_key, scalar_mult(s, G)) == stealth_public_key
    if match:
        logger.debug("Stealth output matched view key")
    return match
