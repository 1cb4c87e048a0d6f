from fastapi import APIRouter, HTTPException, Request

from obelysk_privacy.api.models import InvalidateResponse, ProofResponse
from obelysk_privacy.crypto.curve import STARK_PRIME, felt_to_int, to_felt_hex
from obelysk_privacy.merkle.storage import OnChainMerkleProver

router = APIRouter(prefix="/api/privacy", tags=["Privacy Pool"])


def get_prover(request: Request) -> OnChainMerkleProver:
    """Retrieve the Merkle prover from app state."""
    prover = getattr(request.app.state, "prover", None)
    if prover is None:
        raise HTTPException(status_code=503, detail="Merkle prover not configured")
    return prover


@router.get("/proof/{commitment}", response_model=ProofResponse)
async def get_proof(request: Request, commitment: str):
    """
    Inclusion proof for a deposit commitment.

    Unknown commitments answer `found: false` rather than 404 so clients can
    fall back without treating it as an error.
    """
    prover = get_prover(request)
    value = felt_to_int(commitment)
    if not 0 <= value < STARK_PRIME:
        raise ValueError(f"Commitment is not a field element: {commitment}")
    commitment_hex = to_felt_hex(value)

    proof = await prover.get_proof(commitment_hex)
    if proof is None:
        return ProofResponse(found=False, commitment=commitment_hex)

    snapshot = prover.cached_snapshot
    current_root = to_felt_hex(snapshot.root) if snapshot is not None else None
    fields = proof.to_contract_format()
    return ProofResponse(
        found=True,
        commitment=commitment_hex,
        siblings=fields["siblings"],
        path_indices=fields["path_indices"],
        root=fields["root"],
        current_root=current_root,
        leaf_index=fields["leaf_index"],
        tree_size=fields["tree_size"],
    )


@router.post("/cache/invalidate", response_model=InvalidateResponse)
async def invalidate_cache(request: Request):
    """Drop the cached tree; call after a deposit is confirmed."""
    get_prover(request).invalidate()
    return InvalidateResponse(invalidated=True)
