from pydantic import BaseModel, Field


class ProofResponse(BaseModel):
    """Response model for a Merkle inclusion proof lookup."""

    found: bool = Field(..., description="Whether the commitment is a leaf of the deposit tree")
    commitment: str = Field(..., description="Commitment felt (hex) that was looked up")
    siblings: list[str] = Field(default_factory=list, description="Non-zero sibling hashes, leaf upwards")
    path_indices: list[int] = Field(
        default_factory=list,
        description="1 where the sibling is on the left, 0 where it is on the right",
    )
    root: str | None = Field(None, description="Root the proof was generated against")
    current_root: str | None = Field(None, description="Root of the cached tree at response time")
    leaf_index: int | None = Field(None, description="Position of the commitment in the tree")
    tree_size: int | None = Field(None, description="Number of leaves in the tree")


class InvalidateResponse(BaseModel):
    """Response model for a cache invalidation."""

    invalidated: bool = Field(..., description="True once the cached tree has been dropped")
