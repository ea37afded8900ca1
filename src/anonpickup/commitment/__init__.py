"""Commitment chain for anonymous pickup."""

from .engine import (
    MAX_AGE,
    MAX_PHONE_SUFFIX,
    BuyerInputs,
    Commitment,
    CommitmentEngine,
    CommitmentKind,
    SellerInputs,
    StoreInputs,
    derive,
)

__all__ = [
    "MAX_AGE",
    "MAX_PHONE_SUFFIX",
    "BuyerInputs",
    "Commitment",
    "CommitmentEngine",
    "CommitmentKind",
    "SellerInputs",
    "StoreInputs",
    "derive",
]
