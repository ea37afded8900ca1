"""
Anonymous package pickup.

Package lifecycle, the pickup circuit, buyer helpers and the transport
codec.
"""

from .authority import PickupAuthority
from .buyer import BuyerIdentity, hash_name, phone_suffix_of
from .circuit import (
    PICKUP_CIRCUIT_ID,
    PickupCircuit,
    PickupPublicInputs,
    PickupPublicSignals,
    PickupWitness,
)
from .codec import PickupPayload, decode_pickup_payload, encode_pickup_payload
from .config import AuthorityConfig
from .package import ChallengeLink, PackageRecord, PackageStatus
from .prover import PickupProver
from .storage import InMemoryLedgerStore, LedgerStore, SQLiteLedgerStore

__all__ = [
    "PICKUP_CIRCUIT_ID",
    "AuthorityConfig",
    "BuyerIdentity",
    "ChallengeLink",
    "InMemoryLedgerStore",
    "LedgerStore",
    "PackageRecord",
    "PackageStatus",
    "PickupAuthority",
    "PickupCircuit",
    "PickupPayload",
    "PickupProver",
    "PickupPublicInputs",
    "PickupPublicSignals",
    "PickupWitness",
    "SQLiteLedgerStore",
    "decode_pickup_payload",
    "encode_pickup_payload",
    "hash_name",
    "phone_suffix_of",
]
