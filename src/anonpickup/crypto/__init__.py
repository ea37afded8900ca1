"""
Cryptographic primitives: BN254 field elements, Poseidon, SHA-256 helpers
and the zero-knowledge proof system.
"""

from .field import FIELD_MODULUS, FieldElement, encode_amount, encode_identifier
from .hashing import Hash, SHA256Hasher
from .poseidon import poseidon, poseidon_hash

__all__ = [
    "FIELD_MODULUS",
    "FieldElement",
    "Hash",
    "SHA256Hasher",
    "encode_amount",
    "encode_identifier",
    "poseidon",
    "poseidon_hash",
]
