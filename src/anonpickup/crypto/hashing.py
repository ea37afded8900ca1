"""
SHA-256 helpers used for key fingerprints and simulated proof tags.

The commitment hash is Poseidon (see ``poseidon``); SHA-256 only identifies
artifacts such as verification keys and is never applied to witness data.
"""

from dataclasses import dataclass
from typing import List, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac


@dataclass(frozen=True)
class Hash:
    """Immutable 32-byte digest."""

    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != 32:
            raise ValueError("Hash must be exactly 32 bytes")

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('{self.value.hex()}')"

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string."""
        return cls(bytes.fromhex(hex_string))

    def to_hex(self) -> str:
        """Convert hash to hexadecimal string."""
        return self.value.hex()

    def to_int(self) -> int:
        """Convert hash to integer (big-endian)."""
        return int.from_bytes(self.value, byteorder="big")


def _to_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


class SHA256Hasher:
    """SHA-256 and HMAC-SHA256 built on ``cryptography``."""

    @staticmethod
    def hash(data: Union[bytes, str]) -> Hash:
        """
        Hash data using SHA-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the SHA-256 hash
        """
        digest = hashes.Hash(hashes.SHA256())
        digest.update(_to_bytes(data))
        return Hash(digest.finalize())

    @staticmethod
    def hash_list(items: List[Union[bytes, str]]) -> Hash:
        """
        Hash a list of items, length-prefixing each so that item boundaries
        are part of the digest.
        """
        digest = hashes.Hash(hashes.SHA256())
        for item in items:
            item = _to_bytes(item)
            digest.update(len(item).to_bytes(4, byteorder="big"))
            digest.update(item)
        return Hash(digest.finalize())

    @staticmethod
    def hmac_sha256(key: Union[bytes, str], data: Union[bytes, str]) -> Hash:
        """
        HMAC-SHA256 for keyed hashing.

        Args:
            key: HMAC key
            data: Data to authenticate

        Returns:
            Hash object containing the tag
        """
        mac = hmac.HMAC(_to_bytes(key), hashes.SHA256())
        mac.update(_to_bytes(data))
        return Hash(mac.finalize())

    @staticmethod
    def verify_hmac_sha256(
        key: Union[bytes, str], data: Union[bytes, str], tag: bytes
    ) -> bool:
        """Constant-time check of an HMAC-SHA256 tag."""
        mac = hmac.HMAC(_to_bytes(key), hashes.SHA256())
        mac.update(_to_bytes(data))
        try:
            mac.verify(tag)
        except InvalidSignature:
            return False
        return True
