"""
Package records and their lifecycle states.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..crypto.field import FieldElement, encode_identifier
from ..errors import InputValidationError

SECONDS_PER_DAY = 24 * 60 * 60
PICKUP_VALIDITY_DAYS = 30


class PackageStatus(Enum):
    """Lifecycle states of a package."""

    REGISTERED = "registered"
    STORE_COMMITTED = "store_committed"
    PICKED_UP = "picked_up"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (PackageStatus.PICKED_UP, PackageStatus.EXPIRED)


class ChallengeLink(Enum):
    """Which value of the record a pickup proof's expected commitment must equal."""

    CREDENTIAL = "credential"
    BUYER = "buyer"
    SELLER = "seller"
    STORE = "store"


def _hex(value: Optional[FieldElement]) -> Optional[str]:
    return value.to_hex() if value is not None else None


def _from_hex(value: Optional[str], name: str) -> Optional[FieldElement]:
    return FieldElement.from_hex(value, name) if value is not None else None


@dataclass
class PackageRecord:
    """Authoritative state of one package.

    Commitments and the nullifier are field elements; amounts are cents.
    Records are never deleted.
    """

    package_id: str
    buyer_commitment: FieldElement
    seller_commitment: FieldElement
    store_address: str
    min_age_required: int
    created_at: float
    expires_at: float
    item_price: int = 0
    shipping_fee: int = 0
    store_commitment: Optional[FieldElement] = None
    pickup_credential: Optional[FieldElement] = None
    status: PackageStatus = PackageStatus.REGISTERED
    nullifier: Optional[FieldElement] = None
    picked_up_at: Optional[float] = None
    seller: Optional[str] = None

    @property
    def package_field(self) -> FieldElement:
        """The package id as it appears in public signals."""
        return encode_identifier(self.package_id, "package_id")

    @property
    def store_field(self) -> FieldElement:
        """The store address as it appears in public signals."""
        return encode_identifier(self.store_address, "store_address")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def commitment_for(self, link: ChallengeLink) -> Optional[FieldElement]:
        """Value a pickup proof must open for ``link``; None if not yet set."""
        if link is ChallengeLink.CREDENTIAL:
            return self.pickup_credential
        if link is ChallengeLink.BUYER:
            return self.buyer_commitment
        if link is ChallengeLink.SELLER:
            return self.seller_commitment
        return self.store_commitment

    def copy(self) -> "PackageRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Flat representation; also the column layout of the SQLite ledger."""
        return {
            "package_id": self.package_id,
            "buyer_commitment": self.buyer_commitment.to_hex(),
            "seller_commitment": self.seller_commitment.to_hex(),
            "store_commitment": _hex(self.store_commitment),
            "store_address": self.store_address,
            "item_price": self.item_price,
            "shipping_fee": self.shipping_fee,
            "min_age_required": self.min_age_required,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "status": self.status.value,
            "pickup_credential": _hex(self.pickup_credential),
            "nullifier": _hex(self.nullifier),
            "picked_up_at": self.picked_up_at,
            "seller": self.seller,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageRecord":
        try:
            return cls(
                package_id=data["package_id"],
                buyer_commitment=FieldElement.from_hex(
                    data["buyer_commitment"], "buyer_commitment"
                ),
                seller_commitment=FieldElement.from_hex(
                    data["seller_commitment"], "seller_commitment"
                ),
                store_commitment=_from_hex(data.get("store_commitment"), "store_commitment"),
                store_address=data["store_address"],
                item_price=int(data.get("item_price", 0)),
                shipping_fee=int(data.get("shipping_fee", 0)),
                min_age_required=int(data["min_age_required"]),
                created_at=float(data["created_at"]),
                expires_at=float(data["expires_at"]),
                status=PackageStatus(data["status"]),
                pickup_credential=_from_hex(data.get("pickup_credential"), "pickup_credential"),
                nullifier=_from_hex(data.get("nullifier"), "nullifier"),
                picked_up_at=(
                    float(data["picked_up_at"]) if data.get("picked_up_at") is not None else None
                ),
                seller=data.get("seller"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid package record: {e}", field="record") from e
