"""
Commitment chain derivation.

The three links of a package's commitment chain are derived with Poseidon:

    buyer  = H(secret, nameHash, phoneSuffix, nonce)
    seller = H(buyer, packageId, price, shippingFee, pickupAddress, minAge)
    store  = H(seller, storeSecret, packageId)

plus the pickup credential H(secret, nameHash, phoneSuffix) that the pickup
circuit opens, and the per-package nullifier
H(secret, packageId, nonce, storeAddress). Every scalar is range checked
before it reaches the hash.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..crypto.field import FieldElement, FieldLike, require_range
from ..crypto.poseidon import poseidon
from ..errors import InputValidationError

logger = logging.getLogger(__name__)

MAX_PHONE_SUFFIX = 999
MAX_AGE = 150


class CommitmentKind(Enum):
    """Links of the commitment chain."""

    BUYER = "buyer"
    SELLER = "seller"
    STORE = "store"


# Kind of prior commitment each link is bound to.
_PRIOR_KIND = {
    CommitmentKind.BUYER: None,
    CommitmentKind.SELLER: CommitmentKind.BUYER,
    CommitmentKind.STORE: CommitmentKind.SELLER,
}


@dataclass(frozen=True)
class Commitment:
    """A derived chain link."""

    kind: CommitmentKind
    value: FieldElement

    def to_hex(self) -> str:
        return self.value.to_hex()

    @classmethod
    def from_hex(cls, kind: CommitmentKind, hex_string: str) -> "Commitment":
        return cls(kind, FieldElement.from_hex(hex_string, f"{kind.value}_commitment"))

    def __int__(self) -> int:
        return self.value.value


@dataclass(frozen=True)
class BuyerInputs:
    """Buyer-held values behind the buyer commitment."""

    secret: FieldLike
    name_hash: FieldLike
    phone_suffix: int
    nonce: FieldLike

    def __repr__(self) -> str:
        return "BuyerInputs(<redacted>)"


@dataclass(frozen=True)
class SellerInputs:
    """Package terms bound by the seller commitment (amounts in cents)."""

    package_id: FieldLike
    price: FieldLike
    shipping_fee: FieldLike
    pickup_address: FieldLike
    min_age: int


@dataclass(frozen=True)
class StoreInputs:
    """Store-held values behind the store commitment."""

    store_secret: FieldLike
    package_id: FieldLike

    def __repr__(self) -> str:
        return "StoreInputs(<redacted>)"


CommitmentInputs = Union[BuyerInputs, SellerInputs, StoreInputs]


def validate_phone_suffix(value: int) -> int:
    return require_range(value, 0, MAX_PHONE_SUFFIX, "phone_suffix")


def validate_age(value: int, field: str = "age") -> int:
    return require_range(value, 0, MAX_AGE, field)


class CommitmentEngine:
    """Derives chain links, the pickup credential and nullifiers."""

    def derive(
        self,
        kind: CommitmentKind,
        private_inputs: CommitmentInputs,
        prior: Optional[Commitment] = None,
    ) -> Commitment:
        """Derive the ``kind`` link from its inputs and the prior link."""
        expected_prior = _PRIOR_KIND[kind]
        if expected_prior is None:
            if prior is not None:
                raise InputValidationError(
                    "Buyer commitment takes no prior commitment", field="prior"
                )
        elif prior is None or prior.kind is not expected_prior:
            raise InputValidationError(
                f"{kind.value} commitment requires a prior {expected_prior.value} commitment",
                field="prior",
                expected=expected_prior.value,
            )

        if kind is CommitmentKind.BUYER:
            value = self._buyer(self._expect(private_inputs, BuyerInputs))
        elif kind is CommitmentKind.SELLER:
            value = self._seller(self._expect(private_inputs, SellerInputs), prior)
        else:
            value = self._store(self._expect(private_inputs, StoreInputs), prior)

        logger.debug("Derived %s commitment", kind.value)
        return Commitment(kind, value)

    def pickup_credential(
        self, secret: FieldLike, name_hash: FieldLike, phone_suffix: int
    ) -> FieldElement:
        """H(secret, nameHash, phoneSuffix), the value the pickup circuit opens."""
        return poseidon(
            FieldElement.parse(secret, "secret"),
            FieldElement.parse(name_hash, "name_hash"),
            FieldElement(validate_phone_suffix(phone_suffix)),
        )

    def nullifier(
        self,
        secret: FieldLike,
        package_id: FieldLike,
        nonce: FieldLike,
        store_address: FieldLike,
    ) -> FieldElement:
        """H(secret, packageId, nonce, storeAddress)."""
        return poseidon(
            FieldElement.parse(secret, "secret"),
            FieldElement.parse(package_id, "package_id"),
            FieldElement.parse(nonce, "nonce"),
            FieldElement.parse(store_address, "store_address"),
        )

    @staticmethod
    def _expect(inputs: CommitmentInputs, cls: type):
        if not isinstance(inputs, cls):
            raise InputValidationError(
                f"Expected {cls.__name__}", field="private_inputs", expected=cls.__name__
            )
        return inputs

    @staticmethod
    def _buyer(inputs: BuyerInputs) -> FieldElement:
        return poseidon(
            FieldElement.parse(inputs.secret, "secret"),
            FieldElement.parse(inputs.name_hash, "name_hash"),
            FieldElement(validate_phone_suffix(inputs.phone_suffix)),
            FieldElement.parse(inputs.nonce, "nonce"),
        )

    @staticmethod
    def _seller(inputs: SellerInputs, prior: Commitment) -> FieldElement:
        return poseidon(
            prior.value,
            FieldElement.parse(inputs.package_id, "package_id"),
            FieldElement.parse(inputs.price, "price"),
            FieldElement.parse(inputs.shipping_fee, "shipping_fee"),
            FieldElement.parse(inputs.pickup_address, "pickup_address"),
            FieldElement(validate_age(inputs.min_age, "min_age")),
        )

    @staticmethod
    def _store(inputs: StoreInputs, prior: Commitment) -> FieldElement:
        return poseidon(
            prior.value,
            FieldElement.parse(inputs.store_secret, "store_secret"),
            FieldElement.parse(inputs.package_id, "package_id"),
        )


_default_engine = CommitmentEngine()


def derive(
    kind: CommitmentKind,
    private_inputs: CommitmentInputs,
    prior: Optional[Commitment] = None,
) -> Commitment:
    """Module-level shortcut for ``CommitmentEngine().derive``."""
    return _default_engine.derive(kind, private_inputs, prior)
