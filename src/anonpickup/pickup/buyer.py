"""
Buyer enrollment helpers.

Turns a name, phone number and age into the buyer-held values of the
protocol, and derives the commitments and witness built from them.
"""

import re
import secrets
from dataclasses import dataclass
from typing import List

from ..commitment.engine import (
    BuyerInputs,
    Commitment,
    CommitmentEngine,
    CommitmentKind,
    validate_age,
    validate_phone_suffix,
)
from ..crypto.field import FIELD_MODULUS, MAX_IDENTIFIER_BYTES, FieldElement, FieldLike
from ..crypto.poseidon import MAX_INPUTS, poseidon
from ..errors import InputValidationError
from .circuit import PickupPublicInputs, PickupWitness

PHONE_SUFFIX_DIGITS = 3


def hash_name(name: str) -> FieldElement:
    """Poseidon over the 31-byte chunks of the normalized UTF-8 name."""
    normalized = " ".join(name.split()).lower() if isinstance(name, str) else ""
    if not normalized:
        raise InputValidationError("Name must not be empty", field="name")
    data = normalized.encode("utf-8")
    chunks: List[FieldElement] = [
        FieldElement(int.from_bytes(data[i : i + MAX_IDENTIFIER_BYTES], "big"))
        for i in range(0, len(data), MAX_IDENTIFIER_BYTES)
    ]
    if len(chunks) > MAX_INPUTS:
        raise InputValidationError("Name too long", field="name")
    return poseidon(*chunks)


def phone_suffix_of(phone: str) -> int:
    """Last three digits of a phone number."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) < PHONE_SUFFIX_DIGITS:
        raise InputValidationError(
            "Phone number needs at least three digits", field="phone"
        )
    return int(digits[-PHONE_SUFFIX_DIGITS:])


def random_field_element() -> FieldElement:
    return FieldElement(secrets.randbelow(FIELD_MODULUS))


@dataclass(frozen=True)
class BuyerIdentity:
    """Everything the buyer keeps to themselves."""

    secret: FieldElement
    name_hash: FieldElement
    phone_suffix: int
    age: int
    nonce: FieldElement

    def __post_init__(self):
        validate_phone_suffix(self.phone_suffix)
        validate_age(self.age)

    @classmethod
    def enroll(cls, name: str, phone: str, age: int) -> "BuyerIdentity":
        """Create a fresh identity with a random secret and nonce."""
        return cls(
            secret=random_field_element(),
            name_hash=hash_name(name),
            phone_suffix=phone_suffix_of(phone),
            age=validate_age(age),
            nonce=random_field_element(),
        )

    def buyer_inputs(self) -> BuyerInputs:
        return BuyerInputs(self.secret, self.name_hash, self.phone_suffix, self.nonce)

    def buyer_commitment(self, engine: CommitmentEngine = None) -> Commitment:
        engine = engine or CommitmentEngine()
        return engine.derive(CommitmentKind.BUYER, self.buyer_inputs())

    def pickup_credential(self, engine: CommitmentEngine = None) -> FieldElement:
        engine = engine or CommitmentEngine()
        return engine.pickup_credential(self.secret, self.name_hash, self.phone_suffix)

    def nullifier_for(
        self, package_id: FieldLike, store_address: FieldLike, engine: CommitmentEngine = None
    ) -> FieldElement:
        engine = engine or CommitmentEngine()
        return engine.nullifier(self.secret, package_id, self.nonce, store_address)

    def witness(self) -> PickupWitness:
        return PickupWitness(
            secret=self.secret,
            name_hash=self.name_hash,
            phone_suffix=self.phone_suffix,
            age=self.age,
            nonce=self.nonce,
        )

    def public_inputs(
        self, package_id: FieldLike, min_age_required: int, store_address: FieldLike
    ) -> PickupPublicInputs:
        """Public inputs for a pickup proof against this identity's credential."""
        return PickupPublicInputs(
            package_id=package_id,
            expected_commitment=self.pickup_credential(),
            min_age_required=min_age_required,
            store_address=store_address,
        )

    def __repr__(self) -> str:
        return "BuyerIdentity(<redacted>)"
