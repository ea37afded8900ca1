"""
The pickup circuit.

Private inputs: secret, nameHash, phoneSuffix, age, nonce.
Public inputs:  packageId, expectedCommitment, minAgeRequired, storeAddress.
Public outputs: nullifier, commitmentBinding, ageOk.

Constraints:
    1. expectedCommitment == H(secret, nameHash, phoneSuffix)
    2. phoneSuffix < 1000 and age < 151
    3. ageOk = (age >= minAgeRequired) OR (minAgeRequired == 0), and ageOk == 1
    4. nullifier == H(secret, packageId, nonce, storeAddress)
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

from ..crypto.field import FieldElement, FieldLike
from ..crypto.zkp.circuits import CircuitBuilder, ConstraintType, ZKCircuit
from ..errors import InputValidationError

PICKUP_CIRCUIT_ID = "anonpickup/pickup-proof/v1"

PHONE_SUFFIX_LIMIT = 1000
PHONE_SUFFIX_BITS = 10
AGE_LIMIT = 151
AGE_BITS = 8

PUBLIC_OUTPUTS = ("nullifier", "commitment_binding", "age_ok")
PUBLIC_INPUTS = ("package_id", "expected_commitment", "min_age_required", "store_address")
PRIVATE_INPUTS = ("secret", "name_hash", "phone_suffix", "age", "nonce")


@dataclass(frozen=True)
class PickupWitness:
    """Buyer-only values. Never logged, never serialized."""

    secret: FieldLike
    name_hash: FieldLike
    phone_suffix: int
    age: int
    nonce: FieldLike

    def to_inputs(self) -> Dict[str, int]:
        return {
            "secret": int(FieldElement.parse(self.secret, "secret")),
            "name_hash": int(FieldElement.parse(self.name_hash, "name_hash")),
            "phone_suffix": int(FieldElement.parse(self.phone_suffix, "phone_suffix")),
            "age": int(FieldElement.parse(self.age, "age")),
            "nonce": int(FieldElement.parse(self.nonce, "nonce")),
        }

    def __repr__(self) -> str:
        return "PickupWitness(<redacted>)"


@dataclass(frozen=True)
class PickupPublicInputs:
    """Public inputs the verifier supplies for one pickup."""

    package_id: FieldLike
    expected_commitment: FieldLike
    min_age_required: int
    store_address: FieldLike

    def to_inputs(self) -> Dict[str, int]:
        return {
            "package_id": int(FieldElement.parse(self.package_id, "package_id")),
            "expected_commitment": int(
                FieldElement.parse(self.expected_commitment, "expected_commitment")
            ),
            "min_age_required": int(
                FieldElement.parse(self.min_age_required, "min_age_required")
            ),
            "store_address": int(FieldElement.parse(self.store_address, "store_address")),
        }


@dataclass(frozen=True)
class PickupPublicSignals:
    """Public signal vector in circuit order: outputs, then inputs."""

    nullifier: FieldElement
    commitment_binding: FieldElement
    age_ok: FieldElement
    package_id: FieldElement
    expected_commitment: FieldElement
    min_age_required: FieldElement
    store_address: FieldElement

    def to_list(self) -> List[int]:
        return [
            int(self.nullifier),
            int(self.commitment_binding),
            int(self.age_ok),
            int(self.package_id),
            int(self.expected_commitment),
            int(self.min_age_required),
            int(self.store_address),
        ]

    @classmethod
    def from_list(cls, values: Sequence[FieldLike]) -> "PickupPublicSignals":
        """Parse and range-check a signal vector."""
        names = PUBLIC_OUTPUTS + PUBLIC_INPUTS
        if len(values) != len(names):
            raise InputValidationError(
                f"Expected {len(names)} public signals, got {len(values)}",
                field="public_signals",
                expected=len(names),
            )
        return cls(*(FieldElement.parse(v, name) for v, name in zip(values, names)))


class PickupCircuit(ZKCircuit):
    """Proves possession of a package's pickup credential, age eligibility
    and a correctly derived nullifier."""

    public_input_names = PUBLIC_INPUTS
    private_input_names = PRIVATE_INPUTS

    def __init__(self, circuit_id: str = PICKUP_CIRCUIT_ID):
        super().__init__(circuit_id)

    def synthesize(
        self,
        builder: CircuitBuilder,
        public_inputs: Mapping[str, int],
        private_inputs: Mapping[str, int],
    ) -> None:
        nullifier_out = builder.public_output("nullifier")
        binding_out = builder.public_output("commitment_binding")
        age_ok_out = builder.public_output("age_ok")

        package_id = builder.public_input("package_id", public_inputs["package_id"])
        expected = builder.public_input(
            "expected_commitment", public_inputs["expected_commitment"]
        )
        min_age = builder.public_input("min_age_required", public_inputs["min_age_required"])
        store_address = builder.public_input("store_address", public_inputs["store_address"])

        secret = builder.private("secret", private_inputs["secret"])
        name_hash = builder.private("name_hash", private_inputs["name_hash"])
        phone_suffix = builder.private("phone_suffix", private_inputs["phone_suffix"])
        age = builder.private("age", private_inputs["age"])
        nonce = builder.private("nonce", private_inputs["nonce"])

        # 1. commitment opening
        commitment = builder.poseidon([secret, name_hash, phone_suffix], "commitment")
        builder.assert_equal(commitment, expected, "commitment matches expected")
        builder.assign(binding_out, builder.value_of(commitment))
        builder.add_constraint(
            commitment, 1, binding_out, ConstraintType.HASH, "commitment binding output"
        )

        # 2. ranges
        builder.num_to_bits(phone_suffix, PHONE_SUFFIX_BITS, "phone_suffix.bits")
        phone_ok = builder.less_than(
            phone_suffix, PHONE_SUFFIX_LIMIT, PHONE_SUFFIX_BITS, "phone_suffix.lt"
        )
        builder.assert_equal(phone_ok, 1, "phone suffix below 1000")

        builder.num_to_bits(age, AGE_BITS, "age.bits")
        age_in_range = builder.less_than(age, AGE_LIMIT, AGE_BITS, "age.lt")
        builder.assert_equal(age_in_range, 1, "age below 151")

        # 3. age gate
        builder.num_to_bits(min_age, AGE_BITS, "min_age.bits")
        under_age = builder.less_than(age, min_age, AGE_BITS, "age_vs_min.lt")
        old_enough = 1 - under_age
        no_requirement = builder.is_zero(min_age, "min_age.is_zero")
        age_ok = builder.logical_or(old_enough, no_requirement, "age_ok")
        builder.assign(age_ok_out, builder.value_of(age_ok))
        builder.add_constraint(age_ok, 1, age_ok_out, ConstraintType.COMPARISON, "age flag output")
        builder.assert_equal(age_ok_out, 1, "age requirement satisfied")

        # 4. nullifier
        nullifier = builder.poseidon([secret, package_id, nonce, store_address], "nullifier")
        builder.assign(nullifier_out, builder.value_of(nullifier))
        builder.add_constraint(nullifier, 1, nullifier_out, ConstraintType.HASH, "nullifier output")
