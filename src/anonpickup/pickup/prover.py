"""
Buyer-side proof generation for pickups.
"""

import logging
from typing import Optional, Tuple

from ..commitment.engine import validate_age, validate_phone_suffix
from ..crypto.zkp.core import Proof, ZKPManager
from ..crypto.zkp.generation import VerificationKey
from .circuit import PickupCircuit, PickupPublicInputs, PickupPublicSignals, PickupWitness

logger = logging.getLogger(__name__)


class PickupProver:
    """Generates pickup proofs with the keys held by a ``ZKPManager``."""

    def __init__(self, manager: ZKPManager, circuit: Optional[PickupCircuit] = None):
        self.manager = manager
        self.circuit = circuit or PickupCircuit()

    @property
    def verification_key(self) -> VerificationKey:
        return self.manager.get_verification_key(self.circuit.circuit_id)

    def generate_proof(
        self, private_witness: PickupWitness, public_inputs: PickupPublicInputs
    ) -> Tuple[Proof, PickupPublicSignals]:
        """Prove a pickup.

        Raises ``InputValidationError`` for out-of-range scalars and
        ``WitnessUnsatisfiableError`` when no satisfying assignment exists
        (wrong credential, age below the requirement).
        """
        validate_phone_suffix(private_witness.phone_suffix)
        validate_age(private_witness.age)
        validate_age(public_inputs.min_age_required, "min_age_required")

        proof, signals = self.manager.generate_proof(
            self.circuit, public_inputs.to_inputs(), private_witness.to_inputs()
        )
        logger.debug("Pickup proof ready for circuit %s", self.circuit.circuit_id)
        return proof, PickupPublicSignals.from_list(signals)
