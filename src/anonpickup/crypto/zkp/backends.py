"""
ZKP backend implementations.

``Groth16Backend`` is the production backend. ``MockZKPBackend`` keeps the
full witness check but replaces the proof with an HMAC tag under a key the
verifier holds, which makes it fast enough for lifecycle tests.
"""

import logging
import time
from typing import Sequence, Tuple

from .circuits import Witness, ZKCircuit
from .core import Proof, ZKPBackend, ZKPConfig, ZKPError, ZKPStatus, ZKPType
from .generation import (
    Groth16ProofGenerator,
    ProvingKey,
    VerificationKey,
    groth16_setup,
    mock_prove,
    mock_setup,
)
from .verification import ProofVerifier

logger = logging.getLogger(__name__)


class Groth16Backend(ZKPBackend):
    """Groth16 over BN254."""

    zkp_type = ZKPType.GROTH16

    def __init__(self, config: ZKPConfig):
        super().__init__(config)
        self._verifier = ProofVerifier(config)

    def setup(self, circuit: ZKCircuit) -> Tuple[ProvingKey, VerificationKey]:
        """Run the single-party development setup."""
        result = groth16_setup(circuit.build(), circuit.circuit_id)
        return result.proving_key, result.verification_key

    def generate_proof(
        self, proving_key: ProvingKey, circuit: ZKCircuit, witness: Witness
    ) -> Proof:
        """Check the witness, then produce a 256-byte Groth16 proof."""
        self._check_key(proving_key, circuit)
        circuit.check_witness(witness)
        start_time = time.time()
        proof_data = Groth16ProofGenerator(circuit.build(), proving_key).generate_proof(witness)
        return Proof(
            proof_data=proof_data,
            circuit_id=circuit.circuit_id,
            proof_type=self.zkp_type,
            key_id=proving_key.key_id,
            metadata={"generation_time": time.time() - start_time},
        )

    def verify_proof(
        self, proof: Proof, public_signals: Sequence[int], verification_key: VerificationKey
    ) -> bool:
        return self._verifier.verify(proof, public_signals, verification_key)

    def _check_key(self, proving_key: ProvingKey, circuit: ZKCircuit) -> None:
        if proving_key.key_type is not self.zkp_type:
            raise ZKPError(
                f"{proving_key.key_type.value} key given to the {self.zkp_type.value} backend",
                status=ZKPStatus.KEY_MISMATCH,
                circuit_id=circuit.circuit_id,
            )
        if proving_key.circuit_id != circuit.circuit_id:
            raise ZKPError(
                "Proving key belongs to another circuit",
                status=ZKPStatus.KEY_MISMATCH,
                circuit_id=circuit.circuit_id,
            )


class MockZKPBackend(Groth16Backend):
    """Mock ZKP backend for testing and development.

    The tag binds circuit id, key id and every public signal, so any change
    to the proof bytes or the signals fails verification. It proves nothing
    to a party that does not hold the MAC key.
    """

    zkp_type = ZKPType.MOCK

    def setup(self, circuit: ZKCircuit) -> Tuple[ProvingKey, VerificationKey]:
        logger.warning("Mock ZKP backend in use for %s; proofs are simulated", circuit.circuit_id)
        result = mock_setup(circuit.build(), circuit.circuit_id)
        return result.proving_key, result.verification_key

    def generate_proof(
        self, proving_key: ProvingKey, circuit: ZKCircuit, witness: Witness
    ) -> Proof:
        self._check_key(proving_key, circuit)
        circuit.check_witness(witness)
        return Proof(
            proof_data=mock_prove(proving_key, witness),
            circuit_id=circuit.circuit_id,
            proof_type=self.zkp_type,
            key_id=proving_key.key_id,
        )


def create_backend(config: ZKPConfig) -> ZKPBackend:
    """Backend for ``config.backend_type``."""
    if config.backend_type is ZKPType.GROTH16:
        return Groth16Backend(config)
    if config.backend_type is ZKPType.MOCK:
        return MockZKPBackend(config)
    raise ZKPError(f"Unsupported backend type: {config.backend_type}")
