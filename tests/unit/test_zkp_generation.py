"""
Unit tests for setup, key containers and the Groth16 prover.

Groth16 runs on a small circuit here; the full pickup circuit is covered by
the slow integration suite.
"""

import pytest

from anonpickup.crypto.zkp.circuits import BuiltCircuit, ConstraintType
from anonpickup.crypto.zkp.core import ZKPError, ZKPType
from anonpickup.crypto.zkp.generation import (
    GROTH16_PROOF_SIZE,
    Groth16ProofGenerator,
    ProvingKey,
    SetupType,
    VerificationKey,
    groth16_setup,
    mock_prove,
    mock_setup,
    mock_transcript,
)
from anonpickup.crypto.zkp.verification import groth16_verify
from anonpickup.crypto.hashing import SHA256Hasher


def cube_circuit() -> BuiltCircuit:
    """y = x^3 + x + 5 with a public offset."""

    def synthesize(builder, public_inputs, private_inputs):
        y = builder.public_output("y")
        offset = builder.public_input("offset", public_inputs["offset"])
        x = builder.private("x", private_inputs["x"])
        x2 = builder.mul(x, x, "x^2")
        x3 = builder.mul(x2, x, "x^3")
        total = x3 + x + offset
        builder.assign(y, builder.value_of(total))
        builder.add_constraint(total, 1, y, ConstraintType.EQUALITY, "output")

    return BuiltCircuit("cube", synthesize, ["offset"], ["x"])


@pytest.fixture(scope="module")
def circuit():
    return cube_circuit()


@pytest.fixture(scope="module")
def setup(circuit):
    return groth16_setup(circuit.build(), circuit.circuit_id)


@pytest.fixture(scope="module")
def proof_and_signals(circuit, setup):
    witness = circuit.generate_witness({"offset": 5}, {"x": 3})
    generator = Groth16ProofGenerator(circuit.build(), setup.proving_key)
    return generator.generate_proof(witness), witness.public_signals()


class TestGroth16Setup:
    """Test the development setup."""

    def test_setup_metadata(self, circuit, setup):
        """Test setup outputs belong together."""
        assert setup.setup_type is SetupType.DEVELOPMENT
        assert setup.validate()
        vk = setup.verification_key
        assert vk.key_type is ZKPType.GROTH16
        assert vk.num_public == 2
        assert len(vk.key_data["IC"]) == 3
        assert vk.key_data["protocol"] == "groth16"
        assert vk.key_data["curve"] == "bn128"

    def test_key_id_is_content_fingerprint(self, setup):
        """Test key ids are stable and change with the key."""
        vk = setup.verification_key
        restored = VerificationKey.from_dict(vk.to_dict())
        assert restored.key_id == vk.key_id
        assert len(vk.key_id) == 64

        altered = VerificationKey.from_dict(vk.to_dict())
        altered.key_data["IC"] = list(reversed(altered.key_data["IC"]))
        assert altered.key_id != vk.key_id

    def test_fresh_setups_differ(self, circuit, setup):
        """Test each setup draws new toxic waste."""
        other = groth16_setup(circuit.build(), circuit.circuit_id)
        assert other.verification_key.key_id != setup.verification_key.key_id

    def test_proving_key_serialization(self, setup):
        """Test the proving key survives a dict round trip."""
        restored = ProvingKey.from_dict(setup.proving_key.to_dict())
        assert restored.key_id == setup.proving_key.key_id
        assert restored.key_data.domain_size == setup.proving_key.key_data.domain_size
        assert len(restored.key_data.a_query) == len(setup.proving_key.key_data.a_query)


class TestGroth16Prover:
    """Test proof generation and verification."""

    def test_proof_layout(self, proof_and_signals):
        """Test the 256-byte A || B || C encoding."""
        proof_data, signals = proof_and_signals
        assert len(proof_data) == GROTH16_PROOF_SIZE
        assert signals == [35, 5]

    def test_valid_proof_verifies(self, setup, proof_and_signals):
        """Test completeness."""
        proof_data, signals = proof_and_signals
        assert groth16_verify(setup.verification_key, proof_data, signals)

    def test_wrong_signal_rejected(self, setup, proof_and_signals):
        """Test that a changed public output fails."""
        proof_data, signals = proof_and_signals
        assert not groth16_verify(setup.verification_key, proof_data, [36, 5])

    def test_flipped_bit_rejected(self, setup, proof_and_signals):
        """Test that a single-bit change to C fails."""
        proof_data, signals = proof_and_signals
        mutated = bytearray(proof_data)
        mutated[-1] ^= 1
        assert not groth16_verify(setup.verification_key, bytes(mutated), signals)

    def test_other_key_rejected(self, circuit, proof_and_signals):
        """Test that a proof does not verify under another setup's key."""
        proof_data, signals = proof_and_signals
        other = groth16_setup(circuit.build(), circuit.circuit_id)
        assert not groth16_verify(other.verification_key, proof_data, signals)

    def test_unsatisfied_witness_rejected_by_prover(self, circuit, setup):
        """Test the prover refuses a witness that violates the QAP."""
        witness = circuit.generate_witness({"offset": 5}, {"x": 3})
        witness.values[1] = 36
        generator = Groth16ProofGenerator(circuit.build(), setup.proving_key)
        with pytest.raises(ZKPError):
            generator.generate_proof(witness)

    def test_generator_rejects_foreign_key(self, setup):
        """Test key/system shape check."""
        other = BuiltCircuit("empty", lambda b, pub, priv: None, [], [])
        with pytest.raises(ZKPError):
            Groth16ProofGenerator(other.build(), setup.proving_key)


class TestMockSetup:
    """Test the designated-verifier simulation."""

    def test_mock_keys(self, circuit):
        """Test mock key pairing and tag."""
        result = mock_setup(circuit.build(), circuit.circuit_id)
        assert result.validate()
        assert result.verification_key.key_type is ZKPType.MOCK

        witness = circuit.generate_witness({"offset": 1}, {"x": 2})
        tag = mock_prove(result.proving_key, witness)
        transcript = mock_transcript(
            circuit.circuit_id, result.verification_key.key_id, witness.public_signals()
        )
        assert SHA256Hasher.verify_hmac_sha256(result.proving_key.key_data, transcript, tag)
