"""
Core ZKP types and interfaces.

This module defines the fundamental types and interfaces for the proof
system: backend selection and configuration, the proof container, and the
manager that ties a backend to the keys of each circuit.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ...errors import CryptographicError

if TYPE_CHECKING:
    from .circuits import Witness, ZKCircuit
    from .generation import ProvingKey, VerificationKey

logger = logging.getLogger(__name__)


class ZKPType(Enum):
    """Types of zero-knowledge proof systems supported."""

    GROTH16 = "groth16"
    MOCK = "mock"  # For testing


class ZKPStatus(IntEnum):
    """Status codes for ZKP operations."""

    SUCCESS = 0
    INVALID_PROOF = 1
    INVALID_INPUT = 2
    VERIFICATION_FAILED = 3
    GENERATION_FAILED = 4
    BACKEND_ERROR = 5
    MALFORMED_DATA = 8
    KEY_MISMATCH = 10


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class ZKPConfig:
    """Configuration for ZKP operations."""

    # Backend configuration
    backend_type: ZKPType = ZKPType.GROTH16

    # Limits
    max_proof_size: int = 4096
    max_public_inputs: int = 64
    max_constraints: int = 1 << 20

    # Development setups log a warning when used
    allow_development_setup: bool = True

    environment_overrides: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._apply_environment_overrides()

    def _apply_environment_overrides(self) -> None:
        """Apply ``ANONPICKUP_ZKP_*`` environment variables."""
        env_mappings = {
            "ANONPICKUP_ZKP_BACKEND": ("backend_type", ZKPType),
            "ANONPICKUP_ZKP_MAX_PROOF_SIZE": ("max_proof_size", int),
            "ANONPICKUP_ZKP_MAX_PUBLIC_INPUTS": ("max_public_inputs", int),
            "ANONPICKUP_ZKP_MAX_CONSTRAINTS": ("max_constraints", int),
            "ANONPICKUP_ZKP_ALLOW_DEV_SETUP": ("allow_development_setup", bool),
        }

        for env_var, (attr_name, attr_type) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            try:
                if attr_type is bool:
                    converted = _parse_bool(env_value)
                elif attr_type is ZKPType:
                    converted = ZKPType(env_value.lower())
                else:
                    converted = attr_type(env_value)
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_var}: {e}") from e
            setattr(self, attr_name, converted)
            self.environment_overrides[attr_name] = converted

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not isinstance(self.backend_type, ZKPType):
            raise ValueError("backend_type must be a ZKPType")
        if self.max_proof_size <= 0:
            raise ValueError("max_proof_size must be positive")
        if self.max_public_inputs <= 0:
            raise ValueError("max_public_inputs must be positive")
        if self.max_constraints <= 0:
            raise ValueError("max_constraints must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend_type": self.backend_type.value,
            "max_proof_size": self.max_proof_size,
            "max_public_inputs": self.max_public_inputs,
            "max_constraints": self.max_constraints,
            "allow_development_setup": self.allow_development_setup,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ZKPConfig":
        data = dict(data)
        if "backend_type" in data:
            data["backend_type"] = ZKPType(data["backend_type"])
        return cls(**data)


@dataclass
class Proof:
    """Represents a zero-knowledge proof."""

    proof_data: bytes
    circuit_id: str
    proof_type: ZKPType
    key_id: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate proof data after initialization."""
        if not isinstance(self.proof_data, bytes) or not self.proof_data:
            raise ValueError("proof_data cannot be empty")
        if not self.circuit_id:
            raise ValueError("circuit_id cannot be empty")
        if not self.key_id:
            raise ValueError("key_id cannot be empty")
        if len(self.proof_data) > 1024 * 1024:  # 1MB limit
            raise ValueError("proof_data too large")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof_data": self.proof_data.hex(),
            "circuit_id": self.circuit_id,
            "proof_type": self.proof_type.value,
            "key_id": self.key_id,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proof":
        try:
            return cls(
                proof_data=bytes.fromhex(data["proof_data"]),
                circuit_id=data["circuit_id"],
                proof_type=ZKPType(data["proof_type"]),
                key_id=data["key_id"],
                timestamp=float(data.get("timestamp", time.time())),
                metadata=dict(data.get("metadata") or {}),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Invalid proof data: {e}") from e

    def to_bytes(self) -> bytes:
        """Serialize proof to bytes."""
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        """Deserialize proof from bytes."""
        try:
            parsed = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid proof data: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("Invalid proof data: expected an object")
        return cls.from_dict(parsed)


@dataclass
class VerificationResult:
    """Result of proof verification."""

    status: ZKPStatus
    is_valid: bool = False
    error_message: Optional[str] = None
    verification_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check if verification was successful."""
        return self.status == ZKPStatus.SUCCESS and self.is_valid


class ZKPError(CryptographicError):
    """Proof-system failure that is not a protocol-level rejection."""

    def __init__(
        self,
        message: str,
        status: ZKPStatus = ZKPStatus.BACKEND_ERROR,
        details: Optional[Dict[str, Any]] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status = status
        self.details = details or {}


class ZKPBackend(ABC):
    """Abstract base class for ZKP backends."""

    zkp_type: ZKPType

    def __init__(self, config: ZKPConfig):
        self.config = config
        self.config.validate()

    @abstractmethod
    def setup(self, circuit: "ZKCircuit") -> Tuple["ProvingKey", "VerificationKey"]:
        """Generate a key pair for the circuit."""

    @abstractmethod
    def generate_proof(
        self, proving_key: "ProvingKey", circuit: "ZKCircuit", witness: "Witness"
    ) -> Proof:
        """Prove that ``witness`` satisfies ``circuit``."""

    @abstractmethod
    def verify_proof(
        self, proof: Proof, public_signals: Sequence[int], verification_key: "VerificationKey"
    ) -> bool:
        """Check a proof against public signals; never raises on bad input."""

    def validate_proof_size(self, proof_data: bytes) -> bool:
        """Validate proof size is within limits."""
        return len(proof_data) <= self.config.max_proof_size

    def check_circuit_limits(self, circuit: "ZKCircuit") -> None:
        system = circuit.build()
        if system.get_constraint_count() > self.config.max_constraints:
            raise ZKPError(
                f"Circuit {circuit.circuit_id} exceeds the constraint limit",
                status=ZKPStatus.INVALID_INPUT,
                circuit_id=circuit.circuit_id,
            )
        if system.num_public > self.config.max_public_inputs:
            raise ZKPError(
                f"Circuit {circuit.circuit_id} exceeds the public input limit",
                status=ZKPStatus.INVALID_INPUT,
                circuit_id=circuit.circuit_id,
            )


class ZKPManager:
    """Main manager for ZKP operations."""

    def __init__(self, config: Optional[ZKPConfig] = None, backend: Optional[ZKPBackend] = None):
        self.config = config or ZKPConfig()
        self.config.validate()
        self.backend = backend or self._create_backend()
        self._keys: Dict[str, Tuple[Optional["ProvingKey"], "VerificationKey"]] = {}

    def setup(self, circuit: "ZKCircuit") -> "VerificationKey":
        """Run the backend setup for a circuit and keep both keys."""
        self.backend.check_circuit_limits(circuit)
        if not self.config.allow_development_setup:
            raise ZKPError(
                "Development setup disabled; load ceremony keys instead",
                circuit_id=circuit.circuit_id,
            )
        start_time = time.time()
        proving_key, verification_key = self.backend.setup(circuit)
        self._keys[circuit.circuit_id] = (proving_key, verification_key)
        logger.warning(
            "Single-party development setup for %s (key %s) in %.2fs",
            circuit.circuit_id,
            verification_key.key_id[:16],
            time.time() - start_time,
        )
        return verification_key

    def register_keys(
        self,
        verification_key: "VerificationKey",
        proving_key: Optional["ProvingKey"] = None,
    ) -> None:
        """Install externally generated keys (a verifier only needs the first)."""
        if verification_key.key_type is not self.backend.zkp_type:
            raise ZKPError(
                "Verification key does not match the configured backend",
                status=ZKPStatus.KEY_MISMATCH,
                circuit_id=verification_key.circuit_id,
            )
        if proving_key is not None and proving_key.key_id != verification_key.key_id:
            raise ZKPError(
                "Proving key was not generated with this verification key",
                status=ZKPStatus.KEY_MISMATCH,
                circuit_id=verification_key.circuit_id,
            )
        self._keys[verification_key.circuit_id] = (proving_key, verification_key)

    def get_verification_key(self, circuit_id: str) -> "VerificationKey":
        try:
            return self._keys[circuit_id][1]
        except KeyError:
            raise ZKPError(f"No keys for circuit {circuit_id}", circuit_id=circuit_id) from None

    def generate_proof(
        self,
        circuit: "ZKCircuit",
        public_inputs: Mapping[str, int],
        private_inputs: Mapping[str, int],
    ) -> Tuple[Proof, List[int]]:
        """Compute the witness, check it and prove it.

        Raises ``WitnessUnsatisfiableError`` when the inputs do not satisfy
        the circuit.
        """
        proving_key = self._keys.get(circuit.circuit_id, (None, None))[0]
        if proving_key is None:
            raise ZKPError(
                f"No proving key for circuit {circuit.circuit_id}",
                circuit_id=circuit.circuit_id,
            )
        witness = circuit.generate_witness(public_inputs, private_inputs)
        start_time = time.time()
        proof = self.backend.generate_proof(proving_key, circuit, witness)
        logger.info(
            "Generated %s proof for %s in %.2fs",
            proof.proof_type.value,
            circuit.circuit_id,
            time.time() - start_time,
        )
        return proof, witness.public_signals()

    def verify_proof(
        self, proof: Proof, public_signals: Sequence[int]
    ) -> VerificationResult:
        """Verify a proof against the key registered for its circuit."""
        start_time = time.time()
        entry = self._keys.get(proof.circuit_id)
        if entry is None:
            return VerificationResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=f"Unknown circuit {proof.circuit_id}",
            )
        verification_key = entry[1]
        if proof.key_id != verification_key.key_id:
            return VerificationResult(
                status=ZKPStatus.KEY_MISMATCH,
                error_message="Proof produced against a different verification key",
            )
        if not self.backend.validate_proof_size(proof.proof_data):
            return VerificationResult(
                status=ZKPStatus.MALFORMED_DATA, error_message="Proof too large"
            )
        is_valid = self.backend.verify_proof(proof, public_signals, verification_key)
        return VerificationResult(
            status=ZKPStatus.SUCCESS if is_valid else ZKPStatus.INVALID_PROOF,
            is_valid=is_valid,
            verification_time=time.time() - start_time,
        )

    def _create_backend(self) -> ZKPBackend:
        """Create backend based on configuration."""
        from .backends import create_backend

        return create_backend(self.config)
