"""
Zero-knowledge proof system.

Rank-1 constraint systems with a circuit builder, a Groth16 backend over
BN254 and a simulated backend for tests.
"""

from .backends import Groth16Backend, MockZKPBackend, create_backend
from .circuits import (
    BuiltCircuit,
    CircuitBuilder,
    Constraint,
    ConstraintSystem,
    ConstraintType,
    LinearCombination,
    Visibility,
    Witness,
    ZKCircuit,
)
from .core import (
    Proof,
    VerificationResult,
    ZKPBackend,
    ZKPConfig,
    ZKPError,
    ZKPManager,
    ZKPStatus,
    ZKPType,
)
from .generation import (
    Groth16ProofGenerator,
    ProvingKey,
    SetupType,
    TrustedSetup,
    VerificationKey,
    groth16_setup,
)
from .verification import ProofVerifier, groth16_verify

__all__ = [
    # Core
    "Proof",
    "VerificationResult",
    "ZKPBackend",
    "ZKPConfig",
    "ZKPError",
    "ZKPManager",
    "ZKPStatus",
    "ZKPType",
    # Circuits
    "BuiltCircuit",
    "CircuitBuilder",
    "Constraint",
    "ConstraintSystem",
    "ConstraintType",
    "LinearCombination",
    "Visibility",
    "Witness",
    "ZKCircuit",
    # Setup and proving
    "Groth16ProofGenerator",
    "ProvingKey",
    "SetupType",
    "TrustedSetup",
    "VerificationKey",
    "groth16_setup",
    # Verification
    "ProofVerifier",
    "groth16_verify",
    # Backends
    "Groth16Backend",
    "MockZKPBackend",
    "create_backend",
]
