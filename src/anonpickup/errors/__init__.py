"""anonpickup error handling.

This module exposes the exception hierarchy shared by the commitment engine,
the proof system and the package lifecycle authority.
"""

from .exceptions import (
    AgeRequirementNotMetError,
    AnonPickupError,
    ConfigurationError,
    CryptographicError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    FatalError,
    InputValidationError,
    InvalidProofError,
    InvalidStateError,
    MalformedInputError,
    NullifierReusedError,
    PackageExpiredError,
    PackageNotFoundError,
    ReasonCode,
    StorageError,
    UnauthorizedError,
    VerificationKeyMismatchError,
    WitnessUnsatisfiableError,
)

__all__ = [
    # Metadata
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "ReasonCode",
    # Base
    "AnonPickupError",
    "CryptographicError",
    "FatalError",
    # Protocol failures
    "AgeRequirementNotMetError",
    "InputValidationError",
    "InvalidProofError",
    "InvalidStateError",
    "MalformedInputError",
    "NullifierReusedError",
    "PackageExpiredError",
    "PackageNotFoundError",
    "UnauthorizedError",
    "VerificationKeyMismatchError",
    "WitnessUnsatisfiableError",
    # Infrastructure
    "ConfigurationError",
    "StorageError",
]
