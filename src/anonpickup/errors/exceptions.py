"""Exception hierarchy for anonpickup.

Every failure the protocol can report maps onto one coarse ``ReasonCode``.
Errors never carry witness values (secrets, name hashes, phone digits, ages,
nonces); only field names and public identifiers appear in messages.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CRYPTOGRAPHIC = "cryptographic"
    STATE = "state"
    AUTHORIZATION = "authorization"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


class ReasonCode(Enum):
    """Coarse, user-visible failure reasons."""

    INPUT_VALIDATION = "input_validation"
    MALFORMED_INPUT = "malformed_input"
    WITNESS_UNSATISFIABLE = "witness_unsatisfiable"
    INVALID_PROOF = "invalid_proof"
    NULLIFIER_REUSED = "nullifier_reused"
    AGE_REQUIREMENT_NOT_MET = "age_requirement_not_met"
    PACKAGE_EXPIRED = "package_expired"
    INVALID_STATE = "invalid_state"
    UNAUTHORIZED = "unauthorized"
    VERIFICATION_KEY_MISMATCH = "verification_key_mismatch"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


_PUBLIC_MESSAGES = {
    ReasonCode.INPUT_VALIDATION: "Input rejected",
    ReasonCode.MALFORMED_INPUT: "Malformed request",
    ReasonCode.WITNESS_UNSATISFIABLE: "Proof could not be generated",
    ReasonCode.INVALID_PROOF: "Proof rejected",
    ReasonCode.NULLIFIER_REUSED: "Pickup already used",
    ReasonCode.AGE_REQUIREMENT_NOT_MET: "Age requirement not met",
    ReasonCode.PACKAGE_EXPIRED: "Package expired",
    ReasonCode.INVALID_STATE: "Operation not allowed in current state",
    ReasonCode.UNAUTHORIZED: "Not authorized",
    ReasonCode.VERIFICATION_KEY_MISMATCH: "Service misconfigured",
    ReasonCode.STORAGE: "Service unavailable",
    ReasonCode.CONFIGURATION: "Service misconfigured",
    ReasonCode.INTERNAL: "Internal error",
}


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    package_id: Optional[str] = None
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "package_id": self.package_id,
            "request_id": self.request_id,
            "metadata": self.metadata,
        }


class AnonPickupError(Exception):
    """Base exception for all anonpickup errors."""

    reason_code: ReasonCode = ReasonCode.INTERNAL

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.reason_code.value
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "reason_code": self.reason_code.value,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def to_response(self) -> Dict[str, str]:
        """Coarse representation safe to hand back to an untrusted caller."""
        return {
            "reason": self.reason_code.value,
            "message": _PUBLIC_MESSAGES[self.reason_code],
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code and self.error_code != self.reason_code.value:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.category != ErrorCategory.SYSTEM:
            parts.append(f"Category: {self.category.value}")

        return " | ".join(parts)


class InputValidationError(AnonPickupError):
    """A scalar or identifier is outside its allowed domain."""

    reason_code = ReasonCode.INPUT_VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        self.field = field
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class MalformedInputError(InputValidationError):
    """Bytes at the transport boundary could not be decoded."""

    reason_code = ReasonCode.MALFORMED_INPUT


class CryptographicError(AnonPickupError):
    """Base for proof-system failures."""

    def __init__(self, message: str, circuit_id: Optional[str] = None, **kwargs):
        kwargs.setdefault("category", ErrorCategory.CRYPTOGRAPHIC)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.circuit_id = circuit_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert cryptographic error to dictionary."""
        data = super().to_dict()
        data.update({"circuit_id": self.circuit_id})
        return data


class WitnessUnsatisfiableError(CryptographicError):
    """No assignment satisfies the circuit for the given inputs."""

    reason_code = ReasonCode.WITNESS_UNSATISFIABLE

    def __init__(self, message: str, constraint: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.constraint = constraint

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"constraint": self.constraint})
        return data


class InvalidProofError(CryptographicError):
    """Proof failed verification or does not match the package record."""

    reason_code = ReasonCode.INVALID_PROOF


class NullifierReusedError(AnonPickupError):
    """The nullifier has already been recorded."""

    reason_code = ReasonCode.NULLIFIER_REUSED

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.STATE)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)


class AgeRequirementNotMetError(AnonPickupError):
    """The proof's age flag is not set."""

    reason_code = ReasonCode.AGE_REQUIREMENT_NOT_MET

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.AUTHORIZATION)
        super().__init__(message, **kwargs)


class InvalidStateError(AnonPickupError):
    """Operation attempted from a state that does not allow it."""

    reason_code = ReasonCode.INVALID_STATE

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.STATE)
        super().__init__(message, **kwargs)
        self.current_state = current_state

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"current_state": self.current_state})
        return data


class PackageNotFoundError(InvalidStateError):
    """No package record exists for the identifier."""


class PackageExpiredError(InvalidStateError):
    """The pickup window has closed."""

    reason_code = ReasonCode.PACKAGE_EXPIRED


class UnauthorizedError(AnonPickupError):
    """Caller is not the party allowed to perform the operation."""

    reason_code = ReasonCode.UNAUTHORIZED

    def __init__(self, message: str, caller: Optional[str] = None, **kwargs):
        kwargs.setdefault("category", ErrorCategory.AUTHORIZATION)
        super().__init__(message, **kwargs)
        self.caller = caller

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"caller": self.caller})
        return data


class StorageError(AnonPickupError):
    """Storage error."""

    reason_code = ReasonCode.STORAGE

    def __init__(
        self,
        message: str,
        storage_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.STORAGE)
        super().__init__(message, **kwargs)
        self.storage_type = storage_type
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        """Convert storage error to dictionary."""
        data = super().to_dict()
        data.update({"storage_type": self.storage_type, "operation": self.operation})
        return data


class ConfigurationError(AnonPickupError):
    """Configuration error."""

    reason_code = ReasonCode.CONFIGURATION

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        kwargs.setdefault("category", ErrorCategory.CONFIGURATION)
        super().__init__(message, **kwargs)
        self.config_key = config_key

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"config_key": self.config_key})
        return data


class FatalError(AnonPickupError):
    """Fatal error that cannot be recovered from."""

    def __init__(self, message: str, shutdown_required: bool = True, **kwargs):
        kwargs.setdefault("category", ErrorCategory.CONFIGURATION)
        super().__init__(
            message, severity=ErrorSeverity.CRITICAL, retryable=False, **kwargs
        )
        self.shutdown_required = shutdown_required

    def to_dict(self) -> Dict[str, Any]:
        """Convert fatal error to dictionary."""
        data = super().to_dict()
        data.update({"shutdown_required": self.shutdown_required})
        return data


class VerificationKeyMismatchError(FatalError):
    """A proof was produced against a verification key the authority does not hold."""

    reason_code = ReasonCode.VERIFICATION_KEY_MISMATCH

    def __init__(
        self,
        message: str,
        expected_key_id: Optional[str] = None,
        received_key_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.expected_key_id = expected_key_id
        self.received_key_id = received_key_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "expected_key_id": self.expected_key_id,
                "received_key_id": self.received_key_id,
            }
        )
        return data
