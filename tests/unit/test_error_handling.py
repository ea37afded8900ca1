"""Tests for the anonpickup error hierarchy."""

import pytest

from anonpickup.errors import (
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


class TestAnonPickupError:
    """Test the base exception."""

    def test_defaults(self):
        """Test default attributes."""
        error = AnonPickupError("boom")
        assert error.message == "boom"
        assert error.reason_code is ReasonCode.INTERNAL
        assert error.error_code == "internal"
        assert error.severity is ErrorSeverity.MEDIUM
        assert error.category is ErrorCategory.SYSTEM
        assert not error.retryable
        assert isinstance(error.context, ErrorContext)

    def test_to_dict(self):
        """Test dictionary conversion."""
        context = ErrorContext(component="authority", package_id="PKG-1")
        cause = ValueError("inner")
        error = AnonPickupError("boom", context=context, cause=cause, metadata={"k": 1})
        data = error.to_dict()
        assert data["type"] == "AnonPickupError"
        assert data["context"]["package_id"] == "PKG-1"
        assert data["cause"] == "inner"
        assert data["metadata"] == {"k": 1}

    def test_str(self):
        """Test string rendering."""
        assert str(AnonPickupError("boom")) == "AnonPickupError: boom"
        rendered = str(AnonPickupError("boom", error_code="E1", severity=ErrorSeverity.HIGH))
        assert "Code: E1" in rendered
        assert "Severity: high" in rendered


class TestReasonCodes:
    """Test the coarse, caller-facing reason codes."""

    @pytest.mark.parametrize(
        "error,reason",
        [
            (InputValidationError("x"), ReasonCode.INPUT_VALIDATION),
            (MalformedInputError("x"), ReasonCode.MALFORMED_INPUT),
            (WitnessUnsatisfiableError("x"), ReasonCode.WITNESS_UNSATISFIABLE),
            (InvalidProofError("x"), ReasonCode.INVALID_PROOF),
            (NullifierReusedError("x"), ReasonCode.NULLIFIER_REUSED),
            (AgeRequirementNotMetError("x"), ReasonCode.AGE_REQUIREMENT_NOT_MET),
            (PackageExpiredError("x"), ReasonCode.PACKAGE_EXPIRED),
            (InvalidStateError("x"), ReasonCode.INVALID_STATE),
            (PackageNotFoundError("x"), ReasonCode.INVALID_STATE),
            (UnauthorizedError("x"), ReasonCode.UNAUTHORIZED),
            (VerificationKeyMismatchError("x"), ReasonCode.VERIFICATION_KEY_MISMATCH),
            (StorageError("x"), ReasonCode.STORAGE),
            (ConfigurationError("x"), ReasonCode.CONFIGURATION),
        ],
    )
    def test_reason_code(self, error, reason):
        """Test every error maps to its reason."""
        assert error.reason_code is reason
        assert error.to_response()["reason"] == reason.value

    def test_response_hides_details(self):
        """Test the caller-facing response carries no message details."""
        error = InvalidProofError("secret=123 did not open commitment 0xabc")
        response = error.to_response()
        assert set(response) == {"reason", "message"}
        assert "123" not in response["message"]
        assert "0xabc" not in response["message"]


class TestSubclasses:
    """Test subclass attributes and hierarchy."""

    def test_hierarchy(self):
        """Test isinstance relationships."""
        assert issubclass(MalformedInputError, InputValidationError)
        assert issubclass(WitnessUnsatisfiableError, CryptographicError)
        assert issubclass(InvalidProofError, CryptographicError)
        assert issubclass(PackageExpiredError, InvalidStateError)
        assert issubclass(PackageNotFoundError, InvalidStateError)
        assert issubclass(VerificationKeyMismatchError, FatalError)

    def test_input_validation_fields(self):
        """Test field and expected are recorded."""
        error = InputValidationError("bad age", field="age", expected="[0, 150]")
        data = error.to_dict()
        assert data["field"] == "age"
        assert data["expected"] == "[0, 150]"

    def test_witness_unsatisfiable(self):
        """Test the failing constraint is recorded."""
        error = WitnessUnsatisfiableError("no", constraint="age requirement", circuit_id="c")
        assert error.constraint == "age requirement"
        assert error.circuit_id == "c"

    def test_invalid_state(self):
        """Test the current state is recorded."""
        error = InvalidStateError("no", current_state="picked_up")
        assert error.category is ErrorCategory.STATE
        assert error.to_dict()["current_state"] == "picked_up"

    def test_unauthorized(self):
        """Test the caller is recorded."""
        error = UnauthorizedError("no", caller="STORE-8")
        assert error.category is ErrorCategory.AUTHORIZATION
        assert error.to_dict()["caller"] == "STORE-8"

    def test_storage(self):
        """Test storage metadata."""
        error = StorageError("disk", storage_type="sqlite", operation="insert")
        data = error.to_dict()
        assert data["storage_type"] == "sqlite"
        assert data["operation"] == "insert"

    def test_fatal(self):
        """Test fatal errors are critical and not retryable."""
        error = VerificationKeyMismatchError(
            "unknown key", expected_key_id="aa", received_key_id="bb"
        )
        assert error.severity is ErrorSeverity.CRITICAL
        assert error.shutdown_required
        assert not error.retryable
        data = error.to_dict()
        assert data["expected_key_id"] == "aa"
        assert data["received_key_id"] == "bb"
