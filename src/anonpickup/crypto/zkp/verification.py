"""
ZKP verification components.

``ProofVerifier.verify(proof, public_signals, verification_key)`` is a pure
function of its arguments. It returns ``False`` for anything it cannot
accept (malformed bytes, off-curve or wrong-subgroup points, signals outside
the scalar field, a key produced for another circuit) and never raises for
bad input.

The Groth16 check always evaluates all four pairings, substituting
generator points for inputs that failed to decode. Proofs rejected by the
format or backend checks go through the same pairings on substitute data,
so rejection does not return early.
"""

import logging
from typing import Any, Optional, Sequence, Tuple

from ..field import FIELD_MODULUS
from ..hashing import SHA256Hasher
from .core import Proof, ZKPConfig, ZKPError, ZKPType
from .curve import G1, G2, Z1, add, decode_g1, decode_g2, msm, pairing
from .generation import GROTH16_PROOF_SIZE, VerificationKey, mock_transcript

logger = logging.getLogger(__name__)


def _is_field_element(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < FIELD_MODULUS
    )


def _sanitized_signals(public_signals: Sequence[Any], count: int) -> Tuple[bool, list]:
    ok = len(public_signals) == count
    signals = []
    for i in range(count):
        value = public_signals[i] if i < len(public_signals) else 0
        if not _is_field_element(value):
            ok = False
            value = 0
        signals.append(value)
    return ok, signals


def groth16_verify(
    verification_key: VerificationKey, proof_data: bytes, public_signals: Sequence[int]
) -> bool:
    """e(A, B) == e(alpha, beta) * e(sum s_i IC_i, gamma) * e(C, delta)."""
    try:
        points = verification_key.groth16_points()
    except (KeyError, TypeError, ValueError, ZKPError) as e:
        logger.error("Unusable Groth16 verification key %s: %s", verification_key.circuit_id, e)
        return False

    ok = isinstance(proof_data, bytes) and len(proof_data) == GROTH16_PROOF_SIZE
    data = proof_data if ok else bytes(GROTH16_PROOF_SIZE)

    a = decode_g1(data[0:64])
    b = decode_g2(data[64:192])
    c = decode_g1(data[192:256])
    if a is None:
        ok, a = False, G1
    if b is None:
        ok, b = False, G2
    if c is None:
        ok, c = False, G1

    signals_ok, signals = _sanitized_signals(public_signals, verification_key.num_public)
    ok = ok and signals_ok

    ic = points["ic"]
    vk_x = add(ic[0], msm(ic[1:], signals, Z1))

    lhs = pairing(b, a)
    rhs = (
        pairing(points["beta_g2"], points["alpha_g1"])
        * pairing(points["gamma_g2"], vk_x)
        * pairing(points["delta_g2"], c)
    )
    return (lhs == rhs) and ok


def mock_verify(
    verification_key: VerificationKey, proof_data: bytes, public_signals: Sequence[int]
) -> bool:
    """Check the HMAC tag of a simulated proof."""
    signals_ok, signals = _sanitized_signals(public_signals, verification_key.num_public)
    try:
        mac_key = bytes.fromhex(verification_key.key_data["mac_key"])
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Unusable mock verification key %s: %s", verification_key.circuit_id, e)
        return False
    transcript = mock_transcript(verification_key.circuit_id, verification_key.key_id, signals)
    tag_ok = SHA256Hasher.verify_hmac_sha256(mac_key, transcript, proof_data)
    return tag_ok and signals_ok


class ProofVerifier:
    """Main proof verifier with format checks in front of the backend check."""

    def __init__(self, config: Optional[ZKPConfig] = None):
        self.config = config or ZKPConfig()
        self.max_proof_size = self.config.max_proof_size
        self.max_public_inputs = self.config.max_public_inputs

    def validate_proof_format(self, proof: Proof) -> Tuple[bool, Optional[str]]:
        """Validate proof format and structure."""
        if not isinstance(proof, Proof):
            return False, "Not a proof"

        if len(proof.proof_data) > self.max_proof_size:
            return False, f"Proof data too large: {len(proof.proof_data)} bytes"

        if proof.proof_type is ZKPType.GROTH16 and len(proof.proof_data) != GROTH16_PROOF_SIZE:
            return False, f"Groth16 proof must be {GROTH16_PROOF_SIZE} bytes"

        if not proof.circuit_id or len(proof.circuit_id) > 256:
            return False, "Invalid circuit ID"

        return True, None

    def validate_public_signals(
        self, public_signals: Sequence[Any], verification_key: VerificationKey
    ) -> Tuple[bool, Optional[str]]:
        """Validate count and range of the public signals."""
        if len(public_signals) > self.max_public_inputs:
            return False, f"Too many public signals: {len(public_signals)}"

        if len(public_signals) != verification_key.num_public:
            return False, (
                f"Expected {verification_key.num_public} public signals, "
                f"got {len(public_signals)}"
            )

        for i, value in enumerate(public_signals):
            if not _is_field_element(value):
                return False, f"Public signal {i} is not a field element"

        return True, None

    def verify(
        self,
        proof: Proof,
        public_signals: Sequence[int],
        verification_key: VerificationKey,
    ) -> bool:
        """Accept or reject; fails closed.

        Rejected formats still run the backend check on substitute data.
        """
        format_ok, reason = self.validate_proof_format(proof)
        if not format_ok:
            logger.debug("Rejected proof format: %s", reason)
        type_ok = format_ok and proof.proof_type is verification_key.key_type
        if format_ok and not type_ok:
            logger.debug("Rejected proof: backend %s does not match key", proof.proof_type.value)

        try:
            signals = list(public_signals)
        except TypeError:
            signals = []
        bound_ok = (
            type_ok
            and proof.circuit_id == verification_key.circuit_id
            and proof.key_id == verification_key.key_id
        )
        signals_ok, reason = self.validate_public_signals(signals, verification_key)
        if not signals_ok:
            logger.debug("Rejected public signals: %s", reason)

        proof_data = proof.proof_data if type_ok else b""
        if verification_key.key_type is ZKPType.GROTH16:
            valid = groth16_verify(verification_key, proof_data, signals)
        else:
            valid = mock_verify(verification_key, proof_data, signals)
        return valid and bound_ok and signals_ok
