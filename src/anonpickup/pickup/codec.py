"""
Transport encoding of pickup requests.

The buyer hands the store a ``(package_id, proof, public_signals)`` tuple,
usually through a QR code. On the wire it is a compact JSON object with the
proof bytes in hex and the signals as decimal strings.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

from ..crypto.zkp.core import Proof, ZKPType
from ..errors import AnonPickupError, MalformedInputError
from .circuit import PickupPublicSignals

PAYLOAD_VERSION = 1
MAX_PAYLOAD_SIZE = 16 * 1024


@dataclass(frozen=True)
class PickupPayload:
    """Decoded pickup request."""

    package_id: str
    proof: Proof
    public_signals: PickupPublicSignals


def encode_pickup_payload(
    package_id: str, proof: Proof, public_signals: PickupPublicSignals
) -> bytes:
    payload = {
        "v": PAYLOAD_VERSION,
        "package_id": package_id,
        "circuit_id": proof.circuit_id,
        "proof_type": proof.proof_type.value,
        "key_id": proof.key_id,
        "proof": proof.proof_data.hex(),
        "signals": [str(s) for s in public_signals.to_list()],
    }
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


def decode_pickup_payload(data: bytes) -> PickupPayload:
    """Parse a pickup request; any defect raises ``MalformedInputError``."""
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedInputError("Payload must be bytes", field="payload")
    if len(data) > MAX_PAYLOAD_SIZE:
        raise MalformedInputError("Payload too large", field="payload", expected=MAX_PAYLOAD_SIZE)

    try:
        parsed: Dict[str, Any] = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedInputError(f"Payload is not JSON: {e}", field="payload", cause=e) from e
    if not isinstance(parsed, dict):
        raise MalformedInputError("Payload must be a JSON object", field="payload")
    if parsed.get("v") != PAYLOAD_VERSION:
        raise MalformedInputError(
            "Unsupported payload version", field="v", expected=PAYLOAD_VERSION
        )

    try:
        package_id = parsed["package_id"]
        if not isinstance(package_id, str) or not package_id:
            raise ValueError("package_id must be a non-empty string")
        proof = Proof(
            proof_data=bytes.fromhex(parsed["proof"]),
            circuit_id=parsed["circuit_id"],
            proof_type=ZKPType(parsed["proof_type"]),
            key_id=parsed["key_id"],
        )
        signals = parsed["signals"]
        if not isinstance(signals, list) or not all(isinstance(s, str) for s in signals):
            raise ValueError("signals must be a list of decimal strings")
        public_signals = PickupPublicSignals.from_list(signals)
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedInputError(f"Invalid payload: {e}", field="payload", cause=e) from e
    except AnonPickupError as e:
        raise MalformedInputError(
            f"Invalid payload: {e.message}", field="payload", cause=e
        ) from e

    return PickupPayload(package_id=package_id, proof=proof, public_signals=public_signals)
