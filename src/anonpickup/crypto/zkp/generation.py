"""
ZKP proof generation components.

This module provides the development trusted setup, the key containers and
the Groth16 prover over BN254.

Groth16 recap, for a QAP with wire polynomials u_i, v_i, w_i over a domain
with vanishing polynomial Z:

    setup  draws tau, alpha, beta, gamma, delta
    proof  A = alpha + sum w_i u_i(tau) + r delta                     (G1)
           B = beta  + sum w_i v_i(tau) + s delta                     (G2)
           C = sum_priv w_i (beta u_i + alpha v_i + w_i)(tau) / delta
               + h(tau) Z(tau) / delta + s A + r B - r s delta        (G1)

Like snarkjs, one extra ``x_i * 0 = 0`` row per public wire keeps the
public input polynomials linearly independent.
"""

import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..hashing import SHA256Hasher
from .circuits import ConstraintSystem, Witness
from .core import ZKPError, ZKPStatus, ZKPType
from .curve import (
    G1,
    G2,
    Z1,
    Z2,
    FixedBaseTable,
    Point,
    add,
    encode_g1,
    encode_g2,
    g1_from_json,
    g1_to_json,
    g2_from_json,
    g2_to_json,
    msm,
    multiply,
    neg,
)
from .polynomial import COSET_SHIFT, P, EvaluationDomain

logger = logging.getLogger(__name__)

GROTH16_PROOF_SIZE = 256


class SetupType(Enum):
    """Types of trusted setup."""

    DEVELOPMENT = "development"  # Single party, toxic waste discarded in-process


@dataclass
class VerificationKey:
    """Verification key for verifying proofs."""

    key_type: ZKPType
    circuit_id: str
    num_public: int
    key_data: Dict[str, Any]
    parameters: Dict[str, Any] = field(default_factory=dict)
    _key_id: Optional[str] = field(default=None, init=False, repr=False, compare=False)
    _parsed: Optional[Dict[str, Any]] = field(default=None, init=False, repr=False, compare=False)

    @property
    def key_id(self) -> str:
        """SHA-256 fingerprint of the canonical key encoding."""
        if self._key_id is None:
            canonical = json.dumps(
                {
                    "key_type": self.key_type.value,
                    "circuit_id": self.circuit_id,
                    "num_public": self.num_public,
                    "key_data": self.key_data,
                },
                sort_keys=True,
                separators=(",", ":"),
            )
            self._key_id = SHA256Hasher.hash(canonical).to_hex()
        return self._key_id

    def groth16_points(self) -> Dict[str, Any]:
        """Parsed curve points of a Groth16 key (cached)."""
        if self.key_type is not ZKPType.GROTH16:
            raise ZKPError("Not a Groth16 verification key", status=ZKPStatus.KEY_MISMATCH)
        if self._parsed is None:
            data = self.key_data
            ic = [g1_from_json(p) for p in data["IC"]]
            if len(ic) != self.num_public + 1:
                raise ValueError("IC length does not match the public signal count")
            self._parsed = {
                "alpha_g1": g1_from_json(data["vk_alpha_1"]),
                "beta_g2": g2_from_json(data["vk_beta_2"]),
                "gamma_g2": g2_from_json(data["vk_gamma_2"]),
                "delta_g2": g2_from_json(data["vk_delta_2"]),
                "ic": ic,
            }
        return self._parsed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key_type": self.key_type.value,
            "circuit_id": self.circuit_id,
            "num_public": self.num_public,
            "key_data": self.key_data,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerificationKey":
        return cls(
            key_type=ZKPType(data["key_type"]),
            circuit_id=data["circuit_id"],
            num_public=int(data["num_public"]),
            key_data=dict(data["key_data"]),
            parameters=dict(data.get("parameters") or {}),
        )

    def validate(self) -> bool:
        """Validate verification key."""
        return bool(self.key_data and self.circuit_id and self.num_public >= 0)


@dataclass
class Groth16ProvingKeyData:
    """Curve points the Groth16 prover needs."""

    domain_size: int
    alpha_g1: Point
    beta_g1: Point
    beta_g2: Point
    delta_g1: Point
    delta_g2: Point
    a_query: List[Point]
    b_g1_query: List[Point]
    b_g2_query: List[Point]
    l_query: List[Point]
    h_query: List[Point]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain_size": self.domain_size,
            "alpha_g1": g1_to_json(self.alpha_g1),
            "beta_g1": g1_to_json(self.beta_g1),
            "beta_g2": g2_to_json(self.beta_g2),
            "delta_g1": g1_to_json(self.delta_g1),
            "delta_g2": g2_to_json(self.delta_g2),
            "a_query": [g1_to_json(p) for p in self.a_query],
            "b_g1_query": [g1_to_json(p) for p in self.b_g1_query],
            "b_g2_query": [g2_to_json(p) for p in self.b_g2_query],
            "l_query": [g1_to_json(p) for p in self.l_query],
            "h_query": [g1_to_json(p) for p in self.h_query],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Groth16ProvingKeyData":
        return cls(
            domain_size=int(data["domain_size"]),
            alpha_g1=g1_from_json(data["alpha_g1"]),
            beta_g1=g1_from_json(data["beta_g1"]),
            beta_g2=g2_from_json(data["beta_g2"]),
            delta_g1=g1_from_json(data["delta_g1"]),
            delta_g2=g2_from_json(data["delta_g2"]),
            a_query=[g1_from_json(p) for p in data["a_query"]],
            b_g1_query=[g1_from_json(p) for p in data["b_g1_query"]],
            b_g2_query=[g2_from_json(p) for p in data["b_g2_query"]],
            l_query=[g1_from_json(p) for p in data["l_query"]],
            h_query=[g1_from_json(p) for p in data["h_query"]],
        )


@dataclass
class ProvingKey:
    """Proving key for generating proofs."""

    key_type: ZKPType
    circuit_id: str
    key_id: str  # id of the matching verification key
    key_data: Any

    def to_dict(self) -> Dict[str, Any]:
        if self.key_type is ZKPType.GROTH16:
            data = self.key_data.to_dict()
        else:
            data = self.key_data.hex()
        return {
            "key_type": self.key_type.value,
            "circuit_id": self.circuit_id,
            "key_id": self.key_id,
            "key_data": data,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProvingKey":
        key_type = ZKPType(data["key_type"])
        if key_type is ZKPType.GROTH16:
            key_data: Any = Groth16ProvingKeyData.from_dict(data["key_data"])
        else:
            key_data = bytes.fromhex(data["key_data"])
        return cls(key_type, data["circuit_id"], data["key_id"], key_data)


@dataclass
class TrustedSetup:
    """Outcome of a setup run."""

    setup_type: SetupType
    circuit_id: str
    proving_key: ProvingKey
    verification_key: VerificationKey
    setup_parameters: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)

    def validate(self) -> bool:
        """Validate that the two keys belong together."""
        return (
            self.verification_key.validate()
            and self.proving_key.key_id == self.verification_key.key_id
            and self.proving_key.circuit_id == self.circuit_id == self.verification_key.circuit_id
        )


def _random_scalar() -> int:
    return secrets.randbelow(P - 1) + 1


def _inverse(value: int) -> int:
    return pow(value, P - 2, P)


def _qap_rows(system: ConstraintSystem) -> int:
    return system.get_constraint_count() + system.num_public + 1


def groth16_setup(system: ConstraintSystem, circuit_id: str) -> TrustedSetup:
    """Single-party Groth16 setup; the toxic waste never leaves this frame."""
    start_time = time.time()
    domain = EvaluationDomain.for_constraints(_qap_rows(system))
    num_wires = system.get_variable_count()
    num_public = system.num_public

    tau = _random_scalar()
    while domain.vanishing_at(tau) == 0:
        tau = _random_scalar()
    alpha, beta, gamma, delta = (_random_scalar() for _ in range(4))

    lagrange = domain.lagrange_at(tau)
    u = [0] * num_wires
    v = [0] * num_wires
    w = [0] * num_wires
    for row, constraint in enumerate(system.constraints):
        l_row = lagrange[row]
        for index, coeff in constraint.a.terms.items():
            u[index] = (u[index] + coeff * l_row) % P
        for index, coeff in constraint.b.terms.items():
            v[index] = (v[index] + coeff * l_row) % P
        for index, coeff in constraint.c.terms.items():
            w[index] = (w[index] + coeff * l_row) % P
    offset = system.get_constraint_count()
    for index in range(num_public + 1):
        u[index] = (u[index] + lagrange[offset + index]) % P

    g1 = FixedBaseTable(G1)
    g2 = FixedBaseTable(G2)
    gamma_inv = _inverse(gamma)
    delta_inv = _inverse(delta)

    def combined(i: int) -> int:
        return (beta * u[i] + alpha * v[i] + w[i]) % P

    ic = [g1.multiply(combined(i) * gamma_inv) for i in range(num_public + 1)]
    l_query = [g1.multiply(combined(i) * delta_inv) for i in range(num_public + 1, num_wires)]

    z_tau = domain.vanishing_at(tau)
    h_query = []
    power = z_tau * delta_inv % P
    for _ in range(domain.size - 1):
        h_query.append(g1.multiply(power))
        power = power * tau % P

    pk_data = Groth16ProvingKeyData(
        domain_size=domain.size,
        alpha_g1=g1.multiply(alpha),
        beta_g1=g1.multiply(beta),
        beta_g2=g2.multiply(beta),
        delta_g1=g1.multiply(delta),
        delta_g2=g2.multiply(delta),
        a_query=[g1.multiply(x) for x in u],
        b_g1_query=[g1.multiply(x) for x in v],
        b_g2_query=[g2.multiply(x) for x in v],
        l_query=l_query,
        h_query=h_query,
    )
    verification_key = VerificationKey(
        key_type=ZKPType.GROTH16,
        circuit_id=circuit_id,
        num_public=num_public,
        key_data={
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": num_public,
            "vk_alpha_1": g1_to_json(pk_data.alpha_g1),
            "vk_beta_2": g2_to_json(pk_data.beta_g2),
            "vk_gamma_2": g2_to_json(g2.multiply(gamma)),
            "vk_delta_2": g2_to_json(pk_data.delta_g2),
            "IC": [g1_to_json(p) for p in ic],
        },
        parameters={
            "domain_size": domain.size,
            "constraints": system.get_constraint_count(),
            "wires": num_wires,
        },
    )
    proving_key = ProvingKey(ZKPType.GROTH16, circuit_id, verification_key.key_id, pk_data)
    logger.info(
        "Groth16 setup for %s: %d constraints, domain %d, %.2fs",
        circuit_id,
        system.get_constraint_count(),
        domain.size,
        time.time() - start_time,
    )
    return TrustedSetup(
        setup_type=SetupType.DEVELOPMENT,
        circuit_id=circuit_id,
        proving_key=proving_key,
        verification_key=verification_key,
        setup_parameters=dict(verification_key.parameters),
    )


class Groth16ProofGenerator:
    """Groth16 prover for one circuit and proving key."""

    def __init__(self, system: ConstraintSystem, proving_key: ProvingKey):
        if proving_key.key_type is not ZKPType.GROTH16:
            raise ZKPError("Not a Groth16 proving key", status=ZKPStatus.KEY_MISMATCH)
        self.system = system
        self.key = proving_key.key_data
        self.domain = EvaluationDomain(self.key.domain_size)
        if _qap_rows(system) > self.domain.size or len(self.key.a_query) != system.get_variable_count():
            raise ZKPError(
                "Proving key does not match the constraint system",
                status=ZKPStatus.KEY_MISMATCH,
            )

    def _quotient(self, values: Sequence[int]) -> List[int]:
        """Coefficients of h = (A*B - C) / Z."""
        n = self.domain.size
        a_eval = [0] * n
        b_eval = [0] * n
        c_eval = [0] * n
        for row, constraint in enumerate(self.system.constraints):
            a_eval[row] = constraint.a.evaluate(values)
            b_eval[row] = constraint.b.evaluate(values)
            c_eval[row] = constraint.c.evaluate(values)
        offset = self.system.get_constraint_count()
        for index in range(self.system.num_public + 1):
            a_eval[offset + index] = values[index] % P

        a_coset = self.domain.coset_fft(self.domain.ifft(a_eval))
        b_coset = self.domain.coset_fft(self.domain.ifft(b_eval))
        c_coset = self.domain.coset_fft(self.domain.ifft(c_eval))

        z_inv = _inverse(self.domain.vanishing_at(COSET_SHIFT))
        h_coset = [
            (a * b - c) * z_inv % P for a, b, c in zip(a_coset, b_coset, c_coset)
        ]
        h = self.domain.coset_ifft(h_coset)
        if h[-1] != 0:
            raise ZKPError("Witness does not satisfy the QAP", status=ZKPStatus.GENERATION_FAILED)
        return h[:-1]

    def generate_proof(self, witness: Witness) -> bytes:
        """256-byte proof: A (G1) || B (G2) || C (G1)."""
        values = witness.values
        key = self.key
        r = _random_scalar()
        s = _random_scalar()

        h = self._quotient(values)
        first_private = self.system.num_public + 1

        a = add(add(key.alpha_g1, msm(key.a_query, values, Z1)), multiply(key.delta_g1, r))
        b2 = add(add(key.beta_g2, msm(key.b_g2_query, values, Z2)), multiply(key.delta_g2, s))
        b1 = add(add(key.beta_g1, msm(key.b_g1_query, values, Z1)), multiply(key.delta_g1, s))

        c = msm(key.l_query, values[first_private:], Z1)
        c = add(c, msm(key.h_query, h, Z1))
        c = add(c, multiply(a, s))
        c = add(c, multiply(b1, r))
        c = add(c, neg(multiply(key.delta_g1, r * s % P)))

        return encode_g1(a) + encode_g2(b2) + encode_g1(c)


def mock_setup(system: ConstraintSystem, circuit_id: str) -> TrustedSetup:
    """Designated-verifier setup: one shared MAC key."""
    mac_key = secrets.token_bytes(32)
    verification_key = VerificationKey(
        key_type=ZKPType.MOCK,
        circuit_id=circuit_id,
        num_public=system.num_public,
        key_data={"protocol": "mock", "nPublic": system.num_public, "mac_key": mac_key.hex()},
        parameters={"constraints": system.get_constraint_count()},
    )
    proving_key = ProvingKey(ZKPType.MOCK, circuit_id, verification_key.key_id, mac_key)
    return TrustedSetup(
        setup_type=SetupType.DEVELOPMENT,
        circuit_id=circuit_id,
        proving_key=proving_key,
        verification_key=verification_key,
    )


def mock_transcript(circuit_id: str, key_id: str, public_signals: Sequence[int]) -> bytes:
    """Bytes the mock proof tag authenticates."""
    parts = [circuit_id.encode("utf-8"), key_id.encode("utf-8")]
    parts.extend(int(s).to_bytes(32, "big") for s in public_signals)
    return SHA256Hasher.hash_list(parts).value


def mock_prove(proving_key: ProvingKey, witness: Witness) -> bytes:
    return SHA256Hasher.hmac_sha256(
        proving_key.key_data,
        mock_transcript(proving_key.circuit_id, proving_key.key_id, witness.public_signals()),
    ).value
