"""
Poseidon hash over the BN254 scalar field.

Parameters follow the circomlib instantiation: x^5 S-box, 8 full rounds and
a width-dependent number of partial rounds. Round constants and the MDS
matrix are produced by the Grain LFSR procedure of the Poseidon reference
parameter generator and cached per state width.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, List, Sequence, Tuple

from ..errors import InputValidationError
from .field import FIELD_MODULUS, FieldElement

logger = logging.getLogger(__name__)

FULL_ROUNDS = 8
PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
MAX_INPUTS = len(PARTIAL_ROUNDS)
FIELD_BITS = 254
SBOX_ALPHA = 5


@dataclass(frozen=True)
class PoseidonParams:
    """Round constants and MDS matrix for one state width."""

    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, r: int) -> bool:
        half = self.full_rounds // 2
        return r < half or r >= half + self.partial_rounds


def _grain_bits(t: int, full_rounds: int, partial_rounds: int) -> Iterator[int]:
    """Self-shrinking Grain LFSR bit stream seeded with the instance parameters."""
    seed = (
        f"{1:02b}"  # prime field
        f"{0:04b}"  # x^alpha S-box
        f"{FIELD_BITS:012b}"
        f"{t:012b}"
        f"{full_rounds:010b}"
        f"{partial_rounds:010b}"
        + "1" * 30
    )
    state = [int(bit) for bit in seed]

    def step() -> int:
        bit = state[62] ^ state[51] ^ state[38] ^ state[23] ^ state[13] ^ state[0]
        state.pop(0)
        state.append(bit)
        return bit

    for _ in range(160):
        step()

    while True:
        bit = step()
        while bit == 0:
            step()
            bit = step()
        yield step()


def _take(bits: Iterator[int], count: int) -> int:
    value = 0
    for _ in range(count):
        value = (value << 1) | next(bits)
    return value


@lru_cache(maxsize=None)
def poseidon_params(t: int) -> PoseidonParams:
    """Generate (once) the parameters for state width ``t``."""
    if not 2 <= t <= MAX_INPUTS + 1:
        raise InputValidationError(
            f"Unsupported Poseidon width {t}", field="t", expected=f"[2, {MAX_INPUTS + 1}]"
        )
    partial_rounds = PARTIAL_ROUNDS[t - 2]
    bits = _grain_bits(t, FULL_ROUNDS, partial_rounds)

    constants: List[int] = []
    for _ in range((FULL_ROUNDS + partial_rounds) * t):
        value = _take(bits, FIELD_BITS)
        while value >= FIELD_MODULUS:
            value = _take(bits, FIELD_BITS)
        constants.append(value)

    while True:
        samples = [_take(bits, FIELD_BITS) % FIELD_MODULUS for _ in range(2 * t)]
        while len(set(samples)) != len(samples):
            samples = [_take(bits, FIELD_BITS) % FIELD_MODULUS for _ in range(2 * t)]
        xs, ys = samples[:t], samples[t:]
        if all((x + y) % FIELD_MODULUS for x in xs for y in ys):
            break

    mds = tuple(
        tuple(pow(x + y, FIELD_MODULUS - 2, FIELD_MODULUS) for y in ys) for x in xs
    )
    logger.debug("Generated Poseidon parameters for t=%d", t)
    return PoseidonParams(
        t=t,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=tuple(constants),
        mds=mds,
    )


def permute(state: Sequence[int], params: PoseidonParams) -> List[int]:
    """Apply the Poseidon permutation to a full state."""
    p = FIELD_MODULUS
    t = params.t
    state = list(state)
    constants = params.round_constants
    mds = params.mds
    for r in range(params.total_rounds):
        offset = r * t
        state = [(state[i] + constants[offset + i]) % p for i in range(t)]
        if params.is_full_round(r):
            state = [pow(s, SBOX_ALPHA, p) for s in state]
        else:
            state[0] = pow(state[0], SBOX_ALPHA, p)
        state = [sum(row[j] * state[j] for j in range(t)) % p for row in mds]
    return state


def poseidon_hash(inputs: Sequence[int]) -> int:
    """Hash 1 to 16 field elements to one field element."""
    if not 1 <= len(inputs) <= MAX_INPUTS:
        raise InputValidationError(
            "Poseidon takes between 1 and 16 inputs",
            field="inputs",
            expected=f"[1, {MAX_INPUTS}]",
        )
    values = [int(FieldElement.from_int(int(v), "input")) for v in inputs]
    params = poseidon_params(len(values) + 1)
    return permute([0] + values, params)[0]


def poseidon(*inputs: FieldElement) -> FieldElement:
    """Field-element wrapper around ``poseidon_hash``."""
    return FieldElement(poseidon_hash([int(v) for v in inputs]))
