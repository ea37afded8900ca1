"""
Rank-1 constraint systems and circuit building.

A circuit is described by a ``synthesize`` routine that allocates wires and
emits ``a * b = c`` constraints through a ``CircuitBuilder``. The builder
computes the witness while it emits constraints, so the same routine yields
both the constraint system (run on placeholder inputs) and a concrete
witness (run on real inputs).

Wire layout follows the circom convention: wire 0 is the constant one, then
public outputs, then public inputs, then private wires.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ...errors import InputValidationError, WitnessUnsatisfiableError
from ..field import FIELD_MODULUS
from ..poseidon import SBOX_ALPHA, poseidon_params

logger = logging.getLogger(__name__)

P = FIELD_MODULUS
ONE = 0

if SBOX_ALPHA != 5:
    raise ValueError("Poseidon gadget expands the S-box as x^5")


class ConstraintType(Enum):
    """Types of constraints in a circuit."""

    MULTIPLICATION = "multiplication"
    EQUALITY = "equality"
    BOOLEAN = "boolean"
    RANGE = "range"
    COMPARISON = "comparison"
    HASH = "hash"
    CUSTOM = "custom"


class Visibility(Enum):
    """Where a wire sits in the public/private split."""

    PUBLIC_OUTPUT = "public_output"
    PUBLIC_INPUT = "public_input"
    PRIVATE = "private"


class LinearCombination:
    """Sparse sum of ``coefficient * wire`` terms over the scalar field."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Mapping[int, int]] = None):
        self.terms: Dict[int, int] = {}
        if terms:
            for index, coeff in terms.items():
                coeff %= P
                if coeff:
                    self.terms[index] = coeff

    @classmethod
    def variable(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE: value})

    @staticmethod
    def lift(value: "LCLike") -> "LinearCombination":
        if isinstance(value, LinearCombination):
            return value
        return LinearCombination.constant(value)

    def __add__(self, other: "LCLike") -> "LinearCombination":
        other = LinearCombination.lift(other)
        terms = dict(self.terms)
        for index, coeff in other.terms.items():
            terms[index] = terms.get(index, 0) + coeff
        return LinearCombination(terms)

    __radd__ = __add__

    def __neg__(self) -> "LinearCombination":
        return LinearCombination({i: -c for i, c in self.terms.items()})

    def __sub__(self, other: "LCLike") -> "LinearCombination":
        return self + (-LinearCombination.lift(other))

    def __rsub__(self, other: "LCLike") -> "LinearCombination":
        return LinearCombination.lift(other) + (-self)

    def __mul__(self, scalar: int) -> "LinearCombination":
        if isinstance(scalar, LinearCombination):
            raise TypeError("Use CircuitBuilder.mul to multiply two wires")
        return LinearCombination({i: c * scalar for i, c in self.terms.items()})

    __rmul__ = __mul__

    def evaluate(self, values: Sequence[Optional[int]]) -> int:
        total = 0
        for index, coeff in self.terms.items():
            total += coeff * values[index]
        return total % P

    @property
    def is_constant(self) -> bool:
        return all(index == ONE for index in self.terms)

    def __repr__(self) -> str:
        return f"LinearCombination({self.terms})"


LCLike = Union[LinearCombination, int]


@dataclass
class Constraint:
    """``a * b = c`` over linear combinations of wires."""

    a: LinearCombination
    b: LinearCombination
    c: LinearCombination
    constraint_type: ConstraintType = ConstraintType.MULTIPLICATION
    description: str = ""

    def is_satisfied(self, values: Sequence[int]) -> bool:
        return (
            self.a.evaluate(values) * self.b.evaluate(values) - self.c.evaluate(values)
        ) % P == 0


@dataclass
class WireInfo:
    """Metadata for one wire."""

    name: str
    visibility: Visibility


@dataclass
class ConstraintSystem:
    """Represents a system of constraints for a circuit."""

    wires: List[WireInfo] = field(
        default_factory=lambda: [WireInfo("one", Visibility.PUBLIC_INPUT)]
    )
    constraints: List[Constraint] = field(default_factory=list)
    num_public_outputs: int = 0
    num_public_inputs: int = 0

    @property
    def num_public(self) -> int:
        """Public signals, excluding the constant wire."""
        return self.num_public_outputs + self.num_public_inputs

    @property
    def public_names(self) -> List[str]:
        return [w.name for w in self.wires[1 : 1 + self.num_public]]

    def get_constraint_count(self) -> int:
        """Get the number of constraints."""
        return len(self.constraints)

    def get_variable_count(self) -> int:
        """Get the number of wires, including the constant wire."""
        return len(self.wires)

    def validate(self) -> bool:
        """Check the wire layout and that constraints only reference known wires."""
        expected = (
            [Visibility.PUBLIC_OUTPUT] * self.num_public_outputs
            + [Visibility.PUBLIC_INPUT] * self.num_public_inputs
        )
        if [w.visibility for w in self.wires[1 : 1 + self.num_public]] != expected:
            return False
        if any(w.visibility is not Visibility.PRIVATE for w in self.wires[1 + self.num_public :]):
            return False
        limit = len(self.wires)
        for constraint in self.constraints:
            for lc in (constraint.a, constraint.b, constraint.c):
                if any(not 0 <= index < limit for index in lc.terms):
                    return False
        return True

    def first_unsatisfied(self, values: Sequence[int]) -> Optional[Constraint]:
        """First constraint the assignment violates, if any."""
        for constraint in self.constraints:
            if not constraint.is_satisfied(values):
                return constraint
        return None

    def is_satisfied(self, values: Sequence[int]) -> bool:
        return (
            len(values) == len(self.wires)
            and values[ONE] == 1
            and self.first_unsatisfied(values) is None
        )


@dataclass
class Witness:
    """Full wire assignment for a circuit."""

    values: List[int]
    num_public: int

    def public_signals(self) -> List[int]:
        """Public outputs followed by public inputs."""
        return list(self.values[1 : 1 + self.num_public])

    def validate_against_system(self, system: ConstraintSystem) -> bool:
        """Validate witness against a constraint system."""
        return self.num_public == system.num_public and system.is_satisfied(self.values)

    def __repr__(self) -> str:
        return f"Witness(<{len(self.values)} wires>)"


class CircuitBuilder:
    """Allocates wires, records constraints and computes the witness."""

    def __init__(self, circuit_id: str):
        self.circuit_id = circuit_id
        self.system = ConstraintSystem()
        self.values: List[Optional[int]] = [1]
        self._private_started = False
        self._inputs_started = False

    # -- allocation -----------------------------------------------------

    def _allocate(self, name: str, visibility: Visibility, value: Optional[int]) -> LinearCombination:
        self.system.wires.append(WireInfo(name, visibility))
        self.values.append(None if value is None else value % P)
        return LinearCombination.variable(len(self.system.wires) - 1)

    def public_output(self, name: str) -> LinearCombination:
        """Allocate a public output; its value is set later with ``assign``."""
        if self._inputs_started or self._private_started:
            raise ValueError("Public outputs must be allocated before inputs")
        self.system.num_public_outputs += 1
        return self._allocate(name, Visibility.PUBLIC_OUTPUT, None)

    def public_input(self, name: str, value: int) -> LinearCombination:
        """Allocate a public input wire."""
        if self._private_started:
            raise ValueError("Public inputs must be allocated before private wires")
        self._inputs_started = True
        self.system.num_public_inputs += 1
        return self._allocate(name, Visibility.PUBLIC_INPUT, value)

    def private(self, name: str, value: int) -> LinearCombination:
        """Allocate a private wire with a known value."""
        self._private_started = True
        return self._allocate(name, Visibility.PRIVATE, value)

    def assign(self, wire: LinearCombination, value: int) -> None:
        """Set the value of a wire allocated without one."""
        (index,) = wire.terms
        self.values[index] = value % P

    def value_of(self, lc: LCLike) -> int:
        return LinearCombination.lift(lc).evaluate(self.values)

    def add_constraint(
        self,
        a: LCLike,
        b: LCLike,
        c: LCLike,
        constraint_type: ConstraintType = ConstraintType.MULTIPLICATION,
        description: str = "",
    ) -> "CircuitBuilder":
        """Add ``a * b = c``."""
        self.system.constraints.append(
            Constraint(
                LinearCombination.lift(a),
                LinearCombination.lift(b),
                LinearCombination.lift(c),
                constraint_type,
                description,
            )
        )
        return self

    # -- gadgets --------------------------------------------------------

    def mul(self, a: LCLike, b: LCLike, name: str = "mul") -> LinearCombination:
        """New wire constrained to ``a * b``."""
        out = self.private(name, self.value_of(a) * self.value_of(b))
        self.add_constraint(a, b, out, ConstraintType.MULTIPLICATION, name)
        return out

    def assert_equal(self, a: LCLike, b: LCLike, description: str = "") -> "CircuitBuilder":
        """Constrain ``a == b``."""
        return self.add_constraint(
            LinearCombination.lift(a) - b, 1, 0, ConstraintType.EQUALITY, description
        )

    def assert_boolean(self, x: LCLike, description: str = "") -> "CircuitBuilder":
        """Constrain ``x`` to 0 or 1."""
        x = LinearCombination.lift(x)
        return self.add_constraint(x, x - 1, 0, ConstraintType.BOOLEAN, description)

    def num_to_bits(self, x: LCLike, n: int, name: str = "bits") -> List[LinearCombination]:
        """Little-endian bit decomposition; unsatisfiable when ``x >= 2**n``."""
        value = self.value_of(x)
        bits = []
        packed = LinearCombination()
        for i in range(n):
            bit = self.private(f"{name}[{i}]", (value >> i) & 1)
            self.assert_boolean(bit, f"{name}[{i}] is a bit")
            bits.append(bit)
            packed = packed + bit * (1 << i)
        self.add_constraint(packed, 1, x, ConstraintType.RANGE, f"{name} fits in {n} bits")
        return bits

    def less_than(self, a: LCLike, b: LCLike, n: int, name: str = "lt") -> LinearCombination:
        """1 if ``a < b`` else 0, for operands already known to fit in ``n`` bits."""
        if n > 252:
            raise ValueError("Comparator operands must fit in 252 bits")
        shifted = LinearCombination.lift(a) + (1 << n) - b
        bits = self.num_to_bits(shifted, n + 1, name)
        return 1 - bits[n]

    def is_zero(self, x: LCLike, name: str = "is_zero") -> LinearCombination:
        """1 if ``x == 0`` else 0."""
        value = self.value_of(x)
        inv = self.private(f"{name}.inv", pow(value, P - 2, P) if value else 0)
        out = self.private(f"{name}.out", 0 if value else 1)
        self.add_constraint(x, inv, 1 - out, ConstraintType.COMPARISON, f"{name} inverse")
        self.add_constraint(x, out, 0, ConstraintType.COMPARISON, f"{name} output")
        return out

    def logical_or(self, a: LCLike, b: LCLike, name: str = "or") -> LinearCombination:
        """``a + b - a*b`` for boolean operands."""
        product = self.mul(a, b, f"{name}.ab")
        return LinearCombination.lift(a) + b - product

    def poseidon(self, inputs: Sequence[LCLike], name: str = "poseidon") -> LinearCombination:
        """Poseidon permutation in constraints; returns the hash output."""
        params = poseidon_params(len(inputs) + 1)
        t = params.t
        state = [LinearCombination()] + [LinearCombination.lift(x) for x in inputs]
        constants = params.round_constants
        for r in range(params.total_rounds):
            state = [state[i] + constants[r * t + i] for i in range(t)]
            if params.is_full_round(r):
                state = [self._sbox(s, f"{name}.r{r}.s{i}") for i, s in enumerate(state)]
            else:
                state[0] = self._sbox(state[0], f"{name}.r{r}.s0")
            state = [self._dot(row, state) for row in params.mds]
        return state[0]

    def _sbox(self, x: LinearCombination, name: str) -> LinearCombination:
        x2 = self.mul(x, x, f"{name}^2")
        x4 = self.mul(x2, x2, f"{name}^4")
        return self.mul(x4, x, f"{name}^5")

    @staticmethod
    def _dot(row: Sequence[int], state: Sequence[LinearCombination]) -> LinearCombination:
        terms: Dict[int, int] = {}
        for coeff, lc in zip(row, state):
            for index, c in lc.terms.items():
                terms[index] = terms.get(index, 0) + coeff * c
        return LinearCombination(terms)

    # -- output ---------------------------------------------------------

    def witness(self) -> Witness:
        """Finished assignment; every wire must have a value."""
        missing = [self.system.wires[i].name for i, v in enumerate(self.values) if v is None]
        if missing:
            raise ValueError(f"Unassigned wires: {', '.join(missing)}")
        return Witness(values=list(self.values), num_public=self.system.num_public)


class ZKCircuit(ABC):
    """Abstract base class for zero-knowledge circuits."""

    public_input_names: Sequence[str] = ()
    private_input_names: Sequence[str] = ()

    def __init__(self, circuit_id: str):
        self.circuit_id = circuit_id
        self._system: Optional[ConstraintSystem] = None

    @abstractmethod
    def synthesize(
        self,
        builder: CircuitBuilder,
        public_inputs: Mapping[str, int],
        private_inputs: Mapping[str, int],
    ) -> None:
        """Allocate wires and emit constraints for the given inputs."""

    def placeholder_inputs(self) -> Dict[str, Dict[str, int]]:
        """Inputs used to derive the constraint shape."""
        return {
            "public": {name: 0 for name in self.public_input_names},
            "private": {name: 0 for name in self.private_input_names},
        }

    def build(self) -> ConstraintSystem:
        """Constraint system of the circuit (cached)."""
        if self._system is None:
            placeholders = self.placeholder_inputs()
            builder = CircuitBuilder(self.circuit_id)
            self.synthesize(builder, placeholders["public"], placeholders["private"])
            if not builder.system.validate():
                raise ValueError(f"Invalid constraint system for {self.circuit_id}")
            self._system = builder.system
            logger.info(
                "Built circuit %s: %d constraints, %d wires, %d public signals",
                self.circuit_id,
                self._system.get_constraint_count(),
                self._system.get_variable_count(),
                self._system.num_public,
            )
        return self._system

    def generate_witness(
        self, public_inputs: Mapping[str, int], private_inputs: Mapping[str, int]
    ) -> Witness:
        """Compute a wire assignment; does not check satisfaction."""
        self._check_names(public_inputs, self.public_input_names, "public")
        self._check_names(private_inputs, self.private_input_names, "private")
        system = self.build()
        builder = CircuitBuilder(self.circuit_id)
        self.synthesize(builder, public_inputs, private_inputs)
        if (
            builder.system.get_constraint_count() != system.get_constraint_count()
            or builder.system.get_variable_count() != system.get_variable_count()
        ):
            raise ValueError(f"Circuit {self.circuit_id} shape depends on its inputs")
        return builder.witness()

    def verify_witness(self, witness: Witness) -> bool:
        """Verify that a witness satisfies all constraints."""
        return witness.validate_against_system(self.build())

    def check_witness(self, witness: Witness) -> None:
        """Raise ``WitnessUnsatisfiableError`` naming the first violated constraint."""
        system = self.build()
        failing = system.first_unsatisfied(witness.values)
        if failing is not None:
            raise WitnessUnsatisfiableError(
                f"Witness violates constraint '{failing.description or failing.constraint_type.value}'",
                constraint=failing.description,
                circuit_id=self.circuit_id,
            )

    def get_circuit_info(self) -> Dict[str, Any]:
        """Get information about the circuit."""
        system = self.build()
        by_type: Dict[str, int] = {}
        for constraint in system.constraints:
            key = constraint.constraint_type.value
            by_type[key] = by_type.get(key, 0) + 1
        return {
            "circuit_id": self.circuit_id,
            "constraint_count": system.get_constraint_count(),
            "variable_count": system.get_variable_count(),
            "public_signals": system.public_names,
            "private_inputs": list(self.private_input_names),
            "constraints_by_type": by_type,
        }

    @staticmethod
    def _check_names(values: Mapping[str, int], names: Iterable[str], kind: str) -> None:
        names = list(names)
        if set(values) != set(names):
            raise InputValidationError(
                f"Expected {kind} inputs {names}", field=f"{kind}_inputs", expected=names
            )
        for name in names:
            value = values[name]
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < P:
                raise InputValidationError(
                    f"{name} is not a field element", field=name, expected=f"[0, {P})"
                )


SynthesizeFn = Callable[[CircuitBuilder, Mapping[str, int], Mapping[str, int]], None]


class BuiltCircuit(ZKCircuit):
    """A circuit defined by a plain synthesis function."""

    def __init__(
        self,
        circuit_id: str,
        synthesize_fn: SynthesizeFn,
        public_input_names: Sequence[str],
        private_input_names: Sequence[str],
    ):
        super().__init__(circuit_id)
        self._synthesize_fn = synthesize_fn
        self.public_input_names = tuple(public_input_names)
        self.private_input_names = tuple(private_input_names)

    def synthesize(self, builder, public_inputs, private_inputs) -> None:
        self._synthesize_fn(builder, public_inputs, private_inputs)
