"""
Unit tests for the R1CS builder, its gadgets and circuit classes.
"""

import pytest

from anonpickup.crypto.zkp.circuits import (
    ONE,
    P,
    BuiltCircuit,
    CircuitBuilder,
    Constraint,
    ConstraintSystem,
    ConstraintType,
    LinearCombination,
    Visibility,
)
from anonpickup.errors import InputValidationError, WitnessUnsatisfiableError


def satisfied(builder: CircuitBuilder) -> bool:
    return builder.system.is_satisfied(builder.witness().values)


class TestLinearCombination:
    """Test LinearCombination arithmetic."""

    def test_constant_and_variable(self):
        """Test constructors and evaluation."""
        values = [1, 5, 7]
        assert LinearCombination.constant(3).evaluate(values) == 3
        assert LinearCombination.variable(2).evaluate(values) == 7

    def test_arithmetic(self):
        """Test +, -, scalar * and int mixing."""
        x = LinearCombination.variable(1)
        y = LinearCombination.variable(2)
        values = [1, 5, 7]
        assert (x + y).evaluate(values) == 12
        assert (x - y).evaluate(values) == (5 - 7) % P
        assert (x * 3 + 1).evaluate(values) == 16
        assert (10 - x).evaluate(values) == 5

    def test_zero_terms_dropped(self):
        """Test cancelling terms leaves a constant."""
        x = LinearCombination.variable(1)
        assert (x - x).is_constant


class TestConstraintSystem:
    """Test ConstraintSystem bookkeeping."""

    def test_constant_wire(self):
        """Test that wire 0 is the constant one."""
        system = ConstraintSystem()
        assert system.get_variable_count() == 1
        assert system.wires[ONE].name == "one"
        assert system.is_satisfied([1])
        assert not system.is_satisfied([2])

    def test_rejects_unknown_wire(self):
        """Test validate catches out-of-range wire references."""
        system = ConstraintSystem()
        system.constraints.append(
            Constraint(LinearCombination.variable(3), LinearCombination.constant(1), LinearCombination())
        )
        assert not system.validate()


class TestCircuitBuilder:
    """Test wire allocation and gadgets."""

    def test_wire_order(self):
        """Test outputs, then inputs, then private wires."""
        builder = CircuitBuilder("order")
        builder.public_output("out")
        builder.public_input("in", 3)
        builder.private("secret", 4)
        visibilities = [w.visibility for w in builder.system.wires[1:]]
        assert visibilities == [Visibility.PUBLIC_OUTPUT, Visibility.PUBLIC_INPUT, Visibility.PRIVATE]
        assert builder.system.public_names == ["out", "in"]

    def test_outputs_must_come_first(self):
        """Test allocation order is enforced."""
        builder = CircuitBuilder("order")
        builder.public_input("in", 1)
        with pytest.raises(ValueError):
            builder.public_output("late")
        builder.private("p", 1)
        with pytest.raises(ValueError):
            builder.public_input("late", 1)

    def test_unassigned_output(self):
        """Test witness requires every wire to be set."""
        builder = CircuitBuilder("unassigned")
        builder.public_output("out")
        with pytest.raises(ValueError):
            builder.witness()

    def test_mul_and_equal(self):
        """Test multiplication and equality gadgets."""
        builder = CircuitBuilder("mul")
        x = builder.private("x", 6)
        y = builder.private("y", 7)
        product = builder.mul(x, y)
        builder.assert_equal(product, 42)
        assert builder.value_of(product) == 42
        assert satisfied(builder)

        builder.assert_equal(product, 41, "wrong")
        assert not satisfied(builder)
        failing = builder.system.first_unsatisfied(builder.witness().values)
        assert failing.description == "wrong"
        assert failing.constraint_type is ConstraintType.EQUALITY

    def test_boolean(self):
        """Test boolean constraint."""
        builder = CircuitBuilder("bool")
        builder.assert_boolean(builder.private("b", 1))
        assert satisfied(builder)
        builder.assert_boolean(builder.private("c", 2))
        assert not satisfied(builder)

    def test_num_to_bits(self):
        """Test bit decomposition and its range check."""
        builder = CircuitBuilder("bits")
        bits = builder.num_to_bits(builder.private("x", 0b1011), 4)
        assert [builder.value_of(b) for b in bits] == [1, 1, 0, 1]
        assert satisfied(builder)

        builder = CircuitBuilder("bits-overflow")
        builder.num_to_bits(builder.private("x", 16), 4)
        assert not satisfied(builder)

    @pytest.mark.parametrize("a,b,expected", [(3, 5, 1), (5, 5, 0), (7, 5, 0), (0, 1, 1), (0, 0, 0)])
    def test_less_than(self, a, b, expected):
        """Test the comparator."""
        builder = CircuitBuilder("lt")
        out = builder.less_than(builder.private("a", a), builder.private("b", b), 8)
        assert builder.value_of(out) == expected
        assert satisfied(builder)

    def test_less_than_width_limit(self):
        """Test comparator width is bounded."""
        builder = CircuitBuilder("lt")
        with pytest.raises(ValueError):
            builder.less_than(1, 2, 253)

    @pytest.mark.parametrize("x,expected", [(0, 1), (1, 0), (P - 1, 0)])
    def test_is_zero(self, x, expected):
        """Test the zero check."""
        builder = CircuitBuilder("is_zero")
        out = builder.is_zero(builder.private("x", x))
        assert builder.value_of(out) == expected
        assert satisfied(builder)

    @pytest.mark.parametrize("a,b", [(0, 0), (0, 1), (1, 0), (1, 1)])
    def test_logical_or(self, a, b):
        """Test OR over booleans."""
        builder = CircuitBuilder("or")
        out = builder.logical_or(builder.private("a", a), builder.private("b", b))
        assert builder.value_of(out) == (a | b)
        assert satisfied(builder)

    def test_sbox_is_fifth_power(self):
        """Test the S-box gadget raises to the fifth power with three multiplications."""
        builder = CircuitBuilder("sbox")
        x = builder.private("x", 3)
        before = builder.system.get_constraint_count()
        out = builder._sbox(x, "s")
        assert builder.value_of(out) == pow(3, 5, P)
        assert builder.system.get_constraint_count() - before == 3
        assert satisfied(builder)


def _square_circuit() -> BuiltCircuit:
    def synthesize(builder, public_inputs, private_inputs):
        out = builder.public_output("y")
        bound = builder.public_input("bound", public_inputs["bound"])
        x = builder.private("x", private_inputs["x"])
        square = builder.mul(x, x, "x^2")
        builder.assign(out, builder.value_of(square))
        builder.add_constraint(square, 1, out, ConstraintType.EQUALITY, "output")
        ok = builder.less_than(x, bound, 8, "x<bound")
        builder.assert_equal(ok, 1, "x below bound")

    return BuiltCircuit("square", synthesize, ["bound"], ["x"])


class TestZKCircuit:
    """Test the circuit base class."""

    def test_build_is_cached(self):
        """Test the constraint system is built once."""
        circuit = _square_circuit()
        assert circuit.build() is circuit.build()
        assert circuit.build().num_public == 2

    def test_witness_public_signals(self):
        """Test public signals are outputs then inputs."""
        circuit = _square_circuit()
        witness = circuit.generate_witness({"bound": 10}, {"x": 3})
        assert witness.public_signals() == [9, 10]
        assert circuit.verify_witness(witness)

    def test_check_witness_names_failing_constraint(self):
        """Test unsatisfiable witnesses raise with the constraint name."""
        circuit = _square_circuit()
        witness = circuit.generate_witness({"bound": 2}, {"x": 3})
        assert not circuit.verify_witness(witness)
        with pytest.raises(WitnessUnsatisfiableError) as exc_info:
            circuit.check_witness(witness)
        assert exc_info.value.constraint == "x below bound"
        assert exc_info.value.circuit_id == "square"

    def test_input_names_checked(self):
        """Test missing, extra and out-of-field inputs."""
        circuit = _square_circuit()
        with pytest.raises(InputValidationError):
            circuit.generate_witness({}, {"x": 1})
        with pytest.raises(InputValidationError):
            circuit.generate_witness({"bound": 1, "extra": 2}, {"x": 1})
        with pytest.raises(InputValidationError):
            circuit.generate_witness({"bound": P}, {"x": 1})

    def test_circuit_info(self):
        """Test circuit metadata."""
        info = _square_circuit().get_circuit_info()
        assert info["circuit_id"] == "square"
        assert info["public_signals"] == ["y", "bound"]
        assert info["private_inputs"] == ["x"]
        assert info["constraint_count"] == sum(info["constraints_by_type"].values())
