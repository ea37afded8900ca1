"""
Unit tests for the Poseidon hash and its constraint gadget.
"""

import pytest

from anonpickup.crypto.field import FIELD_MODULUS, FieldElement
from anonpickup.crypto.poseidon import (
    FULL_ROUNDS,
    MAX_INPUTS,
    PARTIAL_ROUNDS,
    permute,
    poseidon,
    poseidon_hash,
    poseidon_params,
)
from anonpickup.crypto.zkp.circuits import CircuitBuilder
from anonpickup.errors import InputValidationError


class TestPoseidonParams:
    """Test parameter generation."""

    def test_round_counts(self):
        """Test R_F and R_P per width."""
        for t in (2, 3, 5, 17):
            params = poseidon_params(t)
            assert params.full_rounds == FULL_ROUNDS
            assert params.partial_rounds == PARTIAL_ROUNDS[t - 2]
            assert len(params.round_constants) == params.total_rounds * t

    def test_constants_are_field_elements(self):
        """Test that constants and MDS entries lie in the field."""
        params = poseidon_params(4)
        assert all(0 <= c < FIELD_MODULUS for c in params.round_constants)
        assert len(params.mds) == 4
        assert all(len(row) == 4 for row in params.mds)
        assert all(0 < m < FIELD_MODULUS for row in params.mds for m in row)

    def test_parameters_are_cached(self):
        """Test that parameters are generated once per width."""
        assert poseidon_params(3) is poseidon_params(3)

    @pytest.mark.parametrize("t", [0, 1, MAX_INPUTS + 2])
    def test_unsupported_width(self, t):
        """Test widths outside 2..17."""
        with pytest.raises(InputValidationError):
            poseidon_params(t)

    def test_full_round_layout(self):
        """Test that full rounds bracket the partial rounds."""
        params = poseidon_params(3)
        half = FULL_ROUNDS // 2
        assert all(params.is_full_round(r) for r in range(half))
        assert not params.is_full_round(half)
        assert params.is_full_round(params.total_rounds - 1)


class TestPoseidonHash:
    """Test the native hash."""

    def test_deterministic(self):
        """Test repeated hashing yields the same value."""
        assert poseidon_hash([1, 2, 3]) == poseidon_hash([1, 2, 3])

    def test_input_sensitivity(self):
        """Test that order, value and arity all matter."""
        base = poseidon_hash([1, 2])
        assert base != poseidon_hash([2, 1])
        assert base != poseidon_hash([1, 3])
        assert base != poseidon_hash([1, 2, 0])

    def test_output_in_field(self):
        """Test output range."""
        assert 0 <= poseidon_hash([FIELD_MODULUS - 1] * 4) < FIELD_MODULUS

    def test_output_is_first_state_element(self):
        """Test that the hash is state[0] after permuting [0, inputs...]."""
        params = poseidon_params(3)
        assert poseidon_hash([5, 6]) == permute([0, 5, 6], params)[0]

    def test_arity_limits(self):
        """Test 0 and 17 inputs are rejected, 16 accepted."""
        with pytest.raises(InputValidationError):
            poseidon_hash([])
        with pytest.raises(InputValidationError):
            poseidon_hash([1] * (MAX_INPUTS + 1))
        assert poseidon_hash([1] * MAX_INPUTS) >= 0

    def test_rejects_out_of_field_input(self):
        """Test that inputs are range checked, not reduced."""
        with pytest.raises(InputValidationError):
            poseidon_hash([FIELD_MODULUS])

    def test_field_element_wrapper(self):
        """Test the FieldElement wrapper agrees with the int API."""
        result = poseidon(FieldElement(1), FieldElement(2))
        assert isinstance(result, FieldElement)
        assert result.value == poseidon_hash([1, 2])


class TestPoseidonKnownAnswers:
    """Outputs published by circomlib for its BN254 parameters."""

    @pytest.mark.parametrize(
        "inputs,expected",
        [
            ([1], 18586133768512220936620570745912940619677854269274689475585506675881198879027),
            ([1, 2], 7853200120776062878684798364095072458815029376092732009249414926327459813530),
        ],
    )
    def test_circomlib_vectors(self, inputs, expected):
        """Test the hash matches circomlib bit for bit."""
        assert poseidon_hash(inputs) == expected


class TestPoseidonGadget:
    """Test the in-circuit Poseidon against the native hash."""

    @pytest.mark.parametrize("inputs", [[0], [1, 2], [123, 456, 789], [9, 8, 7, 6]])
    def test_gadget_matches_native(self, inputs):
        """Test gadget output value and constraint satisfaction."""
        builder = CircuitBuilder("poseidon-test")
        wires = [builder.private(f"x{i}", v) for i, v in enumerate(inputs)]
        out = builder.poseidon(wires, "h")

        assert builder.value_of(out) == poseidon_hash(inputs)
        witness = builder.witness()
        assert builder.system.is_satisfied(witness.values)

    def test_gadget_constraint_count(self):
        """Test three constraints per S-box."""
        builder = CircuitBuilder("poseidon-count")
        wires = [builder.private("a", 1), builder.private("b", 2)]
        builder.poseidon(wires)
        params = poseidon_params(3)
        sboxes = params.full_rounds * params.t + params.partial_rounds
        assert builder.system.get_constraint_count() == 3 * sboxes
