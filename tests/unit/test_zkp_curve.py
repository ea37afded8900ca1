"""
Unit tests for BN254 group helpers and the NTT evaluation domain.
"""

import pytest

from anonpickup.crypto.zkp.curve import (
    G1,
    G2,
    Z1,
    Z2,
    FixedBaseTable,
    add,
    curve_order,
    decode_g1,
    decode_g2,
    encode_g1,
    encode_g2,
    g1_from_json,
    g1_to_json,
    g2_from_json,
    g2_to_json,
    is_infinity,
    msm,
    multiply,
    validate_g1,
    validate_g2,
)
from anonpickup.crypto.zkp.polynomial import (
    COSET_SHIFT,
    P,
    EvaluationDomain,
)
from py_ecc.optimized_bn128 import eq


class TestPointEncoding:
    """Test fixed-size and JSON encodings."""

    def test_g1_round_trip(self):
        """Test 64-byte G1 encoding."""
        point = multiply(G1, 12345)
        data = encode_g1(point)
        assert len(data) == 64
        assert eq(decode_g1(data), point)

    def test_g2_round_trip(self):
        """Test 128-byte G2 encoding."""
        point = multiply(G2, 6789)
        data = encode_g2(point)
        assert len(data) == 128
        assert eq(decode_g2(data), point)

    def test_infinity_encodes_as_zeros(self):
        """Test the point at infinity."""
        assert encode_g1(Z1) == bytes(64)
        assert encode_g2(Z2) == bytes(128)
        assert is_infinity(decode_g1(bytes(64)))
        assert is_infinity(decode_g2(bytes(128)))

    def test_decode_rejects_off_curve(self):
        """Test off-curve and out-of-range coordinates decode to None."""
        assert decode_g1((1).to_bytes(32, "big") + (3).to_bytes(32, "big")) is None
        assert decode_g1(b"\xff" * 64) is None
        assert decode_g1(b"\x00" * 63) is None
        assert decode_g2(b"\x01" * 128) is None

    def test_json_round_trip(self):
        """Test snarkjs-style decimal JSON."""
        p1 = multiply(G1, 42)
        p2 = multiply(G2, 42)
        assert g1_to_json(p1)[2] == "1"
        assert eq(g1_from_json(g1_to_json(p1)), p1)
        assert eq(g2_from_json(g2_to_json(p2)), p2)
        assert is_infinity(g1_from_json(g1_to_json(Z1)))

    def test_json_rejects_off_curve(self):
        """Test invalid JSON points raise ValueError."""
        with pytest.raises(ValueError):
            g1_from_json(["1", "3", "1"])

    def test_validation(self):
        """Test group membership checks."""
        assert validate_g1(G1)
        assert validate_g2(G2)
        assert validate_g2(multiply(G2, 5))


class TestScalarMultiplication:
    """Test fixed-base tables and MSM."""

    @pytest.mark.parametrize("scalar", [0, 1, 2, 15, 16, 2**200 + 7, curve_order - 1])
    def test_fixed_base_matches_multiply(self, scalar):
        """Test windowed table multiplication."""
        table = FixedBaseTable(G1)
        assert eq(table.multiply(scalar), multiply(G1, scalar % curve_order))

    def test_fixed_base_g2(self):
        """Test the table over G2."""
        table = FixedBaseTable(G2)
        assert eq(table.multiply(99), multiply(G2, 99))

    def test_msm_matches_naive(self):
        """Test bucket MSM against a naive sum."""
        points = [multiply(G1, i + 2) for i in range(40)]
        scalars = [(i * 7919 + 3) ** 5 % curve_order for i in range(40)]
        scalars[5] = 0
        expected = Z1
        for point, scalar in zip(points, scalars):
            expected = add(expected, multiply(point, scalar))
        assert eq(msm(points, scalars, Z1), expected)

    def test_msm_edge_cases(self):
        """Test empty and single-term MSM."""
        assert is_infinity(msm([], [], Z1))
        assert is_infinity(msm([G1], [0], Z1))
        assert eq(msm([G1], [5], Z1), multiply(G1, 5))


class TestEvaluationDomain:
    """Test the radix-2 domain."""

    def test_size_must_be_power_of_two(self):
        """Test domain size validation."""
        with pytest.raises(ValueError):
            EvaluationDomain(12)
        assert EvaluationDomain.for_constraints(12).size == 16

    def test_fft_round_trip(self):
        """Test ifft(fft(x)) == x."""
        domain = EvaluationDomain(8)
        coeffs = [3, 1, 4, 1, 5, 9, 2, 6]
        assert domain.ifft(domain.fft(coeffs)) == coeffs

    def test_fft_evaluates_polynomial(self):
        """Test fft output against direct evaluation."""
        domain = EvaluationDomain(4)
        coeffs = [1, 2, 3, 4]
        evaluations = domain.fft(coeffs)
        for x, value in zip(domain.elements(), evaluations):
            assert value == sum(c * pow(x, i, P) for i, c in enumerate(coeffs)) % P

    def test_coset_round_trip(self):
        """Test coset_ifft(coset_fft(x)) == x."""
        domain = EvaluationDomain(8)
        coeffs = [7, 0, 0, 1, 2, 3, 0, 5]
        assert domain.coset_ifft(domain.coset_fft(coeffs)) == coeffs

    def test_coset_is_outside_domain(self):
        """Test the vanishing polynomial is non-zero on the coset."""
        domain = EvaluationDomain(16)
        assert domain.vanishing_at(COSET_SHIFT) != 0
        assert all(domain.vanishing_at(x) == 0 for x in domain.elements())

    def test_lagrange_basis(self):
        """Test the Lagrange evaluations sum to one and interpolate."""
        domain = EvaluationDomain(8)
        tau = 123456789
        basis = domain.lagrange_at(tau)
        assert sum(basis) % P == 1
        values = [5, 1, 0, 7, 3, 3, 2, 9]
        coeffs = domain.ifft(values)
        direct = sum(c * pow(tau, i, P) for i, c in enumerate(coeffs)) % P
        assert sum(v * l for v, l in zip(values, basis)) % P == direct

    def test_lagrange_rejects_domain_point(self):
        """Test tau inside the domain is refused."""
        domain = EvaluationDomain(4)
        with pytest.raises(ValueError):
            domain.lagrange_at(domain.elements()[1])
