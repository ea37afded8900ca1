"""
Radix-2 evaluation domains over the BN254 scalar field.
"""

from functools import lru_cache
from typing import List, Sequence

from ..field import FIELD_MODULUS

P = FIELD_MODULUS
TWO_ADICITY = 28


def _find_non_residue() -> int:
    g = 2
    while pow(g, (P - 1) // 2, P) != P - 1:
        g += 1
    return g


# A quadratic non-residue raised to the odd part of p - 1 has order exactly 2^28.
COSET_SHIFT = _find_non_residue()
ROOT_OF_UNITY = pow(COSET_SHIFT, (P - 1) >> TWO_ADICITY, P)


class EvaluationDomain:
    """Multiplicative subgroup of size ``n = 2^k`` generated by ``omega``."""

    def __init__(self, size: int):
        if size < 1 or size & (size - 1):
            raise ValueError("Domain size must be a power of two")
        log_size = size.bit_length() - 1
        if log_size > TWO_ADICITY:
            raise ValueError("Domain larger than the field's 2-adic subgroup")
        self.size = size
        self.log_size = log_size
        self.omega = pow(ROOT_OF_UNITY, 1 << (TWO_ADICITY - log_size), P)
        self.omega_inv = pow(self.omega, P - 2, P)
        self.size_inv = pow(size, P - 2, P)

    @classmethod
    def for_constraints(cls, count: int) -> "EvaluationDomain":
        size = 1
        while size < count:
            size <<= 1
        return cls(size)

    def elements(self) -> List[int]:
        out = [1] * self.size
        for i in range(1, self.size):
            out[i] = out[i - 1] * self.omega % P
        return out

    def vanishing_at(self, x: int) -> int:
        """Z(x) = x^n - 1."""
        return (pow(x, self.size, P) - 1) % P

    def lagrange_at(self, tau: int) -> List[int]:
        """All Lagrange basis polynomials of the domain evaluated at ``tau``."""
        z = self.vanishing_at(tau)
        if z == 0:
            raise ValueError("Evaluation point lies in the domain")
        scale = z * self.size_inv % P
        out = []
        w = 1
        for _ in range(self.size):
            out.append(scale * w % P * pow(tau - w, P - 2, P) % P)
            w = w * self.omega % P
        return out

    def fft(self, values: Sequence[int]) -> List[int]:
        """Coefficients to evaluations on the domain."""
        return _ntt(values, self.omega)

    def ifft(self, values: Sequence[int]) -> List[int]:
        """Evaluations on the domain to coefficients."""
        coeffs = _ntt(values, self.omega_inv)
        return [c * self.size_inv % P for c in coeffs]

    def coset_fft(self, coeffs: Sequence[int]) -> List[int]:
        """Evaluate on ``COSET_SHIFT * domain``."""
        return self.fft(_scale(coeffs, COSET_SHIFT))

    def coset_ifft(self, values: Sequence[int]) -> List[int]:
        return _scale(self.ifft(values), pow(COSET_SHIFT, P - 2, P))


def _scale(coeffs: Sequence[int], factor: int) -> List[int]:
    out = []
    power = 1
    for c in coeffs:
        out.append(c * power % P)
        power = power * factor % P
    return out


@lru_cache(maxsize=32)
def _bit_reverse(n: int) -> List[int]:
    bits = n.bit_length() - 1
    return [int(f"{i:0{bits}b}"[::-1], 2) if bits else 0 for i in range(n)]


def _ntt(values: Sequence[int], root: int) -> List[int]:
    n = len(values)
    order = _bit_reverse(n)
    a = [values[order[i]] % P for i in range(n)]
    length = 2
    while length <= n:
        step = pow(root, n // length, P)
        half = length // 2
        for start in range(0, n, length):
            w = 1
            for j in range(start, start + half):
                u = a[j]
                v = a[j + half] * w % P
                a[j] = (u + v) % P
                a[j + half] = (u - v) % P
                w = w * step % P
        length <<= 1
    return a
