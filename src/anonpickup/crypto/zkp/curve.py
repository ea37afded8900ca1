"""
BN254 (alt_bn128) group helpers on top of ``py_ecc.optimized_bn128``.

Points are kept in py_ecc's projective form. This module adds the pieces the
Groth16 implementation needs on top: point validation, fixed 64/128-byte
encodings (the layout of the EVM pairing precompiles), decimal-string JSON
encodings (the snarkjs layout), fixed-base tables and bucket multi-scalar
multiplication.
"""

import math
from typing import Any, List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    G1,
    G2,
    Z1,
    Z2,
    add,
    b,
    b2,
    curve_order,
    double,
    field_modulus,
    is_on_curve,
    multiply,
    neg,
    normalize,
    pairing,
)

Point = Tuple[Any, Any, Any]

__all__ = [
    "G1",
    "G2",
    "Z1",
    "Z2",
    "FQ12",
    "FixedBaseTable",
    "Point",
    "add",
    "curve_order",
    "decode_g1",
    "decode_g2",
    "encode_g1",
    "encode_g2",
    "g1_from_json",
    "g1_to_json",
    "g2_from_json",
    "g2_to_json",
    "is_infinity",
    "msm",
    "multiply",
    "neg",
    "pairing",
    "validate_g1",
    "validate_g2",
]


def _coeff(value: Any) -> int:
    return int(getattr(value, "n", value))


def is_infinity(point: Point) -> bool:
    """True for the point at infinity (projective z == 0)."""
    z = point[2]
    return z == type(z).zero()


def validate_g1(point: Point) -> bool:
    """On-curve check; the G1 cofactor is 1 so this is also the subgroup check."""
    return is_on_curve(point, b)


def validate_g2(point: Point) -> bool:
    """On-curve and prime-order subgroup check for a G2 point."""
    if not is_on_curve(point, b2):
        return False
    return is_infinity(multiply(point, curve_order))


def _fq2_coeffs(value: Any) -> Tuple[int, int]:
    c0, c1 = value.coeffs
    return _coeff(c0), _coeff(c1)


def _affine_g1(point: Point) -> Tuple[int, int]:
    if is_infinity(point):
        return 0, 0
    x, y = normalize(point)
    return _coeff(x), _coeff(y)


def _affine_g2(point: Point) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    if is_infinity(point):
        return (0, 0), (0, 0)
    x, y = normalize(point)
    return _fq2_coeffs(x), _fq2_coeffs(y)


def encode_g1(point: Point) -> bytes:
    """64 bytes: x || y, big-endian; infinity is all zeros."""
    x, y = _affine_g1(point)
    return x.to_bytes(32, "big") + y.to_bytes(32, "big")


def encode_g2(point: Point) -> bytes:
    """128 bytes: x.c1 || x.c0 || y.c1 || y.c0, big-endian; infinity is all zeros."""
    (x0, x1), (y0, y1) = _affine_g2(point)
    return b"".join(v.to_bytes(32, "big") for v in (x1, x0, y1, y0))


def _base_coordinates(data: bytes, count: int) -> Optional[List[int]]:
    if len(data) != 32 * count:
        return None
    values = [int.from_bytes(data[i * 32 : (i + 1) * 32], "big") for i in range(count)]
    if any(v >= field_modulus for v in values):
        return None
    return values


def decode_g1(data: bytes) -> Optional[Point]:
    """Inverse of ``encode_g1``; ``None`` for malformed or off-curve input."""
    values = _base_coordinates(data, 2)
    if values is None:
        return None
    x, y = values
    if x == 0 and y == 0:
        return Z1
    point = (FQ(x), FQ(y), FQ.one())
    return point if validate_g1(point) else None


def decode_g2(data: bytes) -> Optional[Point]:
    """Inverse of ``encode_g2``; ``None`` for malformed or invalid input."""
    values = _base_coordinates(data, 4)
    if values is None:
        return None
    x1, x0, y1, y0 = values
    if not any(values):
        return Z2
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    return point if validate_g2(point) else None


def g1_to_json(point: Point) -> List[str]:
    """snarkjs projective JSON: ``[x, y, "1"]`` (``["0", "1", "0"]`` at infinity)."""
    if is_infinity(point):
        return ["0", "1", "0"]
    x, y = _affine_g1(point)
    return [str(x), str(y), "1"]


def g2_to_json(point: Point) -> List[List[str]]:
    if is_infinity(point):
        return [["0", "0"], ["1", "0"], ["0", "0"]]
    (x0, x1), (y0, y1) = _affine_g2(point)
    return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]


def g1_from_json(value: Sequence[str]) -> Point:
    x, y, z = (int(v) for v in value)
    if z == 0:
        return Z1
    point = (FQ(x), FQ(y), FQ(z))
    if not validate_g1(point):
        raise ValueError("G1 point not on curve")
    return point


def g2_from_json(value: Sequence[Sequence[str]]) -> Point:
    (x0, x1), (y0, y1), (z0, z1) = ((int(a), int(c)) for a, c in value)
    if z0 == 0 and z1 == 0:
        return Z2
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2([z0, z1]))
    if not validate_g2(point):
        raise ValueError("G2 point not in the prime-order subgroup")
    return point


class FixedBaseTable:
    """Windowed multiples of a fixed base for repeated scalar multiplication."""

    def __init__(self, base: Point, window: int = 4):
        self.window = window
        self.zero = Z1 if isinstance(base[2], FQ) else Z2
        windows = math.ceil(curve_order.bit_length() / window)
        self.table: List[List[Point]] = []
        current = base
        for _ in range(windows):
            row = [current]
            for _ in range((1 << window) - 2):
                row.append(add(row[-1], current))
            self.table.append(row)
            for _ in range(window):
                current = double(current)

    def multiply(self, scalar: int) -> Point:
        scalar %= curve_order
        result = self.zero
        mask = (1 << self.window) - 1
        index = 0
        while scalar:
            digit = scalar & mask
            if digit:
                result = add(result, self.table[index][digit - 1])
            scalar >>= self.window
            index += 1
        return result


def _window_size(count: int) -> int:
    if count < 32:
        return 3
    return max(3, int(math.log2(count)) - 2)


def msm(points: Sequence[Point], scalars: Sequence[int], zero: Point) -> Point:
    """Bucket (Pippenger) multi-scalar multiplication ``sum(s_i * P_i)``."""
    pairs = []
    for point, scalar in zip(points, scalars):
        scalar %= curve_order
        if scalar and not is_infinity(point):
            pairs.append((point, scalar))
    if not pairs:
        return zero
    if len(pairs) == 1:
        return multiply(pairs[0][0], pairs[0][1])

    c = _window_size(len(pairs))
    mask = (1 << c) - 1
    windows = math.ceil(curve_order.bit_length() / c)
    result = zero
    for w in reversed(range(windows)):
        for _ in range(c):
            result = double(result)
        buckets: List[Optional[Point]] = [None] * mask
        shift = w * c
        for point, scalar in pairs:
            digit = (scalar >> shift) & mask
            if digit:
                bucket = buckets[digit - 1]
                buckets[digit - 1] = point if bucket is None else add(bucket, point)
        running = zero
        total = zero
        for bucket in reversed(buckets):
            if bucket is not None:
                running = add(running, bucket)
            total = add(total, running)
        result = add(result, total)
    return result
