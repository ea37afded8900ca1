"""
BN254 scalar field elements and boundary encodings.

Values that enter the system from outside (ints, hex or decimal strings,
bytes, text identifiers, money amounts) are checked against the field
modulus and rejected when out of range instead of being reduced.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Optional, Union

from py_ecc.optimized_bn128 import curve_order

from ..errors import InputValidationError

FIELD_MODULUS = curve_order
FIELD_BYTES = 32
MAX_IDENTIFIER_BYTES = 31

FieldLike = Union["FieldElement", int, str, bytes]


@dataclass(frozen=True)
class FieldElement:
    """Immutable element of the BN254 scalar field."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InputValidationError(
                "Field element must be an integer", expected="int"
            )
        if not 0 <= self.value < FIELD_MODULUS:
            raise InputValidationError(
                "Value outside the scalar field", expected=f"[0, {FIELD_MODULUS})"
            )

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"FieldElement({self.to_hex()})"

    def __add__(self, other: "FieldElement") -> "FieldElement":
        return FieldElement((self.value + int(other)) % FIELD_MODULUS)

    def __sub__(self, other: "FieldElement") -> "FieldElement":
        return FieldElement((self.value - int(other)) % FIELD_MODULUS)

    def __mul__(self, other: "FieldElement") -> "FieldElement":
        return FieldElement((self.value * int(other)) % FIELD_MODULUS)

    def __neg__(self) -> "FieldElement":
        return FieldElement(-self.value % FIELD_MODULUS)

    def inverse(self) -> "FieldElement":
        """Multiplicative inverse."""
        if self.value == 0:
            raise ZeroDivisionError("Zero has no inverse")
        return FieldElement(pow(self.value, FIELD_MODULUS - 2, FIELD_MODULUS))

    @classmethod
    def zero(cls) -> "FieldElement":
        return cls(0)

    @classmethod
    def one(cls) -> "FieldElement":
        return cls(1)

    @classmethod
    def from_int(cls, value: int, field: Optional[str] = None) -> "FieldElement":
        """Strict conversion that names the offending field on failure."""
        try:
            return cls(value)
        except InputValidationError as e:
            raise InputValidationError(
                f"{field or 'value'}: {e.message}", field=field, expected=e.expected
            ) from None

    @classmethod
    def from_hex(cls, hex_string: str, field: Optional[str] = None) -> "FieldElement":
        """Parse a hex string with or without the ``0x`` prefix."""
        text = hex_string[2:] if hex_string[:2].lower() == "0x" else hex_string
        try:
            value = int(text, 16)
        except ValueError:
            raise InputValidationError(
                f"{field or 'value'}: not a hex string", field=field
            ) from None
        return cls.from_int(value, field)

    @classmethod
    def from_bytes(cls, data: bytes, field: Optional[str] = None) -> "FieldElement":
        """Parse a 32-byte big-endian encoding."""
        if len(data) != FIELD_BYTES:
            raise InputValidationError(
                f"{field or 'value'}: expected {FIELD_BYTES} bytes",
                field=field,
                expected=FIELD_BYTES,
            )
        return cls.from_int(int.from_bytes(data, byteorder="big"), field)

    @classmethod
    def parse(cls, value: FieldLike, field: Optional[str] = None) -> "FieldElement":
        """Accept a FieldElement, int, decimal or 0x-hex string, or 32 bytes."""
        if isinstance(value, FieldElement):
            return value
        if isinstance(value, bytes):
            return cls.from_bytes(value, field)
        if isinstance(value, str):
            text = value.strip()
            if text[:2].lower() == "0x":
                return cls.from_hex(text, field)
            if not (text.isascii() and text.isdigit()):
                raise InputValidationError(
                    f"{field or 'value'}: not a decimal string", field=field
                )
            return cls.from_int(int(text), field)
        return cls.from_int(value, field)

    def to_bytes(self) -> bytes:
        """32-byte big-endian encoding."""
        return self.value.to_bytes(FIELD_BYTES, byteorder="big")

    def to_hex(self) -> str:
        """``0x`` followed by 64 hex digits."""
        return "0x" + self.value.to_bytes(FIELD_BYTES, byteorder="big").hex()


def require_range(value: int, low: int, high: int, field: str) -> int:
    """Check ``low <= value <= high`` for a small integer input."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputValidationError(f"{field} must be an integer", field=field)
    if not low <= value <= high:
        raise InputValidationError(
            f"{field} out of range", field=field, expected=f"[{low}, {high}]"
        )
    return value


def encode_identifier(text: str, field: str = "identifier") -> FieldElement:
    """Map a text identifier to the field by reading its UTF-8 bytes big-endian."""
    if not isinstance(text, str) or not text:
        raise InputValidationError(f"{field} must be a non-empty string", field=field)
    data = text.encode("utf-8")
    if len(data) > MAX_IDENTIFIER_BYTES:
        raise InputValidationError(
            f"{field} longer than {MAX_IDENTIFIER_BYTES} bytes",
            field=field,
            expected=MAX_IDENTIFIER_BYTES,
        )
    return FieldElement(int.from_bytes(data, byteorder="big"))


def encode_amount(amount: Union[str, int, Decimal], field: str = "amount") -> FieldElement:
    """Convert a currency amount to whole cents, rounding down."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise InputValidationError(f"{field} is not a number", field=field) from None
    if not value.is_finite() or value < 0:
        raise InputValidationError(
            f"{field} must be a non-negative amount", field=field
        )
    cents = int((value * 100).to_integral_value(rounding=ROUND_FLOOR))
    return FieldElement.from_int(cents, field)
