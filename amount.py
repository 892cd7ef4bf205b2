from decimal import Decimal
from functools import total_ordering
import re
from typing import Any, Dict, Union

from pydantic_core import core_schema


SCALE = 4
_FACTOR = 10 ** SCALE

_LITERAL = re.compile(r"(?P<sign>[+-]?)(?P<int>[0-9]*)(?:\.(?P<frac>[0-9]*))?")

AmountLike = Union["Amount", str, int, float, Decimal]


@total_ordering
class Amount:
    """Fixed-point monetary value with four decimal places.

    Stored as an integer count of 1/10_000 units, so addition, subtraction
    and comparison are exact.
    """

    __slots__ = ("_units",)

    def __init__(self, units: int = 0):
        if not isinstance(units, int) or isinstance(units, bool):
            raise TypeError(f"Amount units must be int, got {type(units).__name__}")
        self._units = units

    @classmethod
    def from_units(cls, units: int) -> "Amount":
        return cls(units)

    @classmethod
    def zero(cls) -> "Amount":
        return cls(0)

    @classmethod
    def parse(cls, value: AmountLike) -> "Amount":
        """Build an Amount from a decimal literal or a numeric value.

        Raises ValueError if the value is not a plain decimal number or
        carries more precision than four decimal places.
        """
        if isinstance(value, Amount):
            return value
        if isinstance(value, bool):
            raise ValueError("Boolean is not a valid amount")
        if isinstance(value, int):
            return cls(value * _FACTOR)
        if isinstance(value, float):
            value = Decimal(repr(value))
        if isinstance(value, Decimal):
            if not value.is_finite():
                raise ValueError(f"Amount must be finite: {value}")
            value = format(value, "f")
        if not isinstance(value, str):
            raise ValueError(f"Unsupported amount type: {type(value).__name__}")
        return cls(_parse_literal(value))

    @property
    def units(self) -> int:
        return self._units

    def is_negative(self) -> bool:
        return self._units < 0

    def to_decimal(self) -> Decimal:
        return Decimal(self._units).scaleb(-SCALE)

    def __add__(self, other: "Amount") -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self._units + other._units)

    def __sub__(self, other: "Amount") -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self._units - other._units)

    def __neg__(self) -> "Amount":
        return Amount(-self._units)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Amount):
            return NotImplemented
        return self._units == other._units

    def __lt__(self, other: "Amount") -> bool:
        if not isinstance(other, Amount):
            return NotImplemented
        return self._units < other._units

    def __hash__(self) -> int:
        return hash(self._units)

    def __str__(self) -> str:
        sign = "-" if self._units < 0 else ""
        whole, frac = divmod(abs(self._units), _FACTOR)
        return f"{sign}{whole}.{frac:0{SCALE}d}"

    def __repr__(self) -> str:
        return f"Amount('{self}')"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.parse,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, schema: core_schema.CoreSchema, handler: Any) -> Dict[str, Any]:
        return {
            "anyOf": [{"type": "string"}, {"type": "number"}],
            "description": f"Decimal amount with at most {SCALE} decimal places",
            "examples": ["1.5000"],
        }


def _parse_literal(text: str) -> int:
    match = _LITERAL.fullmatch(text)
    if not match:
        raise ValueError(f"Invalid amount literal: {text!r}")

    int_part = match.group("int") or ""
    frac_part = match.group("frac") or ""
    if not int_part and not frac_part:
        raise ValueError(f"Invalid amount literal: {text!r}")

    # Digits past the fourth place must be zeros, otherwise precision is lost
    if frac_part[SCALE:].strip("0"):
        raise ValueError(f"Amount has more than {SCALE} decimal places: {text!r}")

    frac_digits = frac_part[:SCALE].ljust(SCALE, "0")
    units = int(int_part or "0") * _FACTOR + int(frac_digits)
    return -units if match.group("sign") == "-" else units
