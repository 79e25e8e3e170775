"""
Amount Value Module

Immutable monetary value with a fixed precision of two decimal places.
NEVER uses float for arithmetic and never rounds silently: values that
do not fit the precision are rejected instead.
"""

from decimal import (
    Decimal, Context, InvalidOperation, Inexact, Overflow, DivisionByZero
)
from dataclasses import dataclass
from enum import Enum
from typing import Union
import re

from .errors import InvalidAmountFormat, DomainInvariantViolation


PRECISION = 2  # Currency minor units
QUANTUM = Decimal(1).scaleb(-PRECISION)

# Exact arithmetic: any rounding or overflow raises instead of wrapping
_CONTEXT = Context(prec=34, traps=[InvalidOperation, Inexact, Overflow, DivisionByZero])

_DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+)(\.\d{1,%d})?$' % PRECISION)


class Comparison(Enum):
    """Result of comparing two amounts"""
    LT = "lt"
    EQ = "eq"
    GT = "gt"


def _to_decimal(value: Union[Decimal, int, str, float]) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmountFormat(f"Cannot use {value!r} as an amount", {"value": value})
    if isinstance(value, str):
        return _parse(value)
    if isinstance(value, (int, float)):
        value = Decimal(str(value))
    if not isinstance(value, Decimal):
        raise InvalidAmountFormat(f"Cannot use {value!r} as an amount", {"value": value})
    if not value.is_finite():
        raise InvalidAmountFormat(f"Amount must be finite, got {value}", {"value": value})
    try:
        quantized = value.quantize(QUANTUM, context=_CONTEXT)
        # No negative zero
        return quantized.copy_abs() if quantized.is_zero() else quantized
    except Inexact:
        raise InvalidAmountFormat(
            f"Amount {value} has more than {PRECISION} decimal places",
            {"value": value}
        )
    except InvalidOperation:
        raise InvalidAmountFormat(f"Amount {value} exceeds the supported precision", {"value": value})


def _parse(text: str) -> Decimal:
    clean = text.strip()
    if not _DECIMAL_PATTERN.match(clean):
        raise InvalidAmountFormat(f"Cannot convert '{text}' to an amount", {"value": text})
    return Decimal(clean)


@dataclass(frozen=True, eq=False)
class Amount:
    """
    Immutable money amount in the bank's single currency.
    Two amounts are equal iff their numeric values are equal.
    """
    value: Decimal

    def __init__(self, value: Union[Decimal, int, str, float] = 0):
        # Use object.__setattr__ because of frozen=True
        object.__setattr__(self, 'value', _to_decimal(value))

    @classmethod
    def from_decimal_string(cls, text: str) -> 'Amount':
        """
        Parse a plain decimal string such as "100", "-3.5" or "12.34"

        Raises:
            InvalidAmountFormat: If the string is not a finite decimal
                with at most two fraction digits
        """
        if not isinstance(text, str):
            raise InvalidAmountFormat(f"Expected a string, got {type(text).__name__}", {"value": text})
        return cls(_parse(text))

    @classmethod
    def zero(cls) -> 'Amount':
        return cls(0)

    def add(self, other: 'Amount') -> 'Amount':
        return self._exact(_CONTEXT.add, other)

    def subtract(self, other: 'Amount') -> 'Amount':
        return self._exact(_CONTEXT.subtract, other)

    def negate(self) -> 'Amount':
        return Amount(_CONTEXT.minus(self.value))

    def _exact(self, operation, other: 'Amount') -> 'Amount':
        if not isinstance(other, Amount):
            raise TypeError(f"Expected Amount, got {type(other).__name__}")
        try:
            return Amount(operation(self.value, other.value))
        except (Inexact, Overflow, InvalidOperation, InvalidAmountFormat) as e:
            raise DomainInvariantViolation(
                f"Amount arithmetic on {self} and {other} is not exact",
                {"left": self, "right": other}
            ) from e

    def compare(self, other: 'Amount') -> Comparison:
        """Three-way comparison"""
        if not isinstance(other, Amount):
            raise TypeError(f"Expected Amount, got {type(other).__name__}")
        if self.value < other.value:
            return Comparison.LT
        if self.value > other.value:
            return Comparison.GT
        return Comparison.EQ

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.value == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.value > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.value < Decimal('0')

    def __add__(self, other: 'Amount') -> 'Amount':
        return self.add(other)

    def __sub__(self, other: 'Amount') -> 'Amount':
        return self.subtract(other)

    def __neg__(self) -> 'Amount':
        return self.negate()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Amount):
            return False
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __lt__(self, other: 'Amount') -> bool:
        return self.compare(other) == Comparison.LT

    def __le__(self, other: 'Amount') -> bool:
        return self.compare(other) != Comparison.GT

    def __gt__(self, other: 'Amount') -> bool:
        return self.compare(other) == Comparison.GT

    def __ge__(self, other: 'Amount') -> bool:
        return self.compare(other) != Comparison.LT

    def to_string(self) -> str:
        """Format for storage and display, e.g. '1234.50'"""
        return f"{self.value:.{PRECISION}f}"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Amount('{self.to_string()}')"
