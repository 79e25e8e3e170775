"""
Test suite for amount module

Tests the Amount value type: parsing, exact arithmetic, comparison and
formatting. No operation may round silently.
"""

import pytest
from decimal import Decimal

from ddd_bank.amount import Amount, Comparison
from ddd_bank.errors import DomainInvariantViolation, InvalidAmountFormat


class TestAmountCreation:
    """Test constructing amounts from the supported representations"""

    def test_from_decimal_string(self):
        """Test parsing plain decimal strings"""
        assert Amount.from_decimal_string("100").value == Decimal('100.00')
        assert Amount.from_decimal_string("12.34").value == Decimal('12.34')
        assert Amount.from_decimal_string("-3.5").value == Decimal('-3.50')
        assert Amount.from_decimal_string(" 7.10 ").value == Decimal('7.10')

    def test_from_numbers(self):
        """Test integers, floats and Decimals"""
        assert Amount(5) == Amount.from_decimal_string("5.00")
        assert Amount(0.1) == Amount.from_decimal_string("0.10")
        assert Amount(Decimal('2.5')) == Amount.from_decimal_string("2.50")

    @pytest.mark.parametrize("text", ["", "abc", "1.234", "1,5", "1e3", "NaN", "Infinity", "--1", "1."])
    def test_invalid_strings_rejected(self, text):
        """Test that malformed strings raise InvalidAmountFormat"""
        with pytest.raises(InvalidAmountFormat):
            Amount.from_decimal_string(text)

    def test_excess_precision_is_not_rounded(self):
        """Test that three fraction digits fail instead of rounding"""
        with pytest.raises(InvalidAmountFormat):
            Amount(Decimal('100.555'))
        with pytest.raises(InvalidAmountFormat):
            Amount(0.125)

    def test_non_finite_and_odd_types_rejected(self):
        """Test NaN, infinity, booleans and non-numeric objects"""
        with pytest.raises(InvalidAmountFormat):
            Amount(Decimal('NaN'))
        with pytest.raises(InvalidAmountFormat):
            Amount(float('inf'))
        with pytest.raises(InvalidAmountFormat):
            Amount(True)
        with pytest.raises(InvalidAmountFormat):
            Amount([1])
        with pytest.raises(InvalidAmountFormat):
            Amount.from_decimal_string(12)

    def test_invalid_amount_format_is_value_error(self):
        """Test that callers catching ValueError still work"""
        with pytest.raises(ValueError):
            Amount.from_decimal_string("twelve")

    def test_negative_zero_normalized(self):
        """Test that -0 is the same amount as 0"""
        amount = Amount.from_decimal_string("-0.00")
        assert amount.is_zero()
        assert amount.to_string() == "0.00"


class TestAmountArithmetic:
    """Test exact arithmetic"""

    def test_add_and_subtract(self):
        a = Amount.from_decimal_string("100.50")
        b = Amount.from_decimal_string("50.25")

        assert a.add(b) == Amount.from_decimal_string("150.75")
        assert a.subtract(b) == Amount.from_decimal_string("50.25")
        assert a + b == Amount.from_decimal_string("150.75")
        assert b - a == Amount.from_decimal_string("-50.25")

    def test_negate(self):
        a = Amount.from_decimal_string("3.10")
        assert a.negate() == Amount.from_decimal_string("-3.10")
        assert -(-a) == a

    def test_no_float_drift(self):
        """Test that 0.1 + 0.2 is exactly 0.3"""
        total = Amount.from_decimal_string("0.1") + Amount.from_decimal_string("0.2")
        assert total == Amount.from_decimal_string("0.3")

    def test_inexact_result_raises(self):
        """Test that a result beyond the working precision fails loudly"""
        huge = Amount(Decimal('9' * 32 + '.99'))
        with pytest.raises(DomainInvariantViolation):
            huge + Amount.from_decimal_string("0.02")
        with pytest.raises(DomainInvariantViolation):
            huge + Amount.from_decimal_string("0.01")

    def test_arithmetic_requires_amount(self):
        with pytest.raises(TypeError):
            Amount(1) + Decimal('1')
        with pytest.raises(TypeError):
            Amount(1).compare(1)


class TestAmountComparison:
    """Test equality, ordering and hashing"""

    def test_equality_by_value(self):
        assert Amount.from_decimal_string("1.5") == Amount.from_decimal_string("1.50")
        assert hash(Amount.from_decimal_string("1.5")) == hash(Amount.from_decimal_string("1.50"))
        assert Amount(1) != Decimal('1')
        assert len({Amount(1), Amount.from_decimal_string("1.00"), Amount(2)}) == 2

    def test_compare(self):
        one, two = Amount(1), Amount(2)
        assert one.compare(two) == Comparison.LT
        assert two.compare(one) == Comparison.GT
        assert one.compare(Amount(1)) == Comparison.EQ
        assert one < two <= Amount(2)
        assert two > one >= Amount(1)

    def test_sign_predicates(self):
        assert Amount.zero().is_zero()
        assert Amount(1).is_positive()
        assert Amount(-1).is_negative()
        assert not Amount.zero().is_positive()
        assert not Amount.zero().is_negative()


class TestAmountFormatting:
    """Test string forms"""

    def test_to_string(self):
        assert Amount.from_decimal_string("1234.5").to_string() == "1234.50"
        assert str(Amount(7)) == "7.00"
        assert repr(Amount.from_decimal_string("-2.3")) == "Amount('-2.30')"

    def test_to_string_round_trips(self):
        amount = Amount.from_decimal_string("-987654321.09")
        assert Amount.from_decimal_string(amount.to_string()) == amount
