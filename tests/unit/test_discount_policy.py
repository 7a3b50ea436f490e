"""
Unit tests for the discount policy.
"""

import pytest
from decimal import Decimal

from posapp.exceptions import InvalidDiscountError
from posapp.models import DiscountType
from posapp.services.discount_policy import evaluate_discount, parse_discount_type


class TestPercentageDiscount:
    """Tests for percentage discounts."""

    def test_within_cap(self):
        """10% of 30.00 with a 15% cap."""
        result = evaluate_discount('percentage', Decimal('10'), Decimal('30.00'), max_percentage=Decimal('15'))

        assert result.discount_type == DiscountType.PERCENTAGE
        assert result.subtotal == Decimal('30.00')
        assert result.applied_discount == Decimal('3.00')
        assert result.total == Decimal('27.00')

    def test_exactly_at_cap_is_allowed(self):
        result = evaluate_discount('percentage', Decimal('15'), Decimal('100.00'), max_percentage=Decimal('15'))
        assert result.total == Decimal('85.00')

    def test_above_cap_rejected(self):
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount('percentage', Decimal('20'), Decimal('30.00'), max_percentage=Decimal('15'))
        assert exc.value.reason == 'exceeds operator limit'
        assert exc.value.status_code == 400

    def test_cap_checked_before_hundred(self):
        """A 150% request with a 15% cap reports the operator limit."""
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount('percentage', Decimal('150'), Decimal('30.00'), max_percentage=Decimal('15'))
        assert exc.value.reason == 'exceeds operator limit'

    def test_over_hundred_rejected_with_full_cap(self):
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount('percentage', Decimal('101'), Decimal('30.00'), max_percentage=Decimal('100'))
        assert exc.value.reason == 'over 100%'

    def test_hundred_percent_gives_zero_total(self):
        result = evaluate_discount('percentage', Decimal('100'), Decimal('30.00'), max_percentage=Decimal('100'))
        assert result.total == Decimal('0.00')

    def test_default_cap_when_none(self):
        """Without a configured cap only 10% is allowed."""
        evaluate_discount('percentage', Decimal('10'), Decimal('30.00'))
        with pytest.raises(InvalidDiscountError):
            evaluate_discount('percentage', Decimal('11'), Decimal('30.00'))

    def test_rounds_half_up_to_cents(self):
        """7.5% of 10.10 = 0.7575 -> 0.76."""
        result = evaluate_discount('percentage', Decimal('7.5'), Decimal('10.10'), max_percentage=Decimal('15'))
        assert result.applied_discount == Decimal('0.76')
        assert result.total == Decimal('9.34')


class TestFixedDiscount:
    """Tests for fixed-amount discounts."""

    def test_fixed_discount(self):
        result = evaluate_discount('fixed', Decimal('5.50'), Decimal('30.00'))
        assert result.applied_discount == Decimal('5.50')
        assert result.total == Decimal('24.50')

    def test_fixed_equal_to_subtotal_allowed(self):
        result = evaluate_discount('fixed', Decimal('30.00'), Decimal('30.00'))
        assert result.total == Decimal('0.00')

    def test_fixed_above_subtotal_rejected(self):
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount('fixed', Decimal('30.01'), Decimal('30.00'))
        assert exc.value.reason == 'exceeds subtotal'

    def test_fixed_ignores_percentage_cap(self):
        """A fixed 50% of the subtotal is not bound by the percentage cap."""
        result = evaluate_discount('fixed', Decimal('15.00'), Decimal('30.00'), max_percentage=Decimal('5'))
        assert result.total == Decimal('15.00')


class TestDiscountEdgeCases:
    """Tests for zero, negative and unknown discounts."""

    @pytest.mark.parametrize('kind', ['percentage', 'fixed', 'none', None, ''])
    def test_zero_value_means_no_discount(self, kind):
        result = evaluate_discount(kind, 0, Decimal('30.00'))
        assert result.discount_type == DiscountType.NONE
        assert result.applied_discount == Decimal('0.00')
        assert result.total == Decimal('30.00')

    @pytest.mark.parametrize('kind', ['percentage', 'fixed'])
    def test_negative_rejected(self, kind):
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount(kind, Decimal('-1'), Decimal('30.00'))
        assert exc.value.reason == 'negative'

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount('bogus', Decimal('5'), Decimal('30.00'))
        assert exc.value.reason == 'unknown type'

    def test_parse_discount_type_accepts_enum_and_case(self):
        assert parse_discount_type(DiscountType.FIXED) == DiscountType.FIXED
        assert parse_discount_type(' Percentage ') == DiscountType.PERCENTAGE
        assert parse_discount_type(None) == DiscountType.NONE

    def test_error_payload_carries_reason(self):
        with pytest.raises(InvalidDiscountError) as exc:
            evaluate_discount('fixed', Decimal('99'), Decimal('30.00'))
        body = exc.value.to_dict()
        assert body['reason'] == 'exceeds subtotal'
        assert body['error'] == 'InvalidDiscountError'
        assert body['status'] == 'error'
