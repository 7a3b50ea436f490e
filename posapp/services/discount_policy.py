"""
Discount policy for checkout.

Pure validation and arithmetic: no session, no I/O. The operator's cap is
looked up by the caller (see discount_limit_service).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from posapp.exceptions import InvalidDiscountError
from posapp.models import DiscountType
from posapp.utils.number_format import quantize_money

DEFAULT_MAX_DISCOUNT_PERCENTAGE = Decimal('10')
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class DiscountResult:
    """Outcome of a validated discount."""
    discount_type: DiscountType
    discount_value: Decimal
    subtotal: Decimal
    applied_discount: Decimal
    total: Decimal


def parse_discount_type(value: Union[str, DiscountType, None]) -> DiscountType:
    """Map request/database values to DiscountType; None and '' mean no discount."""
    if isinstance(value, DiscountType):
        return value
    if value is None or str(value).strip() == '':
        return DiscountType.NONE
    try:
        return DiscountType(str(value).strip().lower())
    except ValueError:
        raise InvalidDiscountError('unknown type', f'Tipo de descuento inválido: {value}')


def evaluate_discount(
    discount_type: Union[str, DiscountType, None],
    value,
    subtotal,
    max_percentage=None
) -> DiscountResult:
    """
    Validate a requested discount and compute the sale total.

    Rules, in order:
    1. negative values are rejected;
    2. percentage: above the operator cap, then above 100%, are rejected;
    3. fixed: above the subtotal is rejected.

    A zero value (or type NONE) means no discount. When `max_percentage` is
    None the conservative default cap applies.
    """
    kind = parse_discount_type(discount_type)
    value = Decimal(str(value if value is not None else 0))
    subtotal = quantize_money(subtotal)
    cap = DEFAULT_MAX_DISCOUNT_PERCENTAGE if max_percentage is None else Decimal(str(max_percentage))

    if value < 0:
        raise InvalidDiscountError('negative', 'El descuento no puede ser negativo.')

    if kind == DiscountType.NONE or value == 0:
        return DiscountResult(DiscountType.NONE, Decimal('0'), subtotal, Decimal('0.00'), subtotal)

    if kind == DiscountType.PERCENTAGE:
        if value > cap:
            raise InvalidDiscountError(
                'exceeds operator limit',
                f'Descuento máximo permitido: {cap.normalize():f}%'
            )
        if value > HUNDRED:
            raise InvalidDiscountError('over 100%', 'El descuento no puede superar el 100%.')
        applied = quantize_money(subtotal * value / HUNDRED)
    else:
        if value > subtotal:
            raise InvalidDiscountError(
                'exceeds subtotal',
                f'El descuento (${value}) no puede superar el subtotal (${subtotal}).'
            )
        applied = quantize_money(value)

    return DiscountResult(kind, value, subtotal, applied, subtotal - applied)
