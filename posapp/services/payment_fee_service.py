"""Payment method validation and fee (gross/net) calculation."""
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from posapp.exceptions import BusinessLogicError
from posapp.models import PaymentFee, PaymentMethod, normalize_payment_method
from posapp.utils.number_format import parse_decimal, quantize_money

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSTALLMENTS = 12


@dataclass(frozen=True)
class PaymentBreakdown:
    """How a sale total is paid and what actually reaches the business."""
    method: str
    installments: int
    fee_percentage: Decimal
    gross_amount: Decimal
    net_amount: Decimal


def _normalize_installments(method: str, installments, max_installments: int) -> int:
    if method != PaymentMethod.CREDIT_INSTALLMENTS.value:
        return 1

    try:
        installments = int(installments)
    except (TypeError, ValueError):
        raise BusinessLogicError('Cantidad de cuotas inválida.')

    if installments < 2 or installments > max_installments:
        raise BusinessLogicError(f'Las cuotas deben estar entre 2 y {max_installments}.')
    return installments


def get_fee_percentage(session: Session, method: str, installments: int = 1) -> Decimal:
    """Fee configured for a method (per installment count for CREDIT_INSTALLMENTS); 0 if none."""
    query = session.query(PaymentFee).filter(PaymentFee.method == method)
    if method == PaymentMethod.CREDIT_INSTALLMENTS.value:
        query = query.filter(PaymentFee.installments == installments)
    else:
        query = query.filter(PaymentFee.installments.is_(None))

    fee = query.first()
    return Decimal(str(fee.fee_percentage)) if fee else Decimal('0')


def compute_payment(
    session: Session,
    payment_method,
    total,
    installments=1,
    max_installments: int = DEFAULT_MAX_INSTALLMENTS
) -> PaymentBreakdown:
    """
    Validate the payment method and derive gross/net amounts.

    gross = sale total; net = gross - gross × fee% / 100.
    """
    try:
        method = normalize_payment_method(payment_method)
    except ValueError as e:
        raise BusinessLogicError(str(e))

    installments = _normalize_installments(method, installments, max_installments)
    fee_percentage = get_fee_percentage(session, method, installments)

    gross = quantize_money(total)
    net = quantize_money(gross - gross * fee_percentage / Decimal('100'))

    return PaymentBreakdown(
        method=method,
        installments=installments,
        fee_percentage=fee_percentage,
        gross_amount=gross,
        net_amount=net
    )


def set_fee_percentage(session: Session, method, percentage, installments=None) -> PaymentFee:
    """Create or update a fee row (flushes, caller commits)."""
    method = normalize_payment_method(method)
    percentage = parse_decimal(percentage, 'porcentaje')
    if percentage < 0 or percentage >= 100:
        raise ValueError('La comisión debe estar entre 0 y 100.')

    if method != PaymentMethod.CREDIT_INSTALLMENTS.value:
        installments = None

    fee = session.query(PaymentFee).filter(
        PaymentFee.method == method,
        PaymentFee.installments.is_(None) if installments is None else PaymentFee.installments == installments
    ).first()

    if fee is None:
        fee = PaymentFee(method=method, installments=installments, fee_percentage=percentage)
        session.add(fee)
    else:
        fee.fee_percentage = percentage

    session.flush()
    logger.info(f"[payment] Fee for {method} ({installments or 1}x) set to {percentage}%")
    return fee
