"""
Sales service - checkout commit pipeline.

Cart -> discount policy -> sale writer -> stock reconciler. The sale header
and items are committed before any stock is touched; stock failures after
that point are reported with the result instead of undoing the sale.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict, Any

from sqlalchemy.orm import Session

from posapp.exceptions import BusinessLogicError, SaleWriteError, StockReconcileFailure
from posapp.services.cart_service import Cart
from posapp.services.discount_limit_service import get_max_discount_percentage
from posapp.services.discount_policy import evaluate_discount
from posapp.services.payment_fee_service import compute_payment, DEFAULT_MAX_INSTALLMENTS
from posapp.services.sale_writer import write_sale
from posapp.services.stock_reconciler import reconcile_stock
from posapp.utils.number_format import format_money

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    """What the operator sees after a sale is committed."""
    sale_id: int
    subtotal: Decimal
    applied_discount: Decimal
    total: Decimal
    gross_amount: Decimal
    net_amount: Decimal
    stock_failures: List[StockReconcileFailure] = field(default_factory=list)
    source_budget_id: Optional[int] = None

    @property
    def has_warnings(self) -> bool:
        return bool(self.stock_failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sale_id': self.sale_id,
            'subtotal': format_money(self.subtotal),
            'applied_discount': format_money(self.applied_discount),
            'total': format_money(self.total),
            'gross_amount': format_money(self.gross_amount),
            'net_amount': format_money(self.net_amount),
            'source_budget_id': self.source_budget_id,
            'stock_failures': [f.to_dict() for f in self.stock_failures],
        }


def commit_cart_sale(
    session: Session,
    cart: Cart,
    discount_type=None,
    discount_value=0,
    payment_method: str = 'CASH',
    operator_id: Optional[int] = None,
    installments: int = 1,
    note: Optional[str] = None,
    sale_date: Optional[datetime] = None,
    default_max_discount=None,
    max_installments: int = DEFAULT_MAX_INSTALLMENTS
) -> CommitResult:
    """
    Turn the cart into a persisted sale and apply its stock effect.

    Discount and payment validation happen before any write. The cart itself
    is left untouched; the caller discards it on success.

    Raises:
        BusinessLogicError / InvalidDiscountError: before any write.
        SaleWriteError: the sale could not be written; nothing was persisted.
    """
    if cart.is_empty:
        raise BusinessLogicError('El carrito está vacío')

    lines = cart.lines

    # 1. Discount against the operator's cap
    cap = get_max_discount_percentage(session, operator_id, default=default_max_discount)
    discount = evaluate_discount(discount_type, discount_value, cart.subtotal(), max_percentage=cap)

    # 2. Payment method, installments, fee
    payment = compute_payment(session, payment_method, discount.total, installments, max_installments)

    # 3. Sale + items, durable before stock moves
    try:
        sale = write_sale(session, lines, discount, payment, note=note, sale_date=sale_date)
        session.commit()
    except SaleWriteError:
        session.rollback()
        raise

    sale_id = sale.id
    logger.info(f"[checkout] Sale #{sale_id} committed by operator_id={operator_id}")

    # 4. Stock, best effort per line
    report = reconcile_stock(session, lines)
    session.commit()

    if not report.ok:
        logger.warning(f"[checkout] Sale #{sale_id} committed with {len(report.failures)} stock failures")

    return CommitResult(
        sale_id=sale_id,
        subtotal=discount.subtotal,
        applied_discount=discount.applied_discount,
        total=discount.total,
        gross_amount=payment.gross_amount,
        net_amount=payment.net_amount,
        stock_failures=report.failures
    )
