"""
Sale writer - persists the sale header and its items.

Header and items are written inside one savepoint: either the sale and
every item exist, or none of them do.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posapp.exceptions import BusinessLogicError, SaleWriteError
from posapp.models import Sale, SaleItem, ItemKind
from posapp.services.cart_service import CartLine
from posapp.services.catalog_service import get_product
from posapp.services.discount_policy import DiscountResult
from posapp.services.payment_fee_service import PaymentBreakdown
from posapp.utils.number_format import quantize_money

logger = logging.getLogger(__name__)


def _unit_cost_snapshot(session: Session, line: CartLine) -> Decimal:
    """Cost to freeze into the sale item; services and unknown costs are 0."""
    if line.kind == ItemKind.SERVICE:
        return Decimal('0')

    product = get_product(session, line.item_id)
    if product is not None and product.cost is not None:
        return Decimal(str(product.cost))

    if line.cost_basis is not None:
        logger.warning(
            f"[sale_writer] No current cost for product_id={line.item_id}, "
            f"using cart cost basis {line.cost_basis}"
        )
        return line.cost_basis

    logger.warning(f"[sale_writer] No cost for product_id={line.item_id}, defaulting to 0")
    return Decimal('0')


def _build_item(sale_id: int, line: CartLine, unit_cost: Decimal) -> SaleItem:
    unit_price = quantize_money(line.unit_price)
    return SaleItem(
        sale_id=sale_id,
        product_id=line.item_id if line.kind == ItemKind.PRODUCT else None,
        service_id=line.item_id if line.kind == ItemKind.SERVICE else None,
        item_type=line.kind,
        quantity=line.quantity,
        unit_price=unit_price,
        total_price=quantize_money(unit_price * line.quantity),
        unit_cost=quantize_money(unit_cost)
    )


def write_sale(
    session: Session,
    lines: List[CartLine],
    discount: DiscountResult,
    payment: PaymentBreakdown,
    note: Optional[str] = None,
    source_budget_id: Optional[int] = None,
    sale_date: Optional[datetime] = None
) -> Sale:
    """
    Insert the Sale row and one SaleItem per line.

    Does not commit; the caller decides when the sale becomes durable.

    Raises:
        BusinessLogicError: if there are no lines or the discount was computed
            for a different subtotal.
        SaleWriteError: if the header or any item could not be written. The
            savepoint is rolled back, so no partial sale remains.
    """
    if not lines:
        raise BusinessLogicError('No hay ítems para registrar la venta.')

    lines_subtotal = quantize_money(sum((quantize_money(l.unit_price) * l.quantity for l in lines), Decimal('0')))
    if lines_subtotal != discount.subtotal:
        raise BusinessLogicError(
            f'El subtotal (${discount.subtotal}) no coincide con los ítems (${lines_subtotal}).'
        )

    stage = 'sale'
    try:
        with session.begin_nested():
            # 1. Sale header
            sale = Sale(
                date=sale_date or datetime.now(),
                subtotal=discount.subtotal,
                discount_type=discount.discount_type,
                discount_value=discount.discount_value,
                total=discount.total,
                payment_method=payment.method,
                installments=payment.installments,
                gross_amount=payment.gross_amount,
                net_amount=payment.net_amount,
                note=note.strip() if note and note.strip() else None,
                source_budget_id=source_budget_id
            )
            session.add(sale)
            session.flush()

            # 2. Items, each with a cost snapshot read now
            stage = 'items'
            for line in lines:
                session.add(_build_item(sale.id, line, _unit_cost_snapshot(session, line)))
            session.flush()

    except SQLAlchemyError as e:
        logger.error(f"[sale_writer] Failed writing {stage} (budget={source_budget_id}): {e}", exc_info=True)
        if stage == 'sale':
            raise SaleWriteError('No se pudo registrar la venta.', stage) from e
        raise SaleWriteError('No se pudieron registrar los ítems de la venta. La venta fue descartada.', stage) from e

    logger.info(
        f"[sale_writer] Sale #{sale.id} written: {len(lines)} items, "
        f"subtotal={discount.subtotal}, total={discount.total}, method={payment.method}"
    )
    return sale
