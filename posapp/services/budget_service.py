"""Budget service - converts an open budget into a sale."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posapp.exceptions import (
    BusinessLogicError, NotFoundError, BudgetStateError, SaleWriteError, StatusUpdateError
)
from posapp.models import Budget, BudgetItem, BudgetStatus, ItemKind, Sale
from posapp.services.cart_service import CartLine
from posapp.services.discount_policy import evaluate_discount, HUNDRED
from posapp.services.payment_fee_service import compute_payment, DEFAULT_MAX_INSTALLMENTS
from posapp.services.sale_writer import write_sale
from posapp.services.sales_service import CommitResult
from posapp.services.stock_reconciler import reconcile_stock

logger = logging.getLogger(__name__)


def budget_items_to_lines(items: List[BudgetItem]) -> List[CartLine]:
    """Cart lines priced as quoted (not at current catalog prices)."""
    lines = []
    for item in items:
        if item.product_id is not None:
            item_id, kind = item.product_id, ItemKind.PRODUCT
        elif item.service_id is not None:
            item_id, kind = item.service_id, ItemKind.SERVICE
        else:
            raise BusinessLogicError(f'El ítem "{item.description}" del presupuesto no tiene producto ni servicio.')

        lines.append(CartLine(
            item_id=item_id,
            kind=kind,
            name=item.description,
            unit_price=Decimal(str(item.unit_price)),
            quantity=int(item.quantity)
        ))
    return lines


def _mark_budget_converted(session: Session, budget_id: int, sale_id: int) -> int:
    """Flip OPEN -> CONVERTED; returns the number of rows changed (0 or 1)."""
    result = session.execute(
        update(Budget)
        .where(Budget.id == budget_id, Budget.status == BudgetStatus.OPEN)
        .values(
            status=BudgetStatus.CONVERTED,
            converted_sale_id=sale_id,
            converted_at=datetime.now()
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def convert_budget_to_sale(
    session: Session,
    budget_id: int,
    payment_method: str,
    installments: int = 1,
    note: Optional[str] = None,
    max_installments: int = DEFAULT_MAX_INSTALLMENTS
) -> CommitResult:
    """
    Convert an open budget into a sale.

    Steps: check the budget is open, write sale + items (committed), decrement
    stock (committed), then mark the budget converted. The quoted discount
    carries over, so the sale total equals the budget total.

    Raises:
        NotFoundError: unknown budget.
        BudgetStateError: budget already converted or canceled, or another
            conversion already wrote its sale (nothing written).
        SaleWriteError: sale could not be written (nothing written).
        StatusUpdateError: sale and stock are committed but the budget still
            reads OPEN; the operator must fix it by hand.
    """
    budget = session.query(Budget).filter(Budget.id == budget_id).with_for_update().first()
    if not budget:
        raise NotFoundError(f'Presupuesto {budget_id} no encontrado.')

    if not budget.is_convertible:
        raise BudgetStateError(budget_id, budget.status.value)

    lines = budget_items_to_lines(budget.items)
    if not lines:
        raise BusinessLogicError('El presupuesto no tiene ítems.')

    subtotal = sum((line.unit_price * line.quantity for line in lines), Decimal('0'))
    # The discount was agreed when quoting; only its arithmetic is checked here
    discount = evaluate_discount(budget.discount_type, budget.discount_value, subtotal, max_percentage=HUNDRED)

    if budget.total is not None and Decimal(str(budget.total)) != discount.total:
        logger.warning(
            f"[budget] Budget #{budget_id} stored total {budget.total} differs from "
            f"recomputed {discount.total}; using recomputed"
        )

    payment = compute_payment(session, payment_method, discount.total, installments, max_installments)

    # 1. Sale + items; the unique source_budget_id claims the budget
    try:
        sale = write_sale(
            session, lines, discount, payment,
            note=note or f'Convertido del presupuesto #{budget_id}',
            source_budget_id=budget_id
        )
        session.commit()
    except SaleWriteError as e:
        session.rollback()
        existing = session.query(Sale.id).filter(Sale.source_budget_id == budget_id).first()
        if existing:
            logger.warning(f"[budget] Budget #{budget_id} already has sale #{existing.id}; conversion rejected")
            raise BudgetStateError(budget_id, BudgetStatus.CONVERTED.value) from e
        raise

    sale_id = sale.id
    logger.info(f"[budget] Budget #{budget_id} -> sale #{sale_id} committed")

    # 2. Stock
    report = reconcile_stock(session, lines)
    session.commit()

    # 3. Budget status
    try:
        changed = _mark_budget_converted(session, budget_id, sale_id)
        if changed == 1:
            session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[budget] Status update failed for budget #{budget_id} (sale #{sale_id}): {e}", exc_info=True)
        raise StatusUpdateError(budget_id, sale_id, report.failures) from e

    if changed != 1:
        session.rollback()
        logger.error(f"[budget] Budget #{budget_id} was no longer open after sale #{sale_id} was written")
        raise StatusUpdateError(budget_id, sale_id, report.failures)

    logger.info(f"[budget] Budget #{budget_id} marked converted (sale #{sale_id})")

    return CommitResult(
        sale_id=sale_id,
        subtotal=discount.subtotal,
        applied_discount=discount.applied_discount,
        total=discount.total,
        gross_amount=payment.gross_amount,
        net_amount=payment.net_amount,
        stock_failures=report.failures,
        source_budget_id=budget_id
    )
