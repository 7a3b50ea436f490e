"""
Stock reconciler - applies the inventory effect of a committed sale.

Policy (same for checkout and budget conversion): each product line gets one
atomic floor-at-zero decrement in its own savepoint. A failing line is
logged and reported, the remaining lines are still processed, and the sale
that was already written is never rolled back from here.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posapp.exceptions import NotFoundError, StockReconcileFailure
from posapp.models import ItemKind
from posapp.services.cart_service import CartLine
from posapp.services.catalog_service import decrement_stock

logger = logging.getLogger(__name__)


@dataclass
class StockReconcileReport:
    updated: Dict[int, int] = field(default_factory=dict)
    failures: List[StockReconcileFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def reconcile_stock(session: Session, lines: List[CartLine]) -> StockReconcileReport:
    """
    Decrement stock for every product line: new = max(0, stock - quantity).

    Services are skipped. Does not commit.
    """
    report = StockReconcileReport()

    for line in lines:
        if line.kind != ItemKind.PRODUCT:
            continue

        try:
            with session.begin_nested():
                report.updated[line.item_id] = decrement_stock(session, line.item_id, line.quantity)
        except (SQLAlchemyError, NotFoundError) as e:
            reason = e.message if isinstance(e, NotFoundError) else str(e)
            logger.error(f"[stock] Could not decrement product_id={line.item_id} by {line.quantity}: {reason}")
            report.failures.append(StockReconcileFailure(line.item_id, line.quantity, reason))

    if report.failures:
        logger.warning(f"[stock] {len(report.failures)} of {len(lines)} lines were not reconciled")

    return report
