"""Catalog access used by the sale pipeline (read product, decrement stock)."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from posapp.exceptions import NotFoundError
from posapp.models import Product, Service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Values read from the catalog at a given moment."""
    id: int
    name: str
    sale_price: Decimal
    cost: Optional[Decimal]
    stock: int
    active: bool


def get_product(session: Session, product_id: int) -> Optional[ProductSnapshot]:
    """Read a product's current price, cost and stock straight from the database."""
    row = session.execute(
        select(
            Product.id, Product.name, Product.sale_price,
            Product.cost, Product.stock, Product.active
        ).where(Product.id == product_id)
    ).first()

    if row is None:
        return None

    return ProductSnapshot(
        id=row.id,
        name=row.name,
        sale_price=row.sale_price,
        cost=row.cost,
        stock=row.stock,
        active=row.active
    )


def get_service(session: Session, service_id: int) -> Optional[Service]:
    return session.query(Service).filter(Service.id == service_id).first()


def decrement_stock(session: Session, product_id: int, quantity: int) -> int:
    """
    Take `quantity` units out of stock, flooring at zero, in one statement.

    The conditional UPDATE is evaluated by the database against the current
    row, so concurrent sales cannot both subtract from the same stale reading.

    Returns the stock after the decrement.

    Raises:
        NotFoundError: if the product does not exist.
    """
    result = session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=case((Product.stock > quantity, Product.stock - quantity), else_=0))
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        raise NotFoundError(f'Producto {product_id} no encontrado.')

    new_stock = session.execute(
        select(Product.stock).where(Product.id == product_id)
    ).scalar_one()

    logger.debug(f"[stock] product_id={product_id} -{quantity} -> {new_stock}")
    return new_stock
