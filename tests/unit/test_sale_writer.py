"""
Unit tests for the sale writer.
"""

import pytest
from decimal import Decimal

from posapp.exceptions import BusinessLogicError, SaleWriteError
from posapp.models import Sale, SaleItem, ItemKind, DiscountType
from posapp.services.cart_service import CartLine
from posapp.services.discount_policy import evaluate_discount
from posapp.services.payment_fee_service import compute_payment
from posapp.services.sale_writer import write_sale


def _prepare(session, lines, discount_type=None, discount_value=0):
    subtotal = sum((line.unit_price * line.quantity for line in lines), Decimal('0'))
    discount = evaluate_discount(discount_type, discount_value, subtotal, max_percentage=Decimal('100'))
    payment = compute_payment(session, 'CASH', discount.total)
    return discount, payment


class TestWriteSale:
    """Tests for write_sale."""

    def test_writes_header_and_items(self, session, product, service):
        lines = [
            CartLine(product.id, ItemKind.PRODUCT, product.name, Decimal('10.00'), quantity=3),
            CartLine(service.id, ItemKind.SERVICE, service.name, Decimal('5.00'), quantity=1),
        ]
        discount, payment = _prepare(session, lines, 'fixed', Decimal('5.00'))

        sale = write_sale(session, lines, discount, payment, note='  mostrador  ')
        session.commit()

        stored = session.query(Sale).filter(Sale.id == sale.id).one()
        assert stored.subtotal == Decimal('35.00')
        assert stored.total == Decimal('30.00')
        assert stored.discount_type == DiscountType.FIXED
        assert stored.payment_method == 'CASH'
        assert stored.note == 'mostrador'
        assert len(stored.items) == 2

        product_item = next(i for i in stored.items if i.item_type == ItemKind.PRODUCT)
        assert product_item.quantity == 3
        assert product_item.total_price == Decimal('30.00')
        assert product_item.unit_cost == Decimal('6.00')

        service_item = next(i for i in stored.items if i.item_type == ItemKind.SERVICE)
        assert service_item.product_id is None
        assert service_item.unit_cost == Decimal('0.00')

    def test_cost_snapshot_not_rewritten_later(self, session, product):
        lines = [CartLine(product.id, ItemKind.PRODUCT, product.name, Decimal('10.00'), quantity=1)]
        discount, payment = _prepare(session, lines)
        sale = write_sale(session, lines, discount, payment)
        session.commit()
        sale_id = sale.id

        product.cost = Decimal('8.00')
        session.commit()

        item = session.query(SaleItem).filter(SaleItem.sale_id == sale_id).one()
        assert item.unit_cost == Decimal('6.00')

    def test_missing_product_cost_falls_back_to_cart_basis(self, session, product):
        product.cost = None
        session.commit()

        lines = [CartLine(product.id, ItemKind.PRODUCT, product.name, Decimal('10.00'),
                          quantity=1, cost_basis=Decimal('5.50'))]
        discount, payment = _prepare(session, lines)
        sale = write_sale(session, lines, discount, payment)
        session.commit()

        assert sale.items[0].unit_cost == Decimal('5.50')

    def test_item_failure_leaves_no_sale(self, session, product):
        """An item pointing at a missing product aborts the whole sale."""
        lines = [
            CartLine(product.id, ItemKind.PRODUCT, product.name, Decimal('10.00'), quantity=1),
            CartLine(999999, ItemKind.PRODUCT, 'Fantasma', Decimal('1.00'), quantity=1),
        ]
        discount, payment = _prepare(session, lines)

        with pytest.raises(SaleWriteError) as exc:
            write_sale(session, lines, discount, payment)
        session.rollback()

        assert exc.value.stage == 'items'
        assert exc.value.status_code == 500
        assert session.query(Sale).count() == 0
        assert session.query(SaleItem).count() == 0

    def test_empty_lines_rejected(self, session):
        discount = evaluate_discount(None, 0, Decimal('0'))
        payment = compute_payment(session, 'CASH', Decimal('0'))

        with pytest.raises(BusinessLogicError):
            write_sale(session, [], discount, payment)

    def test_subtotal_mismatch_rejected(self, session, product):
        lines = [CartLine(product.id, ItemKind.PRODUCT, product.name, Decimal('10.00'), quantity=2)]
        discount = evaluate_discount(None, 0, Decimal('10.00'))
        payment = compute_payment(session, 'CASH', discount.total)

        with pytest.raises(BusinessLogicError):
            write_sale(session, lines, discount, payment)
        session.rollback()
        assert session.query(Sale).count() == 0
