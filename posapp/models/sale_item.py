"""Sale Item model."""
import enum
from sqlalchemy import Column, Integer, Numeric, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from posapp.database import Base, IdType


class ItemKind(str, enum.Enum):
    """What a cart line or sale item refers to."""
    PRODUCT = 'product'
    SERVICE = 'service'


class SaleItem(Base):
    """
    Sale Item (detalle de venta).

    `unit_cost` is the product cost frozen at commit time; margin reports read
    it and it is never rewritten when the product cost changes.
    """

    __tablename__ = 'sale_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    sale_id = Column(IdType, ForeignKey('sale.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=True)
    service_id = Column(IdType, ForeignKey('service.id'), nullable=True)
    item_type = Column(
        Enum(ItemKind, name='item_kind', values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=False
    )
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    unit_cost = Column(Numeric(10, 2), nullable=False, default=0)

    # Relationships
    sale = relationship('Sale', back_populates='items')
    product = relationship('Product')
    service = relationship('Service')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_sale_item_quantity_positive'),
        CheckConstraint(
            '(product_id IS NULL AND service_id IS NOT NULL) OR '
            '(product_id IS NOT NULL AND service_id IS NULL)',
            name='ck_sale_item_single_reference'
        ),
    )

    @property
    def item_id(self):
        return self.product_id if self.item_type == ItemKind.PRODUCT else self.service_id

    def __repr__(self):
        return f"<SaleItem(id={self.id}, sale_id={self.sale_id}, qty={self.quantity})>"
