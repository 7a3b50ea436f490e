"""Product model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from posapp.database import Base, IdType


class Product(Base):
    """
    Product (catalog item with inventory).

    Owned by the catalog; the sale pipeline only reads `cost` and applies
    floor-at-zero decrements to `stock`.
    """

    __tablename__ = 'product'

    id = Column(IdType, primary_key=True, autoincrement=True)
    sku = Column(String(64), nullable=True)
    barcode = Column(String(64), nullable=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    sale_price = Column(Numeric(10, 2), nullable=False)
    cost = Column(Numeric(10, 2), nullable=True, default=0)  # Precio de compra, may be unknown
    stock = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
