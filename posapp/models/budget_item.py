"""BudgetItem model for budget line items."""
from sqlalchemy import Column, String, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from posapp.database import Base, IdType


class BudgetItem(Base):
    """
    Budget Item (Línea de Presupuesto).

    Prices are the quoted ones; conversion uses them instead of the current
    catalog price.
    """

    __tablename__ = 'budget_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    budget_id = Column(IdType, ForeignKey('budget.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=True)
    service_id = Column(IdType, ForeignKey('service.id'), nullable=True)
    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    budget = relationship('Budget', back_populates='items')
    product = relationship('Product')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_budget_item_quantity_positive'),
    )

    def __repr__(self):
        return f"<BudgetItem(id={self.id}, budget_id={self.budget_id}, description='{self.description}', qty={self.quantity})>"
