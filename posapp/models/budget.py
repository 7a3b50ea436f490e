"""Budget model for presupuestos/cotizaciones."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Date, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from posapp.database import Base, IdType
from posapp.models.sale import DiscountType, discount_type_enum


class BudgetStatus(str, enum.Enum):
    """Budget status enum."""
    OPEN = 'open'
    CONVERTED = 'converted'
    CANCELED = 'canceled'


class Budget(Base):
    """
    Budget (Presupuesto).

    Created open by the quoting flow. Conversion turns it into a sale exactly
    once: status becomes CONVERTED and converted_sale_id points at the sale.
    Cancellation is handled elsewhere; neither terminal state can be left.
    """

    __tablename__ = 'budget'

    id = Column(IdType, primary_key=True, autoincrement=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_type = Column(
        discount_type_enum,
        nullable=False,
        default=DiscountType.NONE
    )
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(
        Enum(BudgetStatus, name='budget_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BudgetStatus.OPEN
    )
    converted_sale_id = Column(IdType, ForeignKey('sale.id'), nullable=True, unique=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('BudgetItem', back_populates='budget', cascade='all, delete-orphan',
                         order_by='BudgetItem.id')
    converted_sale = relationship('Sale', foreign_keys=[converted_sale_id], uselist=False)

    def __repr__(self):
        return f"<Budget(id={self.id}, status='{self.status.value if self.status else None}', total={self.total})>"

    @property
    def is_convertible(self):
        """Check if budget can be converted to sale."""
        return self.status == BudgetStatus.OPEN and self.converted_sale_id is None
