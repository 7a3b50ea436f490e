"""Sale model."""
import enum
from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, Text, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from posapp.database import Base, IdType


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DiscountType(str, enum.Enum):
    """Discount type enum."""
    NONE = 'none'
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


discount_type_enum = Enum(DiscountType, name='discount_type', values_callable=_enum_values)


class Sale(Base):
    """
    Sale (venta confirmada).

    Immutable once written by the commit pipeline. The cancellation columns
    belong to the sale-cancel flow and are never touched here.
    """

    __tablename__ = 'sale'

    id = Column(IdType, primary_key=True, autoincrement=True)
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount_type = Column(
        discount_type_enum,
        nullable=False,
        default=DiscountType.NONE
    )
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    # Payment: gross = total charged, net = gross minus the acquirer fee
    payment_method = Column(String(30), nullable=False)
    installments = Column(Integer, nullable=False, default=1)
    gross_amount = Column(Numeric(10, 2), nullable=False)
    net_amount = Column(Numeric(10, 2), nullable=False)

    note = Column(Text, nullable=True)
    # No FK (budget.converted_sale_id points back); unique: one sale per budget
    source_budget_id = Column(IdType, nullable=True, unique=True)

    canceled = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan',
                         order_by='SaleItem.id')

    __table_args__ = (
        CheckConstraint('total >= 0', name='ck_sale_total_non_negative'),
        CheckConstraint('total <= subtotal', name='ck_sale_total_le_subtotal'),
        CheckConstraint('installments >= 1', name='ck_sale_installments_positive'),
    )

    @property
    def applied_discount(self):
        """Discount actually taken off the subtotal."""
        return (self.subtotal or 0) - (self.total or 0)

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, payment_method='{self.payment_method}')>"
