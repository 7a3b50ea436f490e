"""Payment fee model and payment method normalization."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from posapp.database import Base, IdType


class PaymentMethod(enum.Enum):
    """Payment methods accepted at checkout."""
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    CREDIT_INSTALLMENTS = "CREDIT_INSTALLMENTS"


def normalize_payment_method(value) -> str:
    """
    Normalize payment method value to string for DB storage.

    Args:
        value: Can be None, PaymentMethod enum, or string

    Returns:
        str: one of the PaymentMethod values

    Raises:
        ValueError: If value is invalid
    """
    # Default to CASH if None
    if value is None:
        return PaymentMethod.CASH.value

    if isinstance(value, PaymentMethod):
        return value.value

    normalized = str(value).upper().strip()
    if normalized in PaymentMethod.__members__:
        return normalized

    raise ValueError(f"Método de pago inválido: {value}")


class PaymentFee(Base):
    """Acquirer fee charged per payment method (and installment count for credit)."""

    __tablename__ = 'payment_fee'

    id = Column(IdType, primary_key=True, autoincrement=True)
    method = Column(String(30), nullable=False)
    installments = Column(Integer, nullable=True)  # Only for CREDIT_INSTALLMENTS
    fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('method', 'installments', name='uq_payment_fee_method_installments'),
    )

    def __repr__(self):
        return f"<PaymentFee(method='{self.method}', installments={self.installments}, fee={self.fee_percentage})>"
