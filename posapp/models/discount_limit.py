"""Per-operator discount limit model."""
from sqlalchemy import Column, Numeric, DateTime
from sqlalchemy.sql import func
from posapp.database import Base, IdType


class UserDiscountLimit(Base):
    """Maximum percentage discount an operator may grant at checkout."""

    __tablename__ = 'user_discount_limit'

    id = Column(IdType, primary_key=True, autoincrement=True)
    operator_id = Column(IdType, nullable=False, unique=True)
    max_discount_percentage = Column(Numeric(5, 2), nullable=False, default=10)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<UserDiscountLimit(operator_id={self.operator_id}, max={self.max_discount_percentage})>"
