"""Models package - exports all SQLAlchemy models."""
# Catalog
from posapp.models.product import Product
from posapp.models.service import Service

# Sales
from posapp.models.sale import Sale, DiscountType
from posapp.models.sale_item import SaleItem, ItemKind
from posapp.models.payment_fee import PaymentFee, PaymentMethod, normalize_payment_method
from posapp.models.discount_limit import UserDiscountLimit

# Budgets
from posapp.models.budget import Budget, BudgetStatus
from posapp.models.budget_item import BudgetItem

__all__ = [
    # Catalog
    'Product', 'Service',
    # Sales
    'Sale', 'DiscountType', 'SaleItem', 'ItemKind',
    'PaymentFee', 'PaymentMethod', 'normalize_payment_method', 'UserDiscountLimit',
    # Budgets
    'Budget', 'BudgetStatus', 'BudgetItem',
]
