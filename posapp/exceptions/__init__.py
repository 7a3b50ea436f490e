"""Custom exceptions for the POS application."""
from dataclasses import dataclass
from decimal import Decimal


def _fmt_qty(value):
    value = Decimal(str(value))
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')


class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['error'] = type(self).__name__
        return rv

class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidDiscountError(BusinessLogicError):
    """
    Raised when a requested discount is rejected.

    `reason` is a stable machine-readable code: 'negative',
    'exceeds operator limit', 'over 100%', 'exceeds subtotal' or 'unknown type'.
    """
    def __init__(self, reason, message):
        super().__init__(message, status_code=400, payload={'reason': reason})
        self.reason = reason

class StockError(BusinessLogicError):
    """Base for cart mutations blocked by available stock."""

class OutOfStockError(StockError):
    """Raised when not even one more unit can be added to the cart."""
    def __init__(self, product_name, available):
        message = f"Sin stock para {product_name}: disponible {_fmt_qty(available)}"
        super().__init__(message, status_code=409, payload={'available': int(available)})

class InsufficientStockError(StockError):
    """Raised when a requested quantity exceeds available stock."""
    def __init__(self, product_name, required, available):
        message = (
            f"Stock insuficiente para {product_name}: "
            f"se requieren {_fmt_qty(required)}, disponible {_fmt_qty(available)}"
        )
        super().__init__(message, status_code=409, payload={'available': int(available)})

class SaleWriteError(PosError):
    """Raised when the sale header or one of its items cannot be persisted."""
    def __init__(self, message, stage):
        super().__init__(message, 500, payload={'stage': stage})
        self.stage = stage

class BudgetStateError(BusinessLogicError):
    """Raised when a budget is not in a state that allows conversion."""
    def __init__(self, budget_id, status):
        message = f"El presupuesto #{budget_id} no está abierto (estado: {status})."
        super().__init__(message, status_code=409, payload={'budget_id': budget_id, 'budget_status': status})

class StatusUpdateError(PosError):
    """
    Raised when the budget could not be marked as converted.

    The sale and its stock movements are already committed when this is raised;
    the operator has to fix the budget status by hand.
    """
    def __init__(self, budget_id, sale_id, stock_failures=None):
        message = (
            f"Venta #{sale_id} registrada correctamente, pero no se pudo marcar "
            f"el presupuesto #{budget_id} como convertido. Actualícelo manualmente."
        )
        self.stock_failures = list(stock_failures or [])
        super().__init__(message, 500, payload={
            'budget_id': budget_id,
            'sale_id': sale_id,
            'sale_committed': True,
            'stock_failures': [f.to_dict() for f in self.stock_failures]
        })
        self.budget_id = budget_id
        self.sale_id = sale_id


@dataclass(frozen=True)
class StockReconcileFailure:
    """Non-fatal per-item stock failure, reported next to a committed sale."""
    product_id: int
    quantity: int
    reason: str

    def to_dict(self):
        return {'product_id': self.product_id, 'quantity': self.quantity, 'reason': self.reason}
