"""Cart Service - in-memory cart for the checkout screen.

The cart lives in the operator's Flask session between requests (see
Cart.to_dict / Cart.from_dict) and is discarded on commit or cancel.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Any

from posapp.exceptions import NotFoundError, OutOfStockError, InsufficientStockError
from posapp.models import ItemKind


@dataclass
class CartLine:
    """One product or service in the cart."""
    item_id: int
    kind: ItemKind
    name: str
    unit_price: Decimal
    quantity: int = 1
    cost_basis: Optional[Decimal] = None
    stock_ceiling: Optional[int] = None

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def key(self):
        return (self.kind, self.item_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_id': self.item_id,
            'kind': self.kind.value,
            'name': self.name,
            'unit_price': str(self.unit_price),
            'quantity': self.quantity,
            'cost_basis': str(self.cost_basis) if self.cost_basis is not None else None,
            'stock_ceiling': self.stock_ceiling,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        cost_basis = data.get('cost_basis')
        return cls(
            item_id=int(data['item_id']),
            kind=ItemKind(data.get('kind', ItemKind.PRODUCT.value)),
            name=data['name'],
            unit_price=Decimal(str(data['unit_price'])),
            quantity=int(data.get('quantity', 1)),
            cost_basis=Decimal(str(cost_basis)) if cost_basis is not None else None,
            stock_ceiling=data.get('stock_ceiling'),
        )


def _coerce_kind(kind) -> ItemKind:
    return kind if isinstance(kind, ItemKind) else ItemKind(str(kind).lower())


class Cart:
    """
    Items being sold, keyed by (kind, item_id).

    Invariants: every line has quantity >= 1, and never more than its
    stock_ceiling when the ceiling is known. Services carry no ceiling.
    """

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: Dict[Any, CartLine] = {}
        for line in lines or []:
            self._lines[line.key] = line

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, item_id: int, kind=ItemKind.PRODUCT) -> Optional[CartLine]:
        return self._lines.get((_coerce_kind(kind), int(item_id)))

    def add_line(
        self,
        item_id: int,
        name: str,
        unit_price,
        kind=ItemKind.PRODUCT,
        cost_basis=None,
        stock_ceiling: Optional[int] = None
    ) -> CartLine:
        """
        Add one unit of an item.

        An existing line for the same item grows by one unit; a new item starts
        at one unit. `stock_ceiling` is the latest stock reading and is ignored
        for services. Raises OutOfStockError when the ceiling is already
        reached, leaving the cart unchanged.
        """
        kind = _coerce_kind(kind)
        if kind != ItemKind.PRODUCT:
            stock_ceiling = None
        line = self._lines.get((kind, int(item_id)))

        if line:
            ceiling = stock_ceiling if stock_ceiling is not None else line.stock_ceiling
            if ceiling is not None and line.quantity >= ceiling:
                raise OutOfStockError(line.name, max(ceiling, 0))
            line.stock_ceiling = ceiling
            line.quantity += 1
            return line

        if stock_ceiling is not None and stock_ceiling <= 0:
            raise OutOfStockError(name, max(stock_ceiling, 0))

        line = CartLine(
            item_id=int(item_id),
            kind=kind,
            name=name,
            unit_price=Decimal(str(unit_price)),
            quantity=1,
            cost_basis=Decimal(str(cost_basis)) if cost_basis is not None else None,
            stock_ceiling=stock_ceiling,
        )
        self._lines[line.key] = line
        return line

    def set_quantity(
        self,
        item_id: int,
        quantity: int,
        kind=ItemKind.PRODUCT,
        stock_ceiling: Optional[int] = None
    ) -> Optional[CartLine]:
        """
        Set the quantity of a line.

        quantity <= 0 removes the line. A quantity above the stock ceiling (the
        one passed in, else the line's last known one) raises
        InsufficientStockError and leaves the line untouched; the new ceiling
        is only stored together with a quantity that fits under it.
        """
        kind = _coerce_kind(kind)
        key = (kind, int(item_id))

        if quantity <= 0:
            self._lines.pop(key, None)
            return None

        line = self._lines.get(key)
        if not line:
            raise NotFoundError('El producto no está en el carrito.')

        ceiling = stock_ceiling if kind == ItemKind.PRODUCT and stock_ceiling is not None else line.stock_ceiling
        if ceiling is not None and quantity > ceiling:
            raise InsufficientStockError(line.name, quantity, max(ceiling, 0))

        line.stock_ceiling = ceiling
        line.quantity = int(quantity)
        return line

    def remove_line(self, item_id: int, kind=ItemKind.PRODUCT) -> None:
        self._lines.pop((_coerce_kind(kind), int(item_id)), None)

    def clear(self) -> None:
        self._lines.clear()

    def subtotal(self) -> Decimal:
        """Sum of unit_price × quantity over current lines."""
        return sum((line.total_price for line in self._lines.values()), Decimal('0'))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form for the Flask session (Decimals as strings)."""
        return {'lines': [line.to_dict() for line in self._lines.values()]}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Cart':
        if not data:
            return cls()
        return cls([CartLine.from_dict(item) for item in data.get('lines', [])])
