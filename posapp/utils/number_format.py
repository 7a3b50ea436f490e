"""Number parsing utilities for money and quantities."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal('0.01')


def quantize_money(value) -> Decimal:
    """Round a monetary amount to cents (half-up, as printed on receipts)."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_decimal(value, field: str = 'valor') -> Decimal:
    """
    Parse a number coming from a JSON payload or form into Decimal.

    Accepts ints, floats, Decimals and strings. Strings may use a comma as
    decimal separator ("12,50"). Floats go through str() so 0.1 stays 0.1.

    Raises:
        ValueError: if the value is empty or not numeric.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f'Formato inválido para {field}')

    if isinstance(value, str):
        cleaned = value.strip().replace(',', '.')
        if not cleaned:
            raise ValueError(f'Formato inválido para {field}')
    else:
        cleaned = str(value)

    try:
        parsed = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        raise ValueError(f'Formato inválido para {field}')

    if not parsed.is_finite():
        raise ValueError(f'Formato inválido para {field}')
    return parsed


def parse_quantity(value, field: str = 'cantidad') -> int:
    """
    Parse a whole-unit quantity.

    Raises:
        ValueError: if the value is not an integer number of units.
    """
    parsed = parse_decimal(value, field)
    if parsed % 1 != 0:
        raise ValueError(f'La {field} debe ser un número entero')
    return int(parsed)


def format_money(value) -> str:
    """Serialize a monetary value for JSON responses (always two decimals)."""
    if value is None:
        return None
    return str(quantize_money(value))
