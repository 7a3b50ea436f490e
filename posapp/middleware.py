"""Middleware for operator context."""
from functools import wraps
from flask import session, g, request, current_app

from posapp.exceptions import PosError


def load_operator():
    """
    Load the current operator id into g (Flask's per-request global).

    Authentication happens upstream; the operator arrives either in the
    configured header or in the Flask session. Sets g.operator_id (or None).
    """
    g.operator_id = None

    header_name = current_app.config.get('OPERATOR_HEADER', 'X-Operator-Id')
    raw = request.headers.get(header_name) or session.get('operator_id')
    if raw in (None, ''):
        return

    try:
        g.operator_id = int(raw)
    except (TypeError, ValueError):
        current_app.logger.warning(f"Ignoring invalid operator id: {raw!r}")


def require_operator(f):
    """
    Decorator: Require an identified operator.

    Returns 401 JSON when the request carries no operator.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('operator_id') is None:
            raise PosError('Operador no identificado.', 401)
        return f(*args, **kwargs)
    return decorated_function
