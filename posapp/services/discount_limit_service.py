"""Operator discount limits."""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from posapp.models import UserDiscountLimit
from posapp.services.discount_policy import DEFAULT_MAX_DISCOUNT_PERCENTAGE
from posapp.utils.number_format import parse_decimal

logger = logging.getLogger(__name__)


def get_max_discount_percentage(session: Session, operator_id: Optional[int], default=None) -> Decimal:
    """
    Maximum percentage discount the operator may grant.

    Falls back to `default` (or the built-in 10%) when the operator is unknown
    or has no limit configured.
    """
    fallback = Decimal(str(default)) if default is not None else DEFAULT_MAX_DISCOUNT_PERCENTAGE

    if operator_id is None:
        return fallback

    limit = session.query(UserDiscountLimit).filter(
        UserDiscountLimit.operator_id == operator_id
    ).first()

    if limit is None:
        logger.info(f"[discount] No limit configured for operator_id={operator_id}, using {fallback}%")
        return fallback

    return Decimal(str(limit.max_discount_percentage))


def set_max_discount_percentage(session: Session, operator_id: int, percentage) -> UserDiscountLimit:
    """Create or update an operator's limit (flushes, caller commits)."""
    percentage = parse_decimal(percentage, 'porcentaje')
    if percentage < 0 or percentage > 100:
        raise ValueError('El límite de descuento debe estar entre 0 y 100.')

    limit = session.query(UserDiscountLimit).filter(
        UserDiscountLimit.operator_id == operator_id
    ).first()

    if limit is None:
        limit = UserDiscountLimit(operator_id=operator_id, max_discount_percentage=percentage)
        session.add(limit)
    else:
        limit.max_discount_percentage = percentage

    session.flush()
    return limit
