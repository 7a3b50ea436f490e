"""Budgets blueprint - budget lookup and conversion to sale."""
from flask import Blueprint, request, jsonify, current_app, g

from posapp.blueprints.metrics import (
    record_commit, record_stock_failures, sales_committed_total, sale_write_failures_total,
    budget_status_update_failures_total
)
from posapp.database import get_session
from posapp.exceptions import BusinessLogicError, NotFoundError, SaleWriteError, StatusUpdateError
from posapp.middleware import require_operator
from posapp.models import Budget
from posapp.services.budget_service import convert_budget_to_sale
from posapp.utils.number_format import format_money, parse_quantity

budgets_bp = Blueprint('budgets', __name__, url_prefix='/budgets')


@budgets_bp.route('/<int:budget_id>', methods=['GET'])
def budget_detail(budget_id):
    """Budget header, status and items."""
    db_session = get_session()
    budget = db_session.query(Budget).filter(Budget.id == budget_id).first()
    if not budget:
        raise NotFoundError(f'Presupuesto {budget_id} no encontrado.')

    return jsonify({
        'id': budget.id,
        'customer_name': budget.customer_name,
        'status': budget.status.value,
        'subtotal': format_money(budget.subtotal),
        'discount_type': budget.discount_type.value,
        'discount_value': str(budget.discount_value),
        'total': format_money(budget.total),
        'converted_sale_id': budget.converted_sale_id,
        'converted_at': budget.converted_at.isoformat() if budget.converted_at else None,
        'valid_until': budget.valid_until.isoformat() if budget.valid_until else None,
        'items': [
            {
                'description': item.description,
                'product_id': item.product_id,
                'service_id': item.service_id,
                'quantity': item.quantity,
                'unit_price': format_money(item.unit_price),
                'total_price': format_money(item.total_price),
            }
            for item in budget.items
        ]
    })


@budgets_bp.route('/<int:budget_id>/convert', methods=['POST'])
@require_operator
def convert(budget_id):
    """Convert an open budget into a sale."""
    db_session = get_session()
    payload = (request.get_json(silent=True) or {}) if request.is_json else request.form.to_dict()

    try:
        installments = parse_quantity(payload.get('installments', 1), 'cantidad de cuotas')
    except ValueError as e:
        raise BusinessLogicError(str(e))

    try:
        result = convert_budget_to_sale(
            db_session,
            budget_id,
            payment_method=payload.get('payment_method', 'CASH'),
            installments=installments,
            note=payload.get('note'),
            max_installments=current_app.config.get('MAX_INSTALLMENTS', 12)
        )
    except SaleWriteError:
        sale_write_failures_total.labels(source='budget').inc()
        raise
    except StatusUpdateError as e:
        # The sale is committed even though the budget stayed open
        sales_committed_total.labels(source='budget').inc()
        record_stock_failures(e.stock_failures)
        budget_status_update_failures_total.inc()
        raise

    record_commit(result, 'budget')

    message = f'Presupuesto #{budget_id} convertido en venta #{result.sale_id}.'
    if result.has_warnings:
        message += ' Atención: no se pudo actualizar el stock de algunos productos.'

    current_app.logger.info(f"[convert] {message} operator_id={g.operator_id}")
    return jsonify(dict(result.to_dict(), status='ok', message=message)), 201
