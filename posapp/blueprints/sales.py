"""Sales blueprint - cart and checkout JSON endpoints."""
from datetime import datetime
from typing import Tuple

from flask import Blueprint, request, session, jsonify, current_app, g
from flask_wtf.csrf import generate_csrf

from posapp.blueprints.metrics import record_commit, sale_write_failures_total
from posapp.database import get_session
from posapp.exceptions import BusinessLogicError, NotFoundError, SaleWriteError
from posapp.middleware import require_operator
from posapp.models import ItemKind, Sale
from posapp.services.cart_service import Cart
from posapp.services.catalog_service import get_product, get_service
from posapp.services.discount_limit_service import get_max_discount_percentage
from posapp.services.discount_policy import evaluate_discount
from posapp.services.sales_service import commit_cart_sale
from posapp.utils.number_format import format_money, parse_decimal, parse_quantity

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def get_cart() -> Cart:
    """Get cart from session."""
    return Cart.from_dict(session.get('cart'))


def save_cart(cart: Cart) -> None:
    """Save cart to session (JSON-safe)."""
    session['cart'] = cart.to_dict()
    session.modified = True


def _get_payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _item_ref(payload: dict) -> Tuple[int, ItemKind]:
    """Extract (item_id, kind) from a payload carrying product_id or service_id."""
    if payload.get('product_id') not in (None, ''):
        raw, kind = payload['product_id'], ItemKind.PRODUCT
    elif payload.get('service_id') not in (None, ''):
        raw, kind = payload['service_id'], ItemKind.SERVICE
    else:
        raise BusinessLogicError('Falta el ID del producto o servicio')

    try:
        return int(raw), kind
    except (TypeError, ValueError):
        raise BusinessLogicError('ID de producto o servicio inválido')


def _cart_response(cart: Cart, status: int = 200):
    return jsonify({
        'status': 'ok',
        'lines': [
            dict(line.to_dict(), total_price=format_money(line.total_price))
            for line in cart.lines
        ],
        'subtotal': format_money(cart.subtotal()),
        'csrf_token': generate_csrf() if current_app.config.get('WTF_CSRF_ENABLED', True) else None
    }), status


def _serialize_sale(sale: Sale) -> dict:
    return {
        'id': sale.id,
        'date': sale.date.isoformat() if sale.date else None,
        'subtotal': format_money(sale.subtotal),
        'discount_type': sale.discount_type.value,
        'discount_value': str(sale.discount_value),
        'applied_discount': format_money(sale.applied_discount),
        'total': format_money(sale.total),
        'payment_method': sale.payment_method,
        'installments': sale.installments,
        'gross_amount': format_money(sale.gross_amount),
        'net_amount': format_money(sale.net_amount),
        'note': sale.note,
        'source_budget_id': sale.source_budget_id,
        'canceled': sale.canceled,
        'items': [
            {
                'id': item.id,
                'item_type': item.item_type.value,
                'product_id': item.product_id,
                'service_id': item.service_id,
                'quantity': item.quantity,
                'unit_price': format_money(item.unit_price),
                'total_price': format_money(item.total_price),
                'unit_cost': format_money(item.unit_cost),
            }
            for item in sale.items
        ]
    }


@sales_bp.route('/cart', methods=['GET'])
def cart_view():
    """Current cart with subtotal."""
    return _cart_response(get_cart())


@sales_bp.route('/cart/add', methods=['POST'])
def cart_add():
    """Add one unit of a product or service to the cart."""
    db_session = get_session()
    payload = _get_payload()
    item_id, kind = _item_ref(payload)
    cart = get_cart()

    if kind == ItemKind.PRODUCT:
        product = get_product(db_session, item_id)
        if not product:
            raise NotFoundError('Producto no encontrado.')
        if not product.active:
            raise BusinessLogicError(f'El producto "{product.name}" no está activo.')
        cart.add_line(
            item_id, product.name, product.sale_price,
            kind=kind, cost_basis=product.cost, stock_ceiling=product.stock
        )
    else:
        service = get_service(db_session, item_id)
        if not service:
            raise NotFoundError('Servicio no encontrado.')
        if not service.active:
            raise BusinessLogicError(f'El servicio "{service.name}" no está activo.')
        cart.add_line(item_id, service.name, service.price, kind=kind)

    save_cart(cart)
    current_app.logger.info(f"[cart_add] {kind.value}_id={item_id}, cart_size={len(cart.lines)}")
    return _cart_response(cart)


@sales_bp.route('/cart/update', methods=['POST'])
def cart_update():
    """Set a line's quantity; 0 or less removes it."""
    db_session = get_session()
    payload = _get_payload()
    item_id, kind = _item_ref(payload)

    try:
        quantity = parse_quantity(payload.get('quantity'))
    except ValueError as e:
        raise BusinessLogicError(str(e))

    cart = get_cart()
    stock_ceiling = None
    if quantity > 0 and kind == ItemKind.PRODUCT and cart.get_line(item_id, kind):
        product = get_product(db_session, item_id)
        if not product:
            raise NotFoundError('Producto no encontrado.')
        stock_ceiling = product.stock

    # InsufficientStockError propagates before save: the session cart keeps the old quantity
    cart.set_quantity(item_id, quantity, kind, stock_ceiling=stock_ceiling)
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/remove', methods=['POST'])
def cart_remove():
    """Remove a line from the cart."""
    item_id, kind = _item_ref(_get_payload())
    cart = get_cart()
    cart.remove_line(item_id, kind)
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/clear', methods=['POST'])
def cart_clear():
    """Discard the cart."""
    cart = Cart()
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/discount/preview', methods=['POST'])
def discount_preview():
    """Validate a discount against the cart and the operator's cap, without writing."""
    db_session = get_session()
    payload = _get_payload()
    cart = get_cart()

    try:
        value = parse_decimal(payload.get('discount_value', 0), 'descuento')
    except ValueError as e:
        raise BusinessLogicError(str(e))

    cap = get_max_discount_percentage(
        db_session, g.get('operator_id'),
        default=current_app.config.get('DEFAULT_MAX_DISCOUNT_PERCENTAGE')
    )
    result = evaluate_discount(payload.get('discount_type'), value, cart.subtotal(), max_percentage=cap)

    return jsonify({
        'status': 'ok',
        'discount_type': result.discount_type.value,
        'subtotal': format_money(result.subtotal),
        'applied_discount': format_money(result.applied_discount),
        'total': format_money(result.total),
        'max_discount_percentage': str(cap)
    })


@sales_bp.route('/confirm', methods=['POST'])
@require_operator
def confirm():
    """Commit the cart as a sale."""
    db_session = get_session()
    payload = _get_payload()
    cart = get_cart()

    try:
        discount_value = parse_decimal(payload.get('discount_value', 0), 'descuento')
        installments = parse_quantity(payload.get('installments', 1), 'cantidad de cuotas')
        sale_date = datetime.fromisoformat(payload['date']) if payload.get('date') else None
    except ValueError as e:
        raise BusinessLogicError(str(e))

    try:
        result = commit_cart_sale(
            db_session,
            cart,
            discount_type=payload.get('discount_type'),
            discount_value=discount_value,
            payment_method=payload.get('payment_method', 'CASH'),
            operator_id=g.operator_id,
            installments=installments,
            note=payload.get('note'),
            sale_date=sale_date,
            default_max_discount=current_app.config.get('DEFAULT_MAX_DISCOUNT_PERCENTAGE'),
            max_installments=current_app.config.get('MAX_INSTALLMENTS', 12)
        )
    except SaleWriteError:
        sale_write_failures_total.labels(source='checkout').inc()
        raise

    # Cart is discarded once the sale exists
    save_cart(Cart())
    record_commit(result, 'checkout')

    message = f'Venta #{result.sale_id} registrada por ${format_money(result.total)}.'
    if result.has_warnings:
        message += ' Atención: no se pudo actualizar el stock de algunos productos.'

    current_app.logger.info(f"[confirm] {message} operator_id={g.operator_id}")
    return jsonify(dict(result.to_dict(), status='ok', message=message)), 201


@sales_bp.route('/<int:sale_id>', methods=['GET'])
def sale_detail(sale_id):
    """Sale header with its items."""
    db_session = get_session()
    sale = db_session.query(Sale).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError(f'Venta {sale_id} no encontrada.')
    return jsonify(_serialize_sale(sale))
