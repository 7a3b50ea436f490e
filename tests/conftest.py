import pytest
from decimal import Decimal

from posapp import create_app
from posapp.database import get_session, create_tables, drop_tables
from posapp.models import (
    Product, Service, Budget, BudgetItem, BudgetStatus, DiscountType, UserDiscountLimit
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema per test; yields the scoped session."""
    create_tables()
    session = get_session()
    yield session
    session.remove()
    drop_tables()


@pytest.fixture(scope='function')
def operator_headers():
    """Headers identifying operator 1, as set by the auth proxy."""
    return {'X-Operator-Id': '1'}


@pytest.fixture(scope='function')
def discount_limit(session):
    """Operator 1 may grant up to 15%."""
    limit = UserDiscountLimit(operator_id=1, max_discount_percentage=Decimal('15'))
    session.add(limit)
    session.commit()
    return limit


@pytest.fixture(scope='function')
def product(session):
    """Product priced 10.00 with 50 units in stock."""
    product = Product(
        name='Yerba 1kg',
        sku='YER-001',
        sale_price=Decimal('10.00'),
        cost=Decimal('6.00'),
        stock=50,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def low_stock_product(session):
    """Product with only 2 units left."""
    product = Product(
        name='Termo 1L',
        sku='TER-001',
        sale_price=Decimal('25.00'),
        cost=Decimal('15.00'),
        stock=2,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def service(session):
    """Service without inventory."""
    service = Service(name='Envío a domicilio', price=Decimal('5.00'), active=True)
    session.add(service)
    session.commit()
    return service


@pytest.fixture(scope='function')
def budget(session, product, low_stock_product):
    """Open budget with two product lines and a 10% discount (total 54.00)."""
    budget = Budget(
        customer_name='Cliente Test',
        subtotal=Decimal('60.00'),
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal('10'),
        total=Decimal('54.00'),
        status=BudgetStatus.OPEN
    )
    budget.items = [
        BudgetItem(
            product_id=product.id,
            description='Yerba 1kg',
            quantity=1,
            unit_price=Decimal('10.00'),
            total_price=Decimal('10.00')
        ),
        BudgetItem(
            product_id=low_stock_product.id,
            description='Termo 1L',
            quantity=2,
            unit_price=Decimal('25.00'),
            total_price=Decimal('50.00')
        ),
    ]
    session.add(budget)
    session.commit()
    return budget
