"""
Integration tests for the cart and checkout endpoints.
Requests run against the Flask test client; the cart lives in the cookie session.
"""

from prometheus_client import REGISTRY

from posapp.models import Product, Sale


def _stock(session, product_id):
    return session.query(Product.stock).filter(Product.id == product_id).scalar()


class TestCartEndpoints:
    """Tests for /sales/cart*."""

    def test_add_and_view_cart(self, client, product):
        product_id = product.id

        response = client.post('/sales/cart/add', json={'product_id': product_id})
        assert response.status_code == 200

        client.post('/sales/cart/add', json={'product_id': product_id})
        data = client.get('/sales/cart').get_json()

        assert len(data['lines']) == 1
        assert data['lines'][0]['quantity'] == 2
        assert data['subtotal'] == '20.00'

    def test_update_above_stock_rejected_and_cart_kept(self, client, low_stock_product):
        product_id = low_stock_product.id
        client.post('/sales/cart/add', json={'product_id': product_id})

        response = client.post('/sales/cart/update', json={'product_id': product_id, 'quantity': 5})

        assert response.status_code == 409
        body = response.get_json()
        assert body['error'] == 'InsufficientStockError'
        assert body['available'] == 2

        data = client.get('/sales/cart').get_json()
        assert data['lines'][0]['quantity'] == 1

    def test_add_past_stock_rejected(self, client, low_stock_product):
        product_id = low_stock_product.id
        client.post('/sales/cart/add', json={'product_id': product_id})
        client.post('/sales/cart/add', json={'product_id': product_id})

        response = client.post('/sales/cart/add', json={'product_id': product_id})

        assert response.status_code == 409
        assert response.get_json()['error'] == 'OutOfStockError'

    def test_update_to_zero_removes(self, client, product):
        product_id = product.id
        client.post('/sales/cart/add', json={'product_id': product_id})

        data = client.post('/sales/cart/update', json={'product_id': product_id, 'quantity': 0}).get_json()

        assert data['lines'] == []
        assert data['subtotal'] == '0.00'

    def test_remove_and_clear(self, client, product, service):
        product_id, service_id = product.id, service.id
        client.post('/sales/cart/add', json={'product_id': product_id})
        client.post('/sales/cart/add', json={'service_id': service_id})

        data = client.post('/sales/cart/remove', json={'product_id': product_id}).get_json()
        assert [line['kind'] for line in data['lines']] == ['service']

        data = client.post('/sales/cart/clear').get_json()
        assert data['lines'] == []

    def test_add_unknown_product(self, client, session):
        response = client.post('/sales/cart/add', json={'product_id': 4242})
        assert response.status_code == 404

    def test_add_without_reference(self, client, session):
        response = client.post('/sales/cart/add', json={})
        assert response.status_code == 400


class TestDiscountPreview:
    """Tests for /sales/discount/preview."""

    def test_preview_uses_operator_limit(self, client, product, discount_limit, operator_headers):
        product_id = product.id
        client.post('/sales/cart/add', json={'product_id': product_id})

        ok = client.post('/sales/discount/preview', headers=operator_headers,
                         json={'discount_type': 'percentage', 'discount_value': '15'})
        assert ok.status_code == 200
        assert ok.get_json()['total'] == '8.50'

        rejected = client.post('/sales/discount/preview', headers=operator_headers,
                               json={'discount_type': 'percentage', 'discount_value': '16'})
        assert rejected.status_code == 400
        assert rejected.get_json()['reason'] == 'exceeds operator limit'


class TestConfirm:
    """Tests for /sales/confirm."""

    def test_confirm_sale(self, client, session, product, discount_limit, operator_headers):
        product_id = product.id
        client.post('/sales/cart/add', json={'product_id': product_id})
        client.post('/sales/cart/update', json={'product_id': product_id, 'quantity': 3})

        response = client.post('/sales/confirm', headers=operator_headers, json={
            'discount_type': 'percentage',
            'discount_value': '10',
            'payment_method': 'CASH'
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['subtotal'] == '30.00'
        assert body['applied_discount'] == '3.00'
        assert body['total'] == '27.00'
        assert body['stock_failures'] == []

        assert _stock(session, product_id) == 47
        assert session.query(Sale).count() == 1

        # Cart is emptied after a committed sale
        assert client.get('/sales/cart').get_json()['lines'] == []

        detail = client.get(f"/sales/{body['sale_id']}").get_json()
        assert detail['total'] == '27.00'
        assert detail['items'][0]['quantity'] == 3
        assert detail['items'][0]['unit_cost'] == '6.00'

    def test_confirm_discount_over_limit(self, client, session, product, discount_limit, operator_headers):
        product_id = product.id
        client.post('/sales/cart/add', json={'product_id': product_id})

        response = client.post('/sales/confirm', headers=operator_headers, json={
            'discount_type': 'percentage',
            'discount_value': '20'
        })

        assert response.status_code == 400
        assert session.query(Sale).count() == 0
        assert _stock(session, product_id) == 50
        assert len(client.get('/sales/cart').get_json()['lines']) == 1

    def test_confirm_requires_operator(self, client, product):
        client.post('/sales/cart/add', json={'product_id': product.id})

        response = client.post('/sales/confirm', json={})

        assert response.status_code == 401

    def test_operator_from_session(self, client, session, product):
        product_id = product.id
        with client.session_transaction() as sess:
            sess['operator_id'] = 3
        client.post('/sales/cart/add', json={'product_id': product_id})

        response = client.post('/sales/confirm', json={'payment_method': 'TRANSFER'})

        assert response.status_code == 201
        assert session.query(Sale).one().payment_method == 'TRANSFER'

    def test_confirm_empty_cart(self, client, session, operator_headers):
        response = client.post('/sales/confirm', headers=operator_headers, json={})
        assert response.status_code == 400

    def test_unknown_sale(self, client, session):
        assert client.get('/sales/999').status_code == 404


class TestMetricsEndpoint:
    """Tests for /metrics."""

    def test_metrics_exposes_sale_counters(self, client, session):
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'pos_sales_committed_total' in response.data

    def test_cart_requests_are_timed(self, client, session):
        labels = {'endpoint': 'sales.cart_view', 'status': '200'}
        before = REGISTRY.get_sample_value('pos_request_duration_seconds_count', labels) or 0

        client.get('/sales/cart')

        assert REGISTRY.get_sample_value('pos_request_duration_seconds_count', labels) == before + 1

    def test_metrics_scrape_is_not_timed(self, client, session):
        client.get('/metrics')
        response = client.get('/metrics')
        assert b'endpoint="metrics.metrics"' not in response.data
