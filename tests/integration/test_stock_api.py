"""
Integration tests for the stock JSON API.
"""

from decimal import Decimal

import pytest

from app.exceptions import StockLockTimeoutError
from app.services import stock_service
from tests.factories import get_position


def _movement(stock_key, **overrides):
    tenant_id, warehouse_id, product_id = stock_key
    payload = {
        'tenantId': tenant_id,
        'warehouseId': warehouse_id,
        'productId': product_id,
        'type': 'entry',
        'quantity': '100',
        'unitCost': '10.00',
        'reason': 'purchase',
    }
    payload.update(overrides)
    return payload


class TestCreateMovement:
    """POST /api/stock-movements"""

    def test_create_returns_201(self, client, session, stock_key):
        response = client.post('/api/stock-movements', json=_movement(stock_key, referenceId='PI-7'))

        assert response.status_code == 201
        data = response.get_json()
        assert data['type'] == 'entry'
        assert data['reason'] == 'purchase'
        assert Decimal(data['quantity']) == Decimal('100')
        assert Decimal(data['totalCost']) == Decimal('1000')
        assert data['referenceId'] == 'PI-7'
        assert data['sequence'] == 1

    def test_weighted_average_through_api(self, client, session, stock_key):
        client.post('/api/stock-movements', json=_movement(stock_key))
        client.post('/api/stock-movements', json=_movement(stock_key, quantity='50', unitCost='16'))

        position = get_position(session, stock_key[1], stock_key[2])
        assert position.quantity == Decimal('150')
        assert position.average_cost == Decimal('12')

    def test_invalid_type_is_400(self, client, session, stock_key):
        response = client.post('/api/stock-movements', json=_movement(stock_key, type='teleport'))

        assert response.status_code == 400
        data = response.get_json()
        assert data['status'] == 'error'
        assert data['field'] == 'type'

    def test_invalid_quantity_is_400(self, client, session, stock_key):
        response = client.post('/api/stock-movements', json=_movement(stock_key, quantity='0'))
        assert response.status_code == 400
        assert response.get_json()['field'] == 'quantity'

    @pytest.mark.parametrize('quantity', ['1' * 30 + '.0001', '1234567890123456.789'])
    def test_unrepresentable_quantity_is_400(self, client, session, stock_key, quantity):
        response = client.post('/api/stock-movements', json=_movement(stock_key, quantity=quantity))
        assert response.status_code == 400
        assert response.get_json()['field'] == 'quantity'

    def test_non_json_body_is_400(self, client, session):
        response = client.post('/api/stock-movements', data='nope', content_type='text/plain')
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, session, stock_key):
        response = client.post('/api/stock-movements', json=_movement(stock_key, productId='missing'))
        assert response.status_code == 404

    def test_oversell_is_409_when_disallowed(self, app, client, session, stock_key):
        app.config['STOCK_ALLOW_NEGATIVE'] = False
        try:
            response = client.post('/api/stock-movements', json=_movement(stock_key, type='exit', quantity='1'))
        finally:
            app.config['STOCK_ALLOW_NEGATIVE'] = True

        assert response.status_code == 409
        assert get_position(session, stock_key[1], stock_key[2]) is None

    def test_lock_timeout_retried(self, client, session, stock_key, monkeypatch):
        real_record = stock_service.record_movement
        attempts = []

        def flaky(*args, **kwargs):
            attempts.append(1)
            if len(attempts) < 3:
                raise StockLockTimeoutError()
            return real_record(*args, **kwargs)

        monkeypatch.setattr(stock_service, 'record_movement', flaky)
        response = client.post('/api/stock-movements', json=_movement(stock_key))

        assert response.status_code == 201
        assert len(attempts) == 3

    def test_lock_timeout_exhausted_is_503(self, client, session, stock_key, monkeypatch):
        def busy(*args, **kwargs):
            raise StockLockTimeoutError()

        monkeypatch.setattr(stock_service, 'record_movement', busy)
        response = client.post('/api/stock-movements', json=_movement(stock_key))

        assert response.status_code == 503


class TestReadEndpoints:
    """Stock positions, value and ledger listings."""

    @pytest.fixture
    def stocked(self, client, session, stock_key):
        client.post('/api/stock-movements', json=_movement(stock_key))
        client.post('/api/stock-movements', json=_movement(stock_key, type='exit', quantity='30',
                                                           unitCost=None, reason='sale'))
        return stock_key

    def test_list_stock(self, client, stocked):
        tenant_id, warehouse_id, product_id = stocked
        response = client.get(f'/api/stock?tenantId={tenant_id}')

        assert response.status_code == 200
        items = response.get_json()
        assert len(items) == 1
        assert items[0]['productId'] == product_id
        assert Decimal(items[0]['quantity']) == Decimal('70')
        assert Decimal(items[0]['averageCost']) == Decimal('10')
        assert items[0]['version'] == 2

    def test_list_stock_requires_tenant(self, client, session):
        response = client.get('/api/stock')
        assert response.status_code == 400
        assert response.get_json()['field'] == 'tenantId'

    def test_stock_by_product(self, client, stocked):
        tenant_id, warehouse_id, product_id = stocked
        response = client.get(f'/api/stock/product/{product_id}?tenantId={tenant_id}&warehouseId={warehouse_id}')
        assert response.status_code == 200
        assert len(response.get_json()) == 1

    def test_stock_value(self, client, stocked):
        response = client.get(f'/api/stock/value?tenantId={stocked[0]}')
        assert response.status_code == 200
        assert Decimal(response.get_json()['totalStockValue']) == Decimal('700')

    def test_list_movements(self, client, stocked):
        tenant_id, _, product_id = stocked
        response = client.get(f'/api/stock-movements?tenantId={tenant_id}&productId={product_id}')

        movements = response.get_json()
        assert [m['type'] for m in movements] == ['exit', 'entry']
        assert movements[0]['unitCost'] is None

        limited = client.get(f'/api/stock-movements?tenantId={tenant_id}&limit=1').get_json()
        assert len(limited) == 1

    def test_invalid_limit(self, client, stocked):
        response = client.get(f'/api/stock-movements?tenantId={stocked[0]}&limit=abc')
        assert response.status_code == 400

    def test_get_movement(self, client, stocked):
        tenant_id = stocked[0]
        movement_id = client.get(f'/api/stock-movements?tenantId={tenant_id}').get_json()[0]['id']

        response = client.get(f'/api/stock-movements/{movement_id}?tenantId={tenant_id}')
        assert response.status_code == 200
        assert response.get_json()['id'] == movement_id

        assert client.get(f'/api/stock-movements/missing?tenantId={tenant_id}').status_code == 404

    def test_metrics_exposed(self, client, stocked):
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'stock_movements_recorded_total' in response.data
