"""
Integration tests for physical inventory counts.
"""

from decimal import Decimal

import pytest

from app.exceptions import BusinessLogicError, NotFoundError, ValidationError
from app.models import (
    InventoryCountStatus, InventorySessionStatus, MovementReason, MovementType, StockMovement
)
from app.services.inventory_service import (
    cancel_inventory_session, complete_inventory_session, get_inventory_session,
    record_count, start_inventory_session
)
from app.services.stock_service import record_movement, verify_positions
from tests.factories import get_position, make_product


@pytest.fixture
def stocked(session, stock_key):
    """100 units @ 10 on hand."""
    tenant_id, warehouse_id, product_id = stock_key
    record_movement(session, tenant_id, warehouse_id, product_id, 'entry', 100, '10.00',
                    evaluate_alerts=False)
    return stock_key


class TestInventoryCount:
    """Counting and reconciling a warehouse."""

    def test_count_records_variance(self, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Year end')

        count = record_count(session, tenant_id, inventory.id, product_id, '95', user_id='u-1')

        assert count.expected_quantity == Decimal('100')
        assert count.counted_quantity == Decimal('95')
        assert count.variance == Decimal('-5')
        assert count.status is InventoryCountStatus.COUNTED

    def test_recount_replaces_line(self, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Cycle count')
        record_count(session, tenant_id, inventory.id, product_id, '95')
        record_count(session, tenant_id, inventory.id, product_id, '97')

        inventory = get_inventory_session(session, tenant_id, inventory.id)
        assert len(inventory.counts) == 1
        assert inventory.counts[0].variance == Decimal('-3')

    def test_complete_posts_adjustments(self, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        unchanged_id = make_product(session, tenant_id, sku='SKU-002', name='Gadget')
        record_movement(session, tenant_id, warehouse_id, unchanged_id, 'entry', 20, '3.00',
                        evaluate_alerts=False)

        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Year end')
        session_id = inventory.id
        record_count(session, tenant_id, session_id, product_id, '95')
        record_count(session, tenant_id, session_id, unchanged_id, '20')

        inventory = complete_inventory_session(session, tenant_id, session_id, user_id='u-9')
        assert inventory.status is InventorySessionStatus.COMPLETED
        assert inventory.end_date is not None

        position = get_position(session, warehouse_id, product_id)
        assert position.quantity == Decimal('95')
        assert position.average_cost == Decimal('10')

        adjustments = session.query(StockMovement).filter_by(type=MovementType.ADJUSTMENT).all()
        assert len(adjustments) == 1
        adjustment = adjustments[0]
        assert adjustment.reason is MovementReason.INVENTORY_ADJUSTMENT
        assert adjustment.reference_type == 'inventory_session'
        assert adjustment.reference_id == session_id
        assert adjustment.created_by == 'u-9'

        lines = {count.product_id: count for count in inventory.counts}
        assert lines[product_id].status is InventoryCountStatus.VERIFIED
        assert lines[product_id].movement_id == adjustment.id
        assert lines[unchanged_id].status is InventoryCountStatus.VERIFIED
        assert lines[unchanged_id].movement_id is None

        assert verify_positions(session, tenant_id) == []

    def test_stock_moved_after_count_is_reconciled(self, session, stocked):
        """A line that matched when counted is still adjusted if stock moved before completion."""
        tenant_id, warehouse_id, product_id = stocked
        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Shelf A')
        session_id = inventory.id
        count = record_count(session, tenant_id, session_id, product_id, '100')
        assert count.variance == Decimal('0')

        record_movement(session, tenant_id, warehouse_id, product_id, 'exit', 5, evaluate_alerts=False)
        inventory = complete_inventory_session(session, tenant_id, session_id)

        assert get_position(session, warehouse_id, product_id).quantity == Decimal('100')
        line = inventory.counts[0]
        assert line.expected_quantity == Decimal('95')
        assert line.variance == Decimal('5')
        assert line.movement_id is not None
        assert verify_positions(session, tenant_id) == []

    def test_count_of_empty_location_adjusts_to_zero(self, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Spot check')
        record_count(session, tenant_id, inventory.id, product_id, '0')
        complete_inventory_session(session, tenant_id, inventory.id)

        assert get_position(session, warehouse_id, product_id).quantity == Decimal('0')

    def test_closed_session_rejects_counts(self, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Aborted')
        cancel_inventory_session(session, tenant_id, inventory.id)

        with pytest.raises(BusinessLogicError):
            record_count(session, tenant_id, inventory.id, product_id, '1')
        with pytest.raises(BusinessLogicError):
            complete_inventory_session(session, tenant_id, inventory.id)

    def test_validation(self, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        with pytest.raises(ValidationError):
            start_inventory_session(session, tenant_id, warehouse_id, '  ')
        with pytest.raises(NotFoundError):
            start_inventory_session(session, tenant_id, 'missing', 'Count')

        inventory = start_inventory_session(session, tenant_id, warehouse_id, 'Count')
        with pytest.raises(ValidationError):
            record_count(session, tenant_id, inventory.id, product_id, '-1')
        with pytest.raises(NotFoundError):
            record_count(session, tenant_id, inventory.id, 'missing', '1')


class TestInventoryApi:
    """Inventory sessions over HTTP."""

    def test_full_flow(self, client, session, stocked):
        tenant_id, warehouse_id, product_id = stocked
        session.remove()

        created = client.post('/api/inventory-sessions', json={
            'tenantId': tenant_id, 'warehouseId': warehouse_id, 'name': 'Monthly'
        })
        assert created.status_code == 201
        session_id = created.get_json()['id']
        assert created.get_json()['status'] == 'in_progress'

        counted = client.post(f'/api/inventory-sessions/{session_id}/counts', json={
            'tenantId': tenant_id, 'productId': product_id, 'countedQuantity': '102'
        })
        assert counted.status_code == 201
        assert Decimal(counted.get_json()['variance']) == Decimal('2')

        completed = client.post(f'/api/inventory-sessions/{session_id}/complete', json={'tenantId': tenant_id})
        assert completed.status_code == 200
        body = completed.get_json()
        assert body['status'] == 'completed'
        assert body['counts'][0]['status'] == 'verified'
        assert body['counts'][0]['movementId'] is not None

        listed = client.get(f'/api/inventory-sessions?tenantId={tenant_id}').get_json()
        assert [s['id'] for s in listed] == [session_id]
        assert client.get(f'/api/inventory-sessions/{session_id}?tenantId={tenant_id}').status_code == 200

    def test_cancel(self, client, session, stocked):
        tenant_id, warehouse_id, _ = stocked
        session.remove()
        session_id = client.post('/api/inventory-sessions', json={
            'tenantId': tenant_id, 'warehouseId': warehouse_id, 'name': 'Mistake'
        }).get_json()['id']

        cancelled = client.post(f'/api/inventory-sessions/{session_id}/cancel', json={'tenantId': tenant_id})
        assert cancelled.get_json()['status'] == 'cancelled'

        again = client.post(f'/api/inventory-sessions/{session_id}/cancel', json={'tenantId': tenant_id})
        assert again.status_code == 400
