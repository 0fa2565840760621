"""
Integration tests for the maintenance CLI commands.
"""

from decimal import Decimal

from app.services.stock_service import record_movement
from tests.factories import get_position


class TestVerifyStock:
    """flask verify-stock"""

    def test_clean_ledger(self, app, session, stock_key):
        tenant_id, warehouse_id, product_id = stock_key
        record_movement(session, tenant_id, warehouse_id, product_id, 'entry', 10, '2.00',
                        evaluate_alerts=False)
        session.remove()

        result = app.test_cli_runner().invoke(args=['verify-stock', '--tenant-id', tenant_id])

        assert result.exit_code == 0
        assert 'All stock positions match the ledger' in result.output

    def test_drift_reported(self, app, session, stock_key):
        tenant_id, warehouse_id, product_id = stock_key
        record_movement(session, tenant_id, warehouse_id, product_id, 'entry', 10, '2.00',
                        evaluate_alerts=False)
        position = get_position(session, warehouse_id, product_id)
        position.quantity = Decimal('12')
        session.commit()
        session.remove()

        result = app.test_cli_runner().invoke(args=['verify-stock', '--tenant-id', tenant_id])

        assert result.exit_code == 1
        assert '1 stock position(s) drifted' in result.output
        assert product_id in result.output


class TestInitDb:
    """flask init-db"""

    def test_creates_tables(self, app, session):
        result = app.test_cli_runner().invoke(args=['init-db'])
        assert result.exit_code == 0
        assert 'Tables created' in result.output
