"""
Concurrency tests: parallel movements on one position must not lose updates.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

from app.database import get_session
from app.models import StockMovement
from app.services.stock_service import get_position_ledger, record_movement, verify_positions
from tests.factories import get_position, make_product

WORKERS = 16


def _run_in_parallel(app, jobs):
    """Run each job in its own thread (own scoped session), released together."""
    barrier = Barrier(len(jobs))

    def run(job):
        db_session = get_session()
        try:
            with app.app_context():
                barrier.wait()
                return job(db_session)
        finally:
            db_session.remove()

    with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
        futures = [pool.submit(run, job) for job in jobs]
        return [future.result() for future in futures]


class TestConcurrentMovements:
    """Row locking serializes writers of the same position."""

    def test_parallel_entries_on_absent_position(self, app, session, stock_key):
        """Every thread races to create the position; all increments survive."""
        tenant_id, warehouse_id, product_id = stock_key

        def entry(db_session):
            movement = record_movement(db_session, tenant_id, warehouse_id, product_id, 'entry', 1, '2.00')
            return movement.sequence

        sequences = _run_in_parallel(app, [entry] * WORKERS)

        assert sorted(sequences) == list(range(1, WORKERS + 1))
        position = get_position(session, warehouse_id, product_id)
        assert position.quantity == Decimal(WORKERS)
        assert position.average_cost == Decimal('2')
        assert position.version == WORKERS
        assert session.query(StockMovement).count() == WORKERS

    def test_mixed_entries_and_exits(self, app, session, stock_key):
        tenant_id, warehouse_id, product_id = stock_key
        record_movement(session, tenant_id, warehouse_id, product_id, 'entry', 100, '10.00',
                        evaluate_alerts=False)
        session.remove()

        def entry(db_session):
            record_movement(db_session, tenant_id, warehouse_id, product_id, 'entry', 10, '10.00')

        def exit_(db_session):
            record_movement(db_session, tenant_id, warehouse_id, product_id, 'exit', 5)

        _run_in_parallel(app, [entry, exit_] * (WORKERS // 2))

        position = get_position(session, warehouse_id, product_id)
        assert position.quantity == Decimal(100 + (10 - 5) * (WORKERS // 2))
        assert position.average_cost == Decimal('10')
        assert len(get_position_ledger(session, warehouse_id, product_id)) == WORKERS + 1
        assert verify_positions(session, tenant_id) == []

    def test_no_oversell_when_negative_disallowed(self, app, session, stock_key):
        """Ten units, sixteen one-unit exits: exactly ten succeed."""
        tenant_id, warehouse_id, product_id = stock_key
        record_movement(session, tenant_id, warehouse_id, product_id, 'entry', 10, '1.00',
                        evaluate_alerts=False)
        session.remove()

        def exit_(db_session):
            try:
                record_movement(db_session, tenant_id, warehouse_id, product_id, 'exit', 1,
                                allow_negative=False)
                return True
            except Exception as e:
                return type(e).__name__

        results = _run_in_parallel(app, [exit_] * WORKERS)

        assert results.count(True) == 10
        assert results.count('InsufficientStockError') == WORKERS - 10
        assert get_position(session, warehouse_id, product_id).quantity == Decimal('0')

    def test_different_products_do_not_interfere(self, app, session, tenant_id, warehouse_id, product_id):
        other_id = make_product(session, tenant_id, sku='SKU-002', name='Gadget')

        def entry_for(pid):
            def entry(db_session):
                record_movement(db_session, tenant_id, warehouse_id, pid, 'entry', 1, '1.00')
            return entry

        _run_in_parallel(app, [entry_for(product_id), entry_for(other_id)] * (WORKERS // 2))

        assert get_position(session, warehouse_id, product_id).quantity == Decimal(WORKERS // 2)
        assert get_position(session, warehouse_id, other_id).quantity == Decimal(WORKERS // 2)
