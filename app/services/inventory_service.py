"""
Inventory count service - Multi-Tenant.
Physical counts per warehouse, reconciled into adjustment movements.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from app.exceptions import BusinessLogicError, NotFoundError, ValidationError
from app.models import (
    InventorySession, InventoryCount, InventorySessionStatus, InventoryCountStatus,
    MovementType, MovementReason, Product, StockPosition, Warehouse
)
from app.models.stock_movement import utcnow
from app.services.stock_service import parse_decimal, record_movement

logger = logging.getLogger(__name__)


def start_inventory_session(session, tenant_id: str, warehouse_id: str, name: str,
                            notes: Optional[str] = None, user_id: Optional[str] = None) -> InventorySession:
    """Open a count for one warehouse."""
    if not name or not str(name).strip():
        raise ValidationError('name is required', field='name')

    warehouse = session.query(Warehouse).filter(
        Warehouse.id == warehouse_id,
        Warehouse.tenant_id == tenant_id
    ).first()
    if not warehouse:
        raise NotFoundError(f'Warehouse {warehouse_id} not found')

    inventory = InventorySession(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        name=str(name).strip(),
        notes=notes,
        created_by=user_id
    )
    session.add(inventory)
    session.commit()
    return inventory


def get_inventory_session(session, tenant_id: str, session_id: str) -> InventorySession:
    inventory = session.query(InventorySession).filter(
        InventorySession.id == session_id,
        InventorySession.tenant_id == tenant_id
    ).first()
    if not inventory:
        raise NotFoundError('Inventory session not found')
    return inventory


def get_inventory_sessions(session, tenant_id: str, warehouse_id: Optional[str] = None) -> List[InventorySession]:
    query = session.query(InventorySession).filter(InventorySession.tenant_id == tenant_id)
    if warehouse_id:
        query = query.filter(InventorySession.warehouse_id == warehouse_id)
    return query.order_by(InventorySession.created_at.desc()).all()


def _require_open(inventory: InventorySession):
    if inventory.status is not InventorySessionStatus.IN_PROGRESS:
        raise BusinessLogicError(f'Inventory session is {inventory.status.value}')


def _current_quantity(session, warehouse_id: str, product_id: str) -> Decimal:
    position = session.query(StockPosition).filter(
        StockPosition.warehouse_id == warehouse_id,
        StockPosition.product_id == product_id
    ).first()
    return Decimal(str(position.quantity)) if position else Decimal('0')


def record_count(session, tenant_id: str, session_id: str, product_id: str, counted_quantity,
                 user_id: Optional[str] = None, notes: Optional[str] = None) -> InventoryCount:
    """
    Record (or re-record) the counted quantity of a product.

    The expected quantity is a snapshot of the stock position at count time.
    """
    inventory = get_inventory_session(session, tenant_id, session_id)
    _require_open(inventory)

    counted = parse_decimal(counted_quantity, 'countedQuantity', 3, 12)
    if counted < 0:
        raise ValidationError('countedQuantity cannot be negative', field='countedQuantity')

    product = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found')

    expected = _current_quantity(session, inventory.warehouse_id, product_id)

    count = session.query(InventoryCount).filter(
        InventoryCount.session_id == inventory.id,
        InventoryCount.product_id == product_id
    ).first()
    if not count:
        count = InventoryCount(session_id=inventory.id, product_id=product_id)
        session.add(count)

    count.expected_quantity = expected
    count.counted_quantity = counted
    count.variance = counted - expected
    count.status = InventoryCountStatus.COUNTED
    count.counted_by = user_id
    count.counted_at = utcnow()
    count.notes = notes
    session.commit()
    return count


def complete_inventory_session(session, tenant_id: str, session_id: str,
                               user_id: Optional[str] = None) -> InventorySession:
    """
    Close the count and bring every counted line to its counted quantity.

    Lines are compared with the position as it is now, not with the snapshot
    taken by record_count: stock that moved after counting still gets an
    adjustment, and expected_quantity/variance are updated to what was posted.
    Each adjustment goes through record_movement (its own transaction), so a
    failure leaves the session in progress with the already-posted lines
    verified; completing again only posts the remaining ones.
    """
    inventory = get_inventory_session(session, tenant_id, session_id)
    _require_open(inventory)

    counted_lines = [
        (count.id, count.product_id, Decimal(str(count.counted_quantity)))
        for count in inventory.counts
        if count.status is InventoryCountStatus.COUNTED
    ]
    warehouse_id = inventory.warehouse_id
    session_name = inventory.name

    for count_id, product_id, counted_quantity in counted_lines:
        current = _current_quantity(session, warehouse_id, product_id)
        movement_id = None
        if counted_quantity != current:
            movement = record_movement(
                session,
                tenant_id=tenant_id,
                warehouse_id=warehouse_id,
                product_id=product_id,
                movement_type=MovementType.ADJUSTMENT,
                quantity=counted_quantity,
                reason=MovementReason.INVENTORY_ADJUSTMENT,
                reference_type='inventory_session',
                reference_id=session_id,
                notes=f'Inventory count: {session_name}',
                user_id=user_id,
            )
            movement_id = movement.id

        count = session.query(InventoryCount).filter(InventoryCount.id == count_id).one()
        count.expected_quantity = current
        count.variance = counted_quantity - current
        count.status = InventoryCountStatus.VERIFIED
        count.movement_id = movement_id
        session.commit()

    inventory = get_inventory_session(session, tenant_id, session_id)
    inventory.status = InventorySessionStatus.COMPLETED
    inventory.end_date = utcnow()
    session.commit()
    logger.info(f"Inventory session {session_id} completed ({len(counted_lines)} counted lines)")
    return inventory


def cancel_inventory_session(session, tenant_id: str, session_id: str) -> InventorySession:
    inventory = get_inventory_session(session, tenant_id, session_id)
    _require_open(inventory)
    inventory.status = InventorySessionStatus.CANCELLED
    inventory.end_date = utcnow()
    session.commit()
    return inventory
