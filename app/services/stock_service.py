"""
Stock service - Multi-Tenant stock ledger.

record_movement() is the only writer of the stock table. It appends the
ledger row and moves the (warehouse, product) position forward inside one
transaction, holding the position row lock until commit so concurrent
movements on the same key are applied one after another.
"""
import decimal
import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError

from app.blueprints.metrics import (
    stock_movement_duration_seconds, stock_movement_failures_total, stock_movements_recorded_total
)
from app.exceptions import (
    SaasError, ValidationError, NotFoundError, BusinessLogicError,
    InsufficientStockError, StockLockTimeoutError
)
from app.models import (
    Product, Warehouse, StockPosition, StockMovement, MovementType, MovementReason, generate_id
)
from app.services.valuation import OUTBOUND_TYPES, apply_movement, replay, resolve_position

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'STOCK_ALLOW_NEGATIVE': True,
    'STOCK_LOCK_TIMEOUT_MS': 5000,
    'STOCK_ALERTS_ENABLED': True,
    'STOCK_MOVEMENTS_PAGE_LIMIT': 100,
}


def stock_setting(name: str):
    """Read a stock setting from the app config, falling back to defaults outside Flask."""
    if has_app_context():
        return current_app.config.get(name, _DEFAULTS[name])
    return _DEFAULTS[name]


# =====================================================
# VALIDATION
# =====================================================

def _decimal_shape(number: Decimal):
    """(integer digits, decimal places) of a finite decimal, trailing fraction zeros ignored."""
    _, digits, exponent = number.as_tuple()
    if not any(digits):
        return 0, 0
    while exponent < 0 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    return max(len(digits) + exponent, 0), max(-exponent, 0)


def parse_decimal(value: Any, field: str, max_places: int, max_digits: int = 12) -> Decimal:
    """
    Parse a request decimal that must fit a Numeric(max_digits, max_places) column.

    Never rounds: too many places or integer digits is a ValidationError.
    """
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'{field} is required', field=field)
    try:
        number = Decimal(str(value).strip())
    except (TypeError, ValueError, decimal.InvalidOperation):
        raise ValidationError(f'{field} must be a decimal number', field=field)
    if not number.is_finite():
        raise ValidationError(f'{field} must be a finite number', field=field)

    integer_digits, places = _decimal_shape(number)
    if places > max_places:
        raise ValidationError(f'{field} accepts at most {max_places} decimal places', field=field)
    if integer_digits > max_digits - max_places:
        raise ValidationError(
            f'{field} accepts at most {max_digits - max_places} integer digits', field=field
        )
    return number


def _parse_enum(enum_cls, value: Any, field: str, required: bool = True):
    if isinstance(value, enum_cls):
        return value
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required', field=field)
        return None
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError(f'Invalid {field} "{value}". Expected one of: {allowed}', field=field)


def _require_id(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f'{field} is required', field=field)
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text_value = str(value).strip()
    return text_value or None


def validate_movement(tenant_id, warehouse_id, product_id, movement_type, quantity,
                      unit_cost=None, reason=None, reference_type=None, reference_id=None,
                      notes=None, user_id=None) -> Dict[str, Any]:
    """
    Normalize and validate a movement request.

    Raises ValidationError before any database work. Quantity must be
    positive; an adjustment may be zero (count of an empty location).
    """
    data = {
        'tenant_id': _require_id(tenant_id, 'tenantId'),
        'warehouse_id': _require_id(warehouse_id, 'warehouseId'),
        'product_id': _require_id(product_id, 'productId'),
        'type': _parse_enum(MovementType, movement_type, 'type'),
        'reason': _parse_enum(MovementReason, reason, 'reason', required=False),
        'reference_type': _optional_text(reference_type),
        'reference_id': _optional_text(reference_id),
        'notes': _optional_text(notes),
        'user_id': _optional_text(user_id),
    }

    qty = parse_decimal(quantity, 'quantity', 3, 12)
    if data['type'] is MovementType.ADJUSTMENT:
        if qty < 0:
            raise ValidationError('quantity cannot be negative', field='quantity')
    elif qty <= 0:
        raise ValidationError('quantity must be greater than 0', field='quantity')
    data['quantity'] = qty

    if unit_cost is None or unit_cost == '':
        data['unit_cost'] = None
    else:
        cost = parse_decimal(unit_cost, 'unitCost', 2, 12)
        if cost < 0:
            raise ValidationError('unitCost cannot be negative', field='unitCost')
        # stock_movements.total_cost is Numeric(14, 2)
        if _decimal_shape(qty * cost)[0] > 12:
            raise ValidationError('quantity x unitCost is too large', field='unitCost')
        data['unit_cost'] = cost

    return data


def movement_kwargs_from_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map a JSON payload (camelCase, original field names) to record_movement kwargs."""
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return {
        'tenant_id': payload.get('tenantId'),
        'warehouse_id': payload.get('warehouseId'),
        'product_id': payload.get('productId'),
        'movement_type': payload.get('type'),
        'quantity': payload.get('quantity'),
        'unit_cost': payload.get('unitCost'),
        'reason': payload.get('reason'),
        'reference_type': payload.get('referenceType'),
        'reference_id': payload.get('referenceId', payload.get('reference')),
        'notes': payload.get('notes'),
        'user_id': payload.get('userId', payload.get('createdBy')),
    }


# =====================================================
# MOVEMENT RECORDER
# =====================================================

def record_movement(session, tenant_id, warehouse_id, product_id, movement_type, quantity,
                    unit_cost=None, reason=None, reference_type=None, reference_id=None,
                    notes=None, user_id=None, allow_negative: Optional[bool] = None,
                    evaluate_alerts: Optional[bool] = None) -> StockMovement:
    """
    Record a stock movement and update the stock position atomically.

    Steps (one transaction):
    1. Validate the request (no transaction yet)
    2. Check warehouse and product belong to the tenant
    3. Lock the (warehouse, product) position row, creating it if absent
    4. Compute the new position with the valuation engine
    5. Insert the ledger row, then write the position
    6. Commit

    Any failure rolls the whole transaction back and re-raises; a lock wait
    that exceeds STOCK_LOCK_TIMEOUT_MS surfaces as StockLockTimeoutError.

    Returns:
        The committed StockMovement.
    """
    data = validate_movement(
        tenant_id, warehouse_id, product_id, movement_type, quantity,
        unit_cost=unit_cost, reason=reason, reference_type=reference_type,
        reference_id=reference_id, notes=notes, user_id=user_id,
    )
    if allow_negative is None:
        allow_negative = stock_setting('STOCK_ALLOW_NEGATIVE')
    if evaluate_alerts is None:
        evaluate_alerts = stock_setting('STOCK_ALERTS_ENABLED')

    started = time.perf_counter()
    try:
        _set_lock_timeout(session, stock_setting('STOCK_LOCK_TIMEOUT_MS'))
        product = _get_tenant_references(session, data)

        position = _lock_position(session, data)
        before = resolve_position(position)
        after = apply_movement(before, data['type'], data['quantity'], data['unit_cost'])

        if not allow_negative and data['type'] in OUTBOUND_TYPES and after.quantity < 0:
            raise InsufficientStockError(product.name, data['quantity'], before.quantity)

        movement = StockMovement(
            id=generate_id(),
            tenant_id=data['tenant_id'],
            warehouse_id=data['warehouse_id'],
            product_id=data['product_id'],
            type=data['type'],
            reason=data['reason'],
            quantity=data['quantity'],
            unit_cost=data['unit_cost'],
            total_cost=(data['quantity'] * data['unit_cost']).quantize(Decimal('0.01'))
            if data['unit_cost'] is not None else None,
            reference_type=data['reference_type'],
            reference_id=data['reference_id'],
            notes=data['notes'],
            created_by=data['user_id'],
            sequence=(position.version if position is not None else 0) + 1,
        )
        session.add(movement)
        session.flush()

        position = _write_position(session, position, data, after, movement)
        movement_id = movement.id
        session.commit()

    except SaasError as e:
        session.rollback()
        stock_movement_failures_total.labels(reason=type(e).__name__).inc()
        raise
    except OperationalError as e:
        session.rollback()
        if _is_lock_timeout(e):
            stock_movement_failures_total.labels(reason='lock_timeout').inc()
            logger.warning(
                f"Stock lock timeout on warehouse={data['warehouse_id']} product={data['product_id']}"
            )
            raise StockLockTimeoutError() from e
        stock_movement_failures_total.labels(reason='database').inc()
        raise
    except Exception:
        session.rollback()
        stock_movement_failures_total.labels(reason='database').inc()
        logger.exception(
            f"Stock movement rolled back (warehouse={data['warehouse_id']} product={data['product_id']})"
        )
        raise
    finally:
        stock_movement_duration_seconds.observe(time.perf_counter() - started)

    stock_movements_recorded_total.labels(type=data['type'].value).inc()
    logger.info(
        f"Stock movement {movement_id} {data['type'].value} qty={data['quantity']} "
        f"warehouse={data['warehouse_id']} product={data['product_id']} "
        f"-> qty={after.quantity} avg_cost={after.average_cost}"
    )

    _invalidate_stock_cache(data['tenant_id'])
    if evaluate_alerts:
        _trigger_alert(session, position, product)

    return movement


def _set_lock_timeout(session, lock_timeout_ms: int):
    """Bound the wait on the position lock (PostgreSQL only; SQLite uses its busy timeout)."""
    if session.get_bind().dialect.name == 'postgresql':
        from sqlalchemy import text
        session.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))


def _get_tenant_references(session, data: Dict[str, Any]) -> Product:
    """Check warehouse and product exist within the tenant; return the product."""
    warehouse = session.query(Warehouse).filter(
        Warehouse.id == data['warehouse_id'],
        Warehouse.tenant_id == data['tenant_id']
    ).first()
    if not warehouse:
        raise NotFoundError(f"Warehouse {data['warehouse_id']} not found")

    product = session.query(Product).filter(
        Product.id == data['product_id'],
        Product.tenant_id == data['tenant_id']
    ).first()
    if not product:
        raise NotFoundError(f"Product {data['product_id']} not found")
    if product.is_service:
        raise BusinessLogicError(f'"{product.name}" is a service and does not carry stock')
    return product


def _insert_position_if_absent(session, data: Dict[str, Any]):
    """
    Create the zero position row if missing, ignoring a concurrent insert.

    Without this two first-ever movements on a key would both see no row and
    collide on the unique (warehouse_id, product_id) constraint.
    """
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
    else:
        return

    stmt = insert(StockPosition.__table__).values(
        id=generate_id(),
        tenant_id=data['tenant_id'],
        warehouse_id=data['warehouse_id'],
        product_id=data['product_id'],
        quantity=0,
        reserved_quantity=0,
        average_cost=0,
        version=0,
    ).on_conflict_do_nothing(index_elements=['warehouse_id', 'product_id'])
    session.execute(stmt)


def _lock_position(session, data: Dict[str, Any]) -> Optional[StockPosition]:
    """Lock the position row FOR UPDATE and return it with fresh values (None if absent)."""
    _insert_position_if_absent(session, data)
    return (
        session.query(StockPosition)
        .filter(
            StockPosition.warehouse_id == data['warehouse_id'],
            StockPosition.product_id == data['product_id'],
            StockPosition.tenant_id == data['tenant_id'],
        )
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def _write_position(session, position: Optional[StockPosition], data: Dict[str, Any],
                    valuation, movement: StockMovement) -> StockPosition:
    """Persist the new quantity/cost on the locked row (or create it)."""
    if position is None:
        position = StockPosition(
            tenant_id=data['tenant_id'],
            warehouse_id=data['warehouse_id'],
            product_id=data['product_id'],
            reserved_quantity=Decimal('0'),
        )
        session.add(position)

    position.quantity = valuation.quantity
    position.average_cost = valuation.average_cost
    position.last_movement_date = movement.created_at
    position.version = movement.sequence
    session.flush()
    return position


def _is_lock_timeout(error: OperationalError) -> bool:
    orig = getattr(error, 'orig', None)
    if getattr(orig, 'pgcode', None) == '55P03':  # lock_not_available
        return True
    message = str(orig or error).lower()
    return 'lock timeout' in message or 'database is locked' in message


def _invalidate_stock_cache(tenant_id: str):
    """Drop cached stock listings for the tenant; the movement is already committed."""
    try:
        from app.services.cache_service import get_cache
        get_cache().invalidate_module(tenant_id, 'stock')
    except RuntimeError:
        # Cache not initialized (CLI, scripts)
        pass


def _trigger_alert(session, position: StockPosition, product: Product):
    """Evaluate thresholds after commit. Never fails the recorded movement."""
    from app.services.alert_service import raise_alert_for_position
    try:
        raise_alert_for_position(session, position, product)
    except Exception as e:
        session.rollback()
        logger.error(f"Stock alert evaluation failed for position {position.id}: {e}", exc_info=True)


# =====================================================
# QUERIES
# =====================================================

def get_stock(session, tenant_id: str, warehouse_id: Optional[str] = None) -> List[StockPosition]:
    """List stock positions for a tenant (optionally one warehouse)."""
    query = session.query(StockPosition).filter(StockPosition.tenant_id == tenant_id)
    if warehouse_id:
        query = query.filter(StockPosition.warehouse_id == warehouse_id)
    return query.order_by(StockPosition.warehouse_id, StockPosition.product_id).all()


def get_stock_by_product(session, tenant_id: str, product_id: str,
                         warehouse_id: Optional[str] = None) -> List[StockPosition]:
    """Positions of one product across the tenant's warehouses."""
    query = session.query(StockPosition).filter(
        StockPosition.tenant_id == tenant_id,
        StockPosition.product_id == product_id
    )
    if warehouse_id:
        query = query.filter(StockPosition.warehouse_id == warehouse_id)
    return query.all()


def get_stock_value(session, tenant_id: str, warehouse_id: Optional[str] = None) -> Decimal:
    """Total on-hand valuation: sum of quantity x average cost."""
    total = sum((position.stock_value for position in get_stock(session, tenant_id, warehouse_id)),
                Decimal('0'))
    return Decimal(total).quantize(Decimal('0.01'))


def get_stock_movements(session, tenant_id: str, warehouse_id: Optional[str] = None,
                        product_id: Optional[str] = None, limit: Optional[int] = None) -> List[StockMovement]:
    """Ledger entries for a tenant, newest first."""
    query = session.query(StockMovement).filter(StockMovement.tenant_id == tenant_id)
    if warehouse_id:
        query = query.filter(StockMovement.warehouse_id == warehouse_id)
    if product_id:
        query = query.filter(StockMovement.product_id == product_id)
    if limit is None:
        limit = stock_setting('STOCK_MOVEMENTS_PAGE_LIMIT')
    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.sequence.desc())
        .limit(limit)
        .all()
    )


def get_stock_movement(session, tenant_id: str, movement_id: str) -> StockMovement:
    """Fetch one ledger entry within the tenant."""
    movement = session.query(StockMovement).filter(
        StockMovement.id == movement_id,
        StockMovement.tenant_id == tenant_id
    ).first()
    if not movement:
        raise NotFoundError('Stock movement not found')
    return movement


def get_position_ledger(session, warehouse_id: str, product_id: str) -> List[StockMovement]:
    """All movements of one position in application order."""
    return (
        session.query(StockMovement)
        .filter(
            StockMovement.warehouse_id == warehouse_id,
            StockMovement.product_id == product_id
        )
        .order_by(StockMovement.sequence)
        .all()
    )


def verify_positions(session, tenant_id: str, warehouse_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Replay every position's ledger and report the ones that drifted.

    Returns a list of dicts (empty when the ledger and the stock table agree).
    """
    drifts = []
    for position in get_stock(session, tenant_id, warehouse_id):
        ledger = get_position_ledger(session, position.warehouse_id, position.product_id)
        expected = replay(ledger)
        stored = resolve_position(position)
        if (stored.quantity != expected.quantity
                or stored.average_cost != expected.average_cost
                or position.version != len(ledger)):
            drifts.append({
                'warehouse_id': position.warehouse_id,
                'product_id': position.product_id,
                'stored_quantity': stored.quantity,
                'expected_quantity': expected.quantity,
                'stored_average_cost': stored.average_cost,
                'expected_average_cost': expected.average_cost,
                'version': position.version,
                'movements': len(ledger),
            })
    return drifts
