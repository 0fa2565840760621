"""Stock blueprint - JSON API for positions, ledger, alerts and counts (tenant-scoped)."""
import logging

from flask import Blueprint, current_app, jsonify, request
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.database import get_session
from app.exceptions import StockLockTimeoutError, ValidationError
from app.services import alert_service, inventory_service, stock_service
from app.services.cache_service import get_cache
from app.utils.serializers import (
    alert_to_dict, count_to_dict, dec, inventory_session_to_dict, movement_to_dict, position_to_dict
)

logger = logging.getLogger(__name__)

stock_bp = Blueprint('stock', __name__, url_prefix='/api')


def _tenant_id_from(source) -> str:
    tenant_id = str(source.get('tenantId') or '').strip()
    if not tenant_id:
        raise ValidationError('tenantId is required', field='tenantId')
    return tenant_id


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _limit_arg():
    raw = request.args.get('limit', '').strip()
    if not raw:
        return None
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError('limit must be an integer', field='limit')
    if limit <= 0:
        raise ValidationError('limit must be greater than 0', field='limit')
    return min(limit, 1000)


def _log_retry(retry_state):
    logger.warning(
        f"Stock position busy, retrying movement (attempt {retry_state.attempt_number})"
    )


def record_movement_with_retry(db_session, **kwargs):
    """
    Record a movement, retrying with exponential backoff while the position lock times out.

    Retrying is safe: each attempt re-reads the current position under the lock.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(1, current_app.config.get('STOCK_MOVEMENT_RETRIES', 3))),
        wait=wait_exponential(multiplier=0.05, max=1),
        retry=retry_if_exception_type(StockLockTimeoutError),
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(stock_service.record_movement, db_session, **kwargs)


# =====================================================
# STOCK POSITIONS
# =====================================================

@stock_bp.route('/stock', methods=['GET'])
def list_stock():
    """List stock positions (cached per tenant/warehouse)."""
    tenant_id = _tenant_id_from(request.args)
    warehouse_id = request.args.get('warehouseId') or None
    db_session = get_session()

    def load():
        return [position_to_dict(p) for p in stock_service.get_stock(db_session, tenant_id, warehouse_id)]

    items = get_cache().memoize(tenant_id, 'stock', f"list:{warehouse_id or 'all'}", load)
    return jsonify(items)


@stock_bp.route('/stock/product/<product_id>', methods=['GET'])
def stock_by_product(product_id):
    tenant_id = _tenant_id_from(request.args)
    warehouse_id = request.args.get('warehouseId') or None
    positions = stock_service.get_stock_by_product(get_session(), tenant_id, product_id, warehouse_id)
    return jsonify([position_to_dict(p) for p in positions])


@stock_bp.route('/stock/value', methods=['GET'])
def stock_value():
    tenant_id = _tenant_id_from(request.args)
    warehouse_id = request.args.get('warehouseId') or None
    total = stock_service.get_stock_value(get_session(), tenant_id, warehouse_id)
    return jsonify({'tenantId': tenant_id, 'warehouseId': warehouse_id, 'totalStockValue': dec(total)})


# =====================================================
# STOCK MOVEMENTS
# =====================================================

@stock_bp.route('/stock-movements', methods=['GET'])
def list_stock_movements():
    tenant_id = _tenant_id_from(request.args)
    movements = stock_service.get_stock_movements(
        get_session(),
        tenant_id,
        warehouse_id=request.args.get('warehouseId') or None,
        product_id=request.args.get('productId') or None,
        limit=_limit_arg(),
    )
    return jsonify([movement_to_dict(m) for m in movements])


@stock_bp.route('/stock-movements/<movement_id>', methods=['GET'])
def get_stock_movement(movement_id):
    tenant_id = _tenant_id_from(request.args)
    movement = stock_service.get_stock_movement(get_session(), tenant_id, movement_id)
    return jsonify(movement_to_dict(movement))


@stock_bp.route('/stock-movements', methods=['POST'])
def create_stock_movement():
    """Record a stock movement and update the position atomically."""
    kwargs = stock_service.movement_kwargs_from_payload(_json_body())
    movement = record_movement_with_retry(get_session(), **kwargs)
    return jsonify(movement_to_dict(movement)), 201


# =====================================================
# STOCK ALERTS
# =====================================================

@stock_bp.route('/stock-alerts', methods=['GET'])
def list_stock_alerts():
    tenant_id = _tenant_id_from(request.args)
    alerts = alert_service.get_stock_alerts(get_session(), tenant_id, request.args.get('warehouseId') or None)
    return jsonify([alert_to_dict(a) for a in alerts])


@stock_bp.route('/stock-alerts/<alert_id>/read', methods=['POST'])
def read_stock_alert(alert_id):
    tenant_id = _tenant_id_from(request.args)
    alert = alert_service.mark_alert_read(get_session(), tenant_id, alert_id)
    return jsonify(alert_to_dict(alert))


@stock_bp.route('/stock-alerts/<alert_id>/dismiss', methods=['POST'])
def dismiss_stock_alert(alert_id):
    tenant_id = _tenant_id_from(request.args)
    alert_service.dismiss_stock_alert(get_session(), tenant_id, alert_id)
    return '', 204


# =====================================================
# INVENTORY COUNTS
# =====================================================

@stock_bp.route('/inventory-sessions', methods=['GET'])
def list_inventory_sessions():
    tenant_id = _tenant_id_from(request.args)
    sessions = inventory_service.get_inventory_sessions(
        get_session(), tenant_id, request.args.get('warehouseId') or None
    )
    return jsonify([inventory_session_to_dict(s) for s in sessions])


@stock_bp.route('/inventory-sessions', methods=['POST'])
def create_inventory_session():
    payload = _json_body()
    inventory = inventory_service.start_inventory_session(
        get_session(),
        tenant_id=_tenant_id_from(payload),
        warehouse_id=payload.get('warehouseId'),
        name=payload.get('name'),
        notes=payload.get('notes'),
        user_id=payload.get('userId'),
    )
    return jsonify(inventory_session_to_dict(inventory)), 201


@stock_bp.route('/inventory-sessions/<session_id>', methods=['GET'])
def get_inventory_session(session_id):
    tenant_id = _tenant_id_from(request.args)
    inventory = inventory_service.get_inventory_session(get_session(), tenant_id, session_id)
    return jsonify(inventory_session_to_dict(inventory))


@stock_bp.route('/inventory-sessions/<session_id>/counts', methods=['POST'])
def record_inventory_count(session_id):
    payload = _json_body()
    count = inventory_service.record_count(
        get_session(),
        tenant_id=_tenant_id_from(payload),
        session_id=session_id,
        product_id=payload.get('productId'),
        counted_quantity=payload.get('countedQuantity'),
        user_id=payload.get('userId'),
        notes=payload.get('notes'),
    )
    return jsonify(count_to_dict(count)), 201


@stock_bp.route('/inventory-sessions/<session_id>/complete', methods=['POST'])
def complete_inventory_session(session_id):
    payload = _json_body()
    inventory = inventory_service.complete_inventory_session(
        get_session(), _tenant_id_from(payload), session_id, user_id=payload.get('userId')
    )
    return jsonify(inventory_session_to_dict(inventory))


@stock_bp.route('/inventory-sessions/<session_id>/cancel', methods=['POST'])
def cancel_inventory_session(session_id):
    payload = _json_body()
    inventory = inventory_service.cancel_inventory_session(get_session(), _tenant_id_from(payload), session_id)
    return jsonify(inventory_session_to_dict(inventory))
