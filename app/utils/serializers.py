"""
JSON serializers for stock ledger resources.
Field names follow the public API (camelCase); decimals are strings.
"""
from decimal import Decimal
from datetime import date, datetime
from typing import Any, Dict, Optional, Union


def dec(value: Union[Decimal, int, float, str, None]) -> Optional[str]:
    """Render a decimal without float noise; None stays None."""
    if value is None:
        return None
    return str(Decimal(str(value)))


def iso(value: Union[date, datetime, None]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def position_to_dict(position) -> Dict[str, Any]:
    return {
        'id': position.id,
        'tenantId': position.tenant_id,
        'warehouseId': position.warehouse_id,
        'productId': position.product_id,
        'quantity': dec(position.quantity),
        'reservedQuantity': dec(position.reserved_quantity),
        'availableQuantity': dec(position.available_quantity),
        'averageCost': dec(position.average_cost),
        'stockValue': dec(position.stock_value),
        'lastMovementDate': iso(position.last_movement_date),
        'version': position.version,
    }


def movement_to_dict(movement) -> Dict[str, Any]:
    return {
        'id': movement.id,
        'tenantId': movement.tenant_id,
        'warehouseId': movement.warehouse_id,
        'productId': movement.product_id,
        'type': movement.type.value,
        'reason': movement.reason.value if movement.reason else None,
        'quantity': dec(movement.quantity),
        'unitCost': dec(movement.unit_cost),
        'totalCost': dec(movement.total_cost),
        'referenceType': movement.reference_type,
        'referenceId': movement.reference_id,
        'notes': movement.notes,
        'createdBy': movement.created_by,
        'sequence': movement.sequence,
        'createdAt': iso(movement.created_at),
    }


def alert_to_dict(alert) -> Dict[str, Any]:
    return {
        'id': alert.id,
        'tenantId': alert.tenant_id,
        'warehouseId': alert.warehouse_id,
        'productId': alert.product_id,
        'alertType': alert.alert_type.value,
        'severity': alert.severity.value,
        'message': alert.message,
        'isRead': alert.is_read,
        'isDismissed': alert.is_dismissed,
        'createdAt': iso(alert.created_at),
    }


def count_to_dict(count) -> Dict[str, Any]:
    return {
        'id': count.id,
        'sessionId': count.session_id,
        'productId': count.product_id,
        'expectedQuantity': dec(count.expected_quantity),
        'countedQuantity': dec(count.counted_quantity),
        'variance': dec(count.variance),
        'status': count.status.value,
        'countedBy': count.counted_by,
        'countedAt': iso(count.counted_at),
        'movementId': count.movement_id,
    }


def inventory_session_to_dict(inventory) -> Dict[str, Any]:
    return {
        'id': inventory.id,
        'tenantId': inventory.tenant_id,
        'warehouseId': inventory.warehouse_id,
        'name': inventory.name,
        'status': inventory.status.value,
        'startDate': iso(inventory.start_date),
        'endDate': iso(inventory.end_date),
        'notes': inventory.notes,
        'createdBy': inventory.created_by,
        'counts': [count_to_dict(count) for count in inventory.counts],
    }
