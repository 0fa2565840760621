"""Models package - exports all SQLAlchemy models."""
# Reference entities
from app.models.tenant import Tenant, generate_id
from app.models.warehouse import Warehouse
from app.models.product import Product

# Stock ledger
from app.models.stock_position import StockPosition
from app.models.stock_movement import StockMovement, MovementType, MovementReason
from app.models.stock_alert import StockAlert, AlertType, AlertSeverity
from app.models.inventory_session import (
    InventorySession, InventoryCount, InventorySessionStatus, InventoryCountStatus
)

__all__ = [
    'Tenant', 'Warehouse', 'Product', 'generate_id',
    'StockPosition', 'StockMovement', 'MovementType', 'MovementReason',
    'StockAlert', 'AlertType', 'AlertSeverity',
    'InventorySession', 'InventoryCount', 'InventorySessionStatus', 'InventoryCountStatus',
]
