"""Stock movement model (append-only ledger)."""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text, Enum, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import generate_id


class MovementType(enum.Enum):
    """Stock movement type. Direction is carried here, never by the quantity sign."""
    ENTRY = 'entry'
    EXIT = 'exit'
    TRANSFER_IN = 'transfer_in'
    TRANSFER_OUT = 'transfer_out'
    ADJUSTMENT = 'adjustment'
    RETURN = 'return'


class MovementReason(enum.Enum):
    """Business reason attached to a movement (descriptive only)."""
    PURCHASE = 'purchase'
    SALE = 'sale'
    RETURN_CLIENT = 'return_client'
    RETURN_SUPPLIER = 'return_supplier'
    LOSS = 'loss'
    DAMAGE = 'damage'
    SAMPLE = 'sample'
    GIFT = 'gift'
    INVENTORY_ADJUSTMENT = 'inventory_adjustment'


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def utcnow():
    return datetime.now(timezone.utc)


class StockMovement(Base):
    """
    Stock movement ledger entry.

    Rows are inserted by the movement recorder and never updated or deleted.
    `sequence` is the version of the stock position right after this movement,
    so ordering by it replays a position exactly.
    """
    
    __tablename__ = 'stock_movements'
    __table_args__ = (
        UniqueConstraint('warehouse_id', 'product_id', 'sequence', name='uq_stock_movement_sequence'),
        Index('ix_stock_movements_tenant_created', 'tenant_id', 'created_at'),
    )
    
    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False)
    warehouse_id = Column(String(36), ForeignKey('warehouses.id'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    type = Column(Enum(MovementType, name='stock_movement_type', values_callable=_enum_values), nullable=False)
    reason = Column(Enum(MovementReason, name='stock_movement_reason', values_callable=_enum_values), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_cost = Column(Numeric(12, 2), nullable=True)
    total_cost = Column(Numeric(14, 2), nullable=True)
    reference_type = Column(String(40), nullable=True)  # purchase_order, sale, transfer, adjustment
    reference_id = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    sequence = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    
    # Relationships
    warehouse = relationship('Warehouse')
    product = relationship('Product')
    
    def __repr__(self):
        return f"<StockMovement(id={self.id}, type={self.type.value}, quantity={self.quantity})>"
