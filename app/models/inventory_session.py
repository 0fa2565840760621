"""Inventory session and count models (physical stock counts)."""
import enum
from sqlalchemy import Column, String, Numeric, Text, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import generate_id
from app.models.stock_movement import utcnow, _enum_values


class InventorySessionStatus(enum.Enum):
    """Inventory session status."""
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class InventoryCountStatus(enum.Enum):
    """Inventory count line status."""
    PENDING = 'pending'
    COUNTED = 'counted'
    VERIFIED = 'verified'


class InventorySession(Base):
    """Physical count of one warehouse."""
    
    __tablename__ = 'inventory_sessions'
    
    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False)
    warehouse_id = Column(String(36), ForeignKey('warehouses.id'), nullable=False)
    name = Column(String, nullable=False)
    status = Column(Enum(InventorySessionStatus, name='inventory_session_status', values_callable=_enum_values),
                    nullable=False, default=InventorySessionStatus.IN_PROGRESS)
    start_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    
    # Relationships
    warehouse = relationship('Warehouse')
    counts = relationship('InventoryCount', back_populates='session', cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<InventorySession(id={self.id}, name='{self.name}', status={self.status.value})>"


class InventoryCount(Base):
    """Counted quantity of one product within an inventory session."""
    
    __tablename__ = 'inventory_counts'
    __table_args__ = (
        UniqueConstraint('session_id', 'product_id', name='uq_inventory_count_session_product'),
    )
    
    id = Column(String(36), primary_key=True, default=generate_id)
    session_id = Column(String(36), ForeignKey('inventory_sessions.id'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    expected_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    counted_quantity = Column(Numeric(12, 3), nullable=True)
    variance = Column(Numeric(12, 3), nullable=True)
    status = Column(Enum(InventoryCountStatus, name='inventory_count_status', values_callable=_enum_values),
                    nullable=False, default=InventoryCountStatus.PENDING)
    counted_by = Column(String(36), nullable=True)
    counted_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    # Adjustment movement produced when the session was completed
    movement_id = Column(String(36), ForeignKey('stock_movements.id'), nullable=True)
    
    # Relationships
    session = relationship('InventorySession', back_populates='counts')
    product = relationship('Product')
    
    def __repr__(self):
        return f"<InventoryCount(product_id={self.product_id}, counted={self.counted_quantity})>"
