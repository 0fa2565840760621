"""Stock position model (current quantity and average cost per warehouse/product)."""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import generate_id


class StockPosition(Base):
    """
    Mutable projection of the stock ledger, one row per (warehouse, product).

    Only the movement recorder writes quantity, average_cost and version;
    reserved_quantity belongs to order allocation and is left untouched.
    """
    
    __tablename__ = 'stock'
    __table_args__ = (
        UniqueConstraint('warehouse_id', 'product_id', name='uq_stock_warehouse_product'),
    )
    
    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False)
    warehouse_id = Column(String(36), ForeignKey('warehouses.id'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=0)
    reserved_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    average_cost = Column(Numeric(14, 4), nullable=False, default=0)
    last_movement_date = Column(DateTime(timezone=True), nullable=True)
    # Number of movements applied; the ledger sequence of the latest one
    version = Column(Integer, nullable=False, default=0)
    
    # Relationships
    warehouse = relationship('Warehouse')
    product = relationship('Product', back_populates='positions')
    
    def __repr__(self):
        return (
            f"<StockPosition(warehouse_id={self.warehouse_id}, product_id={self.product_id}, "
            f"quantity={self.quantity}, average_cost={self.average_cost})>"
        )
    
    @property
    def available_quantity(self):
        """On-hand quantity not allocated to open orders."""
        return (self.quantity or 0) - (self.reserved_quantity or 0)
    
    @property
    def stock_value(self):
        """Valuation of on-hand units at the running average cost."""
        return (self.quantity or 0) * (self.average_cost or 0)
