"""Product model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import generate_id


class Product(Base):
    """Product model."""
    
    __tablename__ = 'products'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'sku', name='uq_product_tenant_sku'),
    )
    
    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False)
    sku = Column(String, nullable=False)
    barcode = Column(String, nullable=True)
    name = Column(String, nullable=False)
    unit = Column(String(20), nullable=False, default='piece')  # piece, kg, L, carton...
    purchase_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False, default=0)
    # Alert thresholds
    min_stock = Column(Integer, nullable=False, default=0)
    max_stock = Column(Integer, nullable=False, default=1000)
    reorder_point = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    is_service = Column(Boolean, nullable=False, default=False)
    
    # Relationships
    tenant = relationship('Tenant')
    positions = relationship('StockPosition', back_populates='product')
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"
