"""Warehouse model."""
from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import generate_id


class Warehouse(Base):
    """Warehouse (stock location) owned by a tenant."""
    
    __tablename__ = 'warehouses'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_warehouse_tenant_code'),
    )
    
    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False)
    name = Column(String, nullable=False)
    code = Column(String(40), nullable=False)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    
    # Relationships
    tenant = relationship('Tenant', back_populates='warehouses')
    
    def __repr__(self):
        return f"<Warehouse(id={self.id}, code='{self.code}', name='{self.name}')>"
