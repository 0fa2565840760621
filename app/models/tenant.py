"""Tenant model - represents each business/organization using the platform."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


def generate_id():
    """Generate a UUID string primary key."""
    return str(uuid.uuid4())


class Tenant(Base):
    """Tenant model - each business/organization."""
    
    __tablename__ = 'tenants'
    
    id = Column(String(36), primary_key=True, default=generate_id)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)  # Display name
    default_currency = Column(String(3), nullable=False, default='MAD')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    warehouses = relationship('Warehouse', back_populates='tenant')
    
    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', name='{self.name}')>"
