"""Stock alert model."""
import enum
from sqlalchemy import Column, String, Boolean, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import generate_id
from app.models.stock_movement import utcnow, _enum_values


class AlertType(enum.Enum):
    """Stock alert type."""
    LOW_STOCK = 'low_stock'
    OUT_OF_STOCK = 'out_of_stock'
    OVERSTOCK = 'overstock'


class AlertSeverity(enum.Enum):
    """Stock alert severity."""
    INFO = 'info'
    WARNING = 'warning'
    CRITICAL = 'critical'


class StockAlert(Base):
    """Stock alert raised when a position crosses a product threshold."""
    
    __tablename__ = 'stock_alerts'
    
    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False)
    warehouse_id = Column(String(36), ForeignKey('warehouses.id'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    alert_type = Column(Enum(AlertType, name='stock_alert_type', values_callable=_enum_values), nullable=False)
    message = Column(Text, nullable=True)
    severity = Column(Enum(AlertSeverity, name='stock_alert_severity', values_callable=_enum_values),
                      nullable=False, default=AlertSeverity.WARNING)
    is_read = Column(Boolean, nullable=False, default=False)
    is_dismissed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    
    # Relationships
    product = relationship('Product')
    
    def __repr__(self):
        return f"<StockAlert(id={self.id}, type={self.alert_type.value}, product_id={self.product_id})>"
