"""Stock alert service - threshold checks run after a movement commits."""
import logging
from decimal import Decimal
from typing import List, NamedTuple, Optional

from app.exceptions import NotFoundError
from app.models import StockAlert, AlertType, AlertSeverity, Product, StockPosition

logger = logging.getLogger(__name__)


class AlertDecision(NamedTuple):
    alert_type: AlertType
    severity: AlertSeverity


def evaluate_alert(quantity, min_stock, max_stock) -> Optional[AlertDecision]:
    """
    Decide which alert a quantity deserves, if any.

    out_of_stock wins over low_stock; a max_stock of 0 disables overstock.
    """
    quantity = Decimal(str(quantity or 0))
    min_stock = Decimal(str(min_stock or 0))
    max_stock = Decimal(str(max_stock or 0))

    if quantity <= 0:
        return AlertDecision(AlertType.OUT_OF_STOCK, AlertSeverity.CRITICAL)
    if quantity < min_stock:
        return AlertDecision(AlertType.LOW_STOCK, AlertSeverity.WARNING)
    if max_stock > 0 and quantity > max_stock:
        return AlertDecision(AlertType.OVERSTOCK, AlertSeverity.INFO)
    return None


def _alert_message(decision: AlertDecision, product: Product, quantity) -> str:
    if decision.alert_type is AlertType.OUT_OF_STOCK:
        return f'{product.name} is out of stock ({quantity})'
    if decision.alert_type is AlertType.LOW_STOCK:
        return f'{product.name} is below minimum stock: {quantity} < {product.min_stock}'
    return f'{product.name} is above maximum stock: {quantity} > {product.max_stock}'


def raise_alert_for_position(session, position: StockPosition,
                             product: Optional[Product] = None) -> Optional[StockAlert]:
    """
    Create a stock alert for the position if a threshold is crossed.

    Skips creation when an undismissed alert of the same type already exists
    for the same warehouse/product. Always ends its transaction, whether or
    not an alert is raised.
    """
    if product is None:
        product = session.query(Product).filter(Product.id == position.product_id).first()
    decision = evaluate_alert(position.quantity, product.min_stock, product.max_stock)
    if decision is None:
        session.commit()
        return None

    existing = session.query(StockAlert).filter(
        StockAlert.tenant_id == position.tenant_id,
        StockAlert.warehouse_id == position.warehouse_id,
        StockAlert.product_id == position.product_id,
        StockAlert.alert_type == decision.alert_type,
        StockAlert.is_dismissed.is_(False)
    ).first()
    if existing:
        session.commit()
        return None

    alert = StockAlert(
        tenant_id=position.tenant_id,
        warehouse_id=position.warehouse_id,
        product_id=position.product_id,
        alert_type=decision.alert_type,
        severity=decision.severity,
        message=_alert_message(decision, product, position.quantity),
    )
    session.add(alert)
    session.commit()
    logger.info(f"Stock alert {decision.alert_type.value} raised for product {position.product_id} "
                f"in warehouse {position.warehouse_id}")
    return alert


def get_stock_alerts(session, tenant_id: str, warehouse_id: Optional[str] = None) -> List[StockAlert]:
    """Undismissed alerts for a tenant, newest first."""
    query = session.query(StockAlert).filter(
        StockAlert.tenant_id == tenant_id,
        StockAlert.is_dismissed.is_(False)
    )
    if warehouse_id:
        query = query.filter(StockAlert.warehouse_id == warehouse_id)
    return query.order_by(StockAlert.created_at.desc()).all()


def _get_alert(session, tenant_id: str, alert_id: str) -> StockAlert:
    alert = session.query(StockAlert).filter(
        StockAlert.id == alert_id,
        StockAlert.tenant_id == tenant_id
    ).first()
    if not alert:
        raise NotFoundError('Stock alert not found')
    return alert


def mark_alert_read(session, tenant_id: str, alert_id: str) -> StockAlert:
    alert = _get_alert(session, tenant_id, alert_id)
    alert.is_read = True
    session.commit()
    return alert


def dismiss_stock_alert(session, tenant_id: str, alert_id: str) -> StockAlert:
    alert = _get_alert(session, tenant_id, alert_id)
    alert.is_dismissed = True
    session.commit()
    return alert
