"""Custom exceptions for the stock ledger application."""

class SaasError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class ValidationError(SaasError):
    """Raised when a request payload is malformed. Checked before any transaction opens."""
    def __init__(self, message, field=None):
        payload = {'field': field} if field else None
        super().__init__(message, 400, payload)
        self.field = field

class BusinessLogicError(SaasError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(SaasError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InsufficientStockError(BusinessLogicError):
    """Raised when an outbound movement would take stock below zero."""
    def __init__(self, product_name, required, available):
        req_fmt = f"{int(required)}" if required % 1 == 0 else f"{required:.3f}".rstrip('0').rstrip('.')
        avail_fmt = f"{int(available)}" if available % 1 == 0 else f"{available:.3f}".rstrip('0').rstrip('.')
        message = f"Insufficient stock for {product_name}: {req_fmt} required, {avail_fmt} available"
        super().__init__(message, status_code=409, payload={'required': str(required), 'available': str(available)})
        self.required = required
        self.available = available

class StockLockTimeoutError(SaasError):
    """Raised when the stock position lock is not acquired in time. Safe to retry."""
    def __init__(self, message="Stock position is busy, please retry"):
        super().__init__(message, 503)
