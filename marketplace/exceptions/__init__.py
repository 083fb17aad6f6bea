"""Custom exceptions for the marketplace application."""

class MarketplaceError(Exception):
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

class BusinessLogicError(MarketplaceError):
    """Exception raised for invalid input to a business operation."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(MarketplaceError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidStateError(BusinessLogicError):
    """Raised when an operation would break the default-address or lifecycle invariants."""
    def __init__(self, message, payload=None):
        super().__init__(message, status_code=409, payload=payload)

class ConflictError(BusinessLogicError):
    """Raised when a resource cannot be changed because other records depend on it."""
    def __init__(self, message, payload=None):
        super().__init__(message, status_code=409, payload=payload)

class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_id, required, available=None):
        if available is None:
            message = f"Product {product_id} does not have the requested quantity ({required})"
        else:
            message = f"Product {product_id} does not have the requested quantity: required {required}, available {available}"
        super().__init__(message, status_code=409, payload={'product_id': product_id})
        self.product_id = product_id
        self.required = required
        self.available = available

class NotAvailableError(BusinessLogicError):
    """Raised when a product has been deactivated by its seller."""
    def __init__(self, product_id, product_name=None):
        label = f'"{product_name}" (ID {product_id})' if product_name else f'{product_id}'
        message = f"The product {label} is no longer available"
        super().__init__(message, status_code=409, payload={'product_id': product_id})
        self.product_id = product_id

class UnauthorizedError(MarketplaceError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)

class CheckoutFailedError(MarketplaceError):
    """Raised when the order commit failed after it started; nothing was persisted."""
    def __init__(self, message="Unable to perform the checkout", payload=None):
        super().__init__(message, 500, payload)
