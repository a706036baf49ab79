# wareflow/errors.py


class WareflowError(Exception):
    """Base class for every recoverable error raised by wareflow."""


class ValidationError(WareflowError):
    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


class InsufficientStockError(ValidationError):
    def __init__(self, product_id, available, requested):
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Requested: {requested}",
            field='products'
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidTransitionError(WareflowError):
    def __init__(self, current, attempted):
        super().__init__(
            f"Cannot move transfer request from '{current.value}' "
            f"to '{attempted.value}'"
        )
        self.current = current
        self.attempted = attempted


class PermissionDeniedError(WareflowError):
    def __init__(self, actor, required):
        super().__init__(f"User '{actor}' is not allowed to do this: {required}")
        self.actor = actor
        self.required = required


class ConcurrencyError(WareflowError):
    pass


class NotFoundError(WareflowError):
    pass
