class OrderError(Exception):
    """Business-rule failure while creating an order; surfaces as 400."""

class UserNotFound(OrderError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__("User not found")

class ProductNotFound(OrderError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")

class InsufficientStock(OrderError):
    def __init__(self, product: str, available: int, requested: int):
        self.product = product
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product}. "
            f"Available: {available}, Requested: {requested}"
        )

class UpstreamError(Exception):
    """A collaborator failed for a reason other than not-found."""

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason
        super().__init__(f"{service} service failed: {reason}")
