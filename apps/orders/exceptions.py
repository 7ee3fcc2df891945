class OrderError(Exception):
    """Base class for order errors surfaced to API callers."""

    error_code = "order_error"
    status_code = 400


class OrderValidationError(OrderError):
    error_code = "validation_error"
    status_code = 400

    def __init__(self, errors) -> None:
        super().__init__("Invalid order")
        self.errors = errors


class OrderNotFound(OrderError):
    error_code = "order_not_found"
    status_code = 404

    def __init__(self, order_id) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderAlreadySynced(OrderError):
    error_code = "order_already_synced"
    status_code = 409

    def __init__(self, order_id) -> None:
        super().__init__(f"Order {order_id} is already synced to SnelStart")
        self.order_id = order_id


class InvoicedOrderConflict(OrderError):
    """Raised when the ERP has already invoiced the order."""

    error_code = "order_invoiced"
    status_code = 409

    def __init__(self, order_id) -> None:
        super().__init__(f"Order {order_id} has been invoiced in SnelStart and can no longer change")
        self.order_id = order_id


class InvalidOrderTransition(OrderError):
    error_code = "invalid_transition"
    status_code = 409

    def __init__(self, current_status: str, target_status: str) -> None:
        super().__init__(f"Invalid order transition from {current_status} to {target_status}")
        self.current_status = current_status
        self.target_status = target_status
