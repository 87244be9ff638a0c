class DomainException(Exception):
    pass


class NotFoundError(DomainException):
    def __init__(self, resource: str, field: str, value):
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} not found with {field}: '{value}'")


class InsufficientStockError(DomainException):
    def __init__(self, product_name: str, requested: int, available: int):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product '{product_name}'. "
            f"Requested: {requested}, Available: {available}"
        )


class InvalidStateTransitionError(DomainException):
    def __init__(self, current_status, new_status):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(f"Cannot change status of {current_status.value} order to {new_status.value}")


class InvalidOperationError(DomainException):
    pass


class DuplicateResourceError(DomainException):
    pass


class InvalidRequestError(DomainException):
    pass


class InvalidCredentialsError(DomainException):
    pass
