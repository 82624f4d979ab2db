"""Error taxonomy for the customer API.

Every error carries the HTTP status it maps to; the application installs a
single exception handler that turns them into responses. Detection happens at
the boundary where the condition occurs and errors propagate unchanged; there
is no automatic retry.
"""

from __future__ import annotations


class CustomerServiceError(Exception):
    """Base class. Subclasses set status_code."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(CustomerServiceError):
    """Malformed or disallowed field. User-correctable."""

    status_code = 400


class ImmutableFieldError(ValidationError):
    """Attempt to change the customer identifier."""


class DuplicateEmailError(ValidationError):
    """Another customer already uses this email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"The email {email} is already used by another customer.")
        self.email = email


class NotFoundError(CustomerServiceError):
    status_code = 404

    def __init__(self, customer_id: str, message: str = "Customer not found") -> None:
        super().__init__(message)
        self.customer_id = customer_id


class UnknownCustomerError(NotFoundError):
    """Order lookup requested for a customer that does not exist.

    Reported as a bad request rather than 404: the orders resource exists,
    the customer reference in it does not.
    """

    status_code = 400


class AuthError(CustomerServiceError):
    status_code = 403

    def __init__(self, message: str = "Forbidden: Invalid API Key") -> None:
        super().__init__(message)


class UpstreamTimeoutError(CustomerServiceError):
    """The orders service did not answer within the wait bound."""

    status_code = 504

    def __init__(self, customer_id: str, timeout: float) -> None:
        super().__init__(
            f"The orders service did not respond within {timeout:g}s for customer {customer_id}"
        )
        self.customer_id = customer_id
        self.timeout = timeout


class TransportError(CustomerServiceError):
    """Publishing to the broker failed."""

    status_code = 502

    def __init__(self, topic: str, cause: BaseException | str) -> None:
        super().__init__(f"Error while publishing to topic {topic}: {cause}")
        self.topic = topic


class StorageError(CustomerServiceError):
    """The underlying store failed. `operation` is a human description."""

    status_code = 500

    def __init__(self, operation: str, cause: BaseException | str) -> None:
        super().__init__(f"Error while {operation}: {cause}")
        self.operation = operation


class ProtocolError(CustomerServiceError):
    """Malformed inbound pub/sub envelope or unrecognized action."""

    status_code = 400
