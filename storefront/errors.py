"""Domain errors raised by services.

Each error carries the HTTP status it maps to and a stable ``code`` that
clients can switch on. ``storefront.main`` renders them as
``{"error": code, "detail": message}``.
"""


class StoreError(Exception):
    status_code = 500
    code = "StoreError"

    def __init__(self, message: str = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.code


class ConfigurationError(StoreError):
    code = "ConfigurationError"


# -------- client / input --------

class MissingSessionId(StoreError):
    status_code = 400
    code = "MissingSessionId"

    @classmethod
    def default_message(cls):
        return "Session ID is required"


class MalformedSession(StoreError):
    status_code = 400
    code = "MalformedSession"


class CheckoutError(StoreError):
    status_code = 400
    code = "CheckoutError"


class InvalidWebhookSignature(StoreError):
    status_code = 400
    code = "InvalidWebhookSignature"

    @classmethod
    def default_message(cls):
        return "Webhook signature verification failed"


class InvalidStatusTransition(StoreError):
    status_code = 400
    code = "InvalidStatusTransition"


class PaymentNotCompleted(StoreError):
    status_code = 402
    code = "PaymentNotCompleted"


class SessionOwnershipMismatch(StoreError):
    status_code = 403
    code = "SessionOwnershipMismatch"

    @classmethod
    def default_message(cls):
        return "Payment session belongs to another user"


# -------- not found --------

class SessionNotFound(StoreError):
    status_code = 404
    code = "SessionNotFound"


class ProductMissing(StoreError):
    status_code = 404
    code = "ProductMissing"


# -------- conflict --------

class InsufficientStock(StoreError):
    status_code = 409
    code = "InsufficientStock"


class OrderNotFinalized(StoreError):
    """A captured payment arrived before its order exists; the gateway redelivers on non-2xx."""
    status_code = 409
    code = "OrderNotFinalized"


# -------- upstream --------

class PaymentGatewayError(StoreError):
    status_code = 502
    code = "PaymentGatewayError"
