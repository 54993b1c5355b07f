"""
Error taxonomy shared by the ledger operations and the provisioning
orchestrator.

Every class carries the HTTP status and machine-readable code the API layer
answers with, so views never have to guess how a failure should surface.
"""


class AirswitchError(Exception):
    """Base class for every error the core hands back to its callers."""

    status_code = 500
    code = "internal_error"
    default_message = "Internal error."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def as_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(AirswitchError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request."


class NotFound(AirswitchError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class AuthorizationError(AirswitchError):
    """Payment was not authorized. Raised before any external or ledger write."""

    status_code = 402
    code = "payment_not_authorized"
    default_message = "Payment failed."


class InsufficientFunds(AuthorizationError):
    code = "insufficient_funds"
    default_message = "Insufficient funds in wallet."


class InsufficientPoints(AuthorizationError):
    code = "insufficient_points"
    default_message = "Insufficient points."


class PaymentNotConfirmed(AuthorizationError):
    code = "payment_not_confirmed"
    default_message = "Payment not confirmed by the processor."


class GatewayError(AirswitchError):
    """An external provider was unreachable or rejected the call."""

    status_code = 502
    code = "gateway_error"
    default_message = "Upstream provider error."

    def __init__(self, message=None, status=None, payload=None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class GatewayTimeout(GatewayError):
    """The call timed out; the provider may or may not have acted on it."""

    code = "gateway_timeout"
    default_message = "Upstream provider timed out; outcome unknown."


class ConsistencyViolation(AirswitchError):
    """Balance changed between the optimistic check and the commit. Retryable."""

    status_code = 409
    code = "balance_changed"
    default_message = "Insufficient funds (balance changed during transaction)."


class ProvisioningFailed(AirswitchError):
    status_code = 500
    code = "provisioning_failed"
    default_message = "Transaction failed. No funds deducted. Please try again."


class InvalidSignature(AirswitchError):
    status_code = 400
    code = "invalid_signature"
    default_message = "Invalid webhook signature."


class AlreadyProcessed(Exception):
    """
    Idempotency hit. Not an error: raised inside an atomic block to roll it
    back, then converted into a replay of the prior result.
    """

    def __init__(self, order=None):
        super().__init__("Already processed.")
        self.order = order
