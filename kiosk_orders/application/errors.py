"""
Rejection taxonomy for order operations.

Each error carries a machine-readable ``reason`` and the HTTP status the
API layer answers with, so clients can tell whether to retry, fix their
input or hand the problem to a human operator.
"""


class OrderError(Exception):
    reason = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


class MalformedRequestError(OrderError):
    reason = "malformed_request"
    status_code = 400


class ReferenceNotFoundError(OrderError):
    reason = "reference_not_found"
    status_code = 400


class BusinessRuleError(OrderError):
    reason = "business_rule_violation"
    status_code = 400


class NotImplementedMethodError(OrderError):
    reason = "not_implemented"
    status_code = 501


class PaymentProcessingError(OrderError):
    reason = "payment_processing_failed"
    status_code = 502


class OrderNotFoundError(OrderError):
    reason = "not_found"
    status_code = 404


class ForbiddenError(OrderError):
    reason = "forbidden"
    status_code = 403
