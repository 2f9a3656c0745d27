"""Error taxonomy for the commission pipeline.

Every error a caller can act on derives from :class:`CommissionError` and
carries the HTTP status the API layer answers with. "Not attributed" and
"already processed" are normal ingestion outcomes and are reported through
``IngestResult`` instead of exceptions.
"""


class CommissionError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class MalformedPayload(CommissionError):
    """The webhook payload cannot be normalized into an order."""


class ValidationError(CommissionError):
    """Tier or payment input breaks a numeric or range rule."""


class InvalidPeriod(CommissionError):
    """Payment generation was asked for a period that ends before it starts."""


class NotFound(CommissionError):
    status_code = 404


class PaymentConflict(CommissionError):
    """Some sales in the period were batched by a concurrent run."""
    status_code = 409


class NotificationFailure(CommissionError):
    status_code = 502
