"""Errors raised by the chat relay.

Every failure the relay reports to a caller is a ``RelayError`` carrying the
HTTP status it maps to, so the API layer can turn it into a JSON response
without knowing the individual cases.
"""


class RelayError(Exception):
    """Base class for relay failures.

    Attributes:
        code: machine readable error code, e.g. ``"QUOTA_EXCEEDED"``.
        message: user facing text.
        http_status: status code used by the HTTP layer.
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    def to_body(self) -> dict:
        return {"error": self.message}


class RequestValidationFailed(RelayError):
    """Required fields are missing from the request."""

    def __init__(self, message: str):
        super().__init__("VALIDATION_ERROR", message, http_status=400)


class QuotaExceeded(RelayError):
    """Daily limit reached. Rendered as an ordinary reply so clients show it as a chat bubble."""

    def __init__(self, limit: int):
        message = (
            f"Daily limit is exhausted. You can ask a maximum of {limit} questions per day."
        )
        super().__init__("QUOTA_EXCEEDED", message, http_status=429, limit=limit)
        self.limit = limit

    def to_body(self) -> dict:
        return {"reply": self.message}


class UpstreamFailure(RelayError):
    """The model call failed or returned nothing usable."""

    def __init__(self, message: str = "Something went wrong"):
        super().__init__("UPSTREAM_ERROR", message, http_status=500)


class ConfigurationError(RelayError):
    """The service is missing configuration it needs to answer."""

    def __init__(self, message: str):
        super().__init__("CONFIGURATION_ERROR", message, http_status=500)
