"""API exception hierarchy for the REST routes.

JSON-RPC failures never use these; the gateway encodes its own error
envelopes. Everything served outside /mcp/platform raises a
ToolgateAPIError subclass, turned into an ErrorResponse by the handler
registered in create_app().
"""

from toolgate.api.models.errors import ErrorCode


class ToolgateAPIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ServiceUnavailableError(ToolgateAPIError):
    """Raised when a backing store cannot serve the request."""

    status_code = 503
    error_code = ErrorCode.SERVICE_UNAVAILABLE
