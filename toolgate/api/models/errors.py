"""Error bodies for the REST routes (health, readiness, well-known).

The gateway route answers with JSON-RPC error envelopes instead.
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: list[ErrorDetail] | None = None


class ErrorResponse(BaseModel):
    """``{"error": {"code": ..., "message": ..., "details": [...]}}``"""

    error: ErrorBody

    @classmethod
    def of(
        cls,
        code: ErrorCode,
        message: str,
        details: list[ErrorDetail] | None = None,
    ) -> dict:
        return cls(error=ErrorBody(code=code, message=message, details=details)).model_dump(
            exclude_none=True
        )
