"""Error envelope returned by every endpoint."""

from pydantic import BaseModel

from replyloop.lib.errors import NotFoundError, ProviderError, ReplyLoopError, ValidationError


class ErrorDetail(BaseModel):
    message: str
    type: str
    param: str | None = None
    code: str | None = None


class ErrorResponse(BaseModel):
    """Wrapper so clients always find errors under the "error" key."""

    error: ErrorDetail


ERROR_TYPE_INVALID_REQUEST = "invalid_request_error"
ERROR_TYPE_NOT_FOUND = "not_found_error"
ERROR_TYPE_PROVIDER = "provider_error"
ERROR_TYPE_SERVER = "server_error"


def create_error_response(
    message: str,
    error_type: str = ERROR_TYPE_SERVER,
    param: str | None = None,
    code: str | None = None,
) -> ErrorResponse:
    """Create an error response.

    Args:
        message: Human-readable error message
        error_type: Type of error (see ERROR_TYPE_* constants)
        param: Request field that caused the error (optional)
        code: Machine-readable code (optional)

    Returns:
        ErrorResponse object
    """
    return ErrorResponse(
        error=ErrorDetail(message=message, type=error_type, param=param, code=code)
    )


def invalid_request_error(message: str, param: str | None = None) -> ErrorResponse:
    return create_error_response(message, ERROR_TYPE_INVALID_REQUEST, param=param)


def not_found_error(message: str, param: str | None = None) -> ErrorResponse:
    return create_error_response(message, ERROR_TYPE_NOT_FOUND, param=param)


def provider_error(message: str, provider: str | None = None) -> ErrorResponse:
    return create_error_response(message, ERROR_TYPE_PROVIDER, code=provider)


def server_error(message: str = "Internal server error") -> ErrorResponse:
    return create_error_response(message, ERROR_TYPE_SERVER)


def error_for_exception(exc: Exception) -> tuple[int, ErrorResponse]:
    """Map an engine exception to (HTTP status, envelope)."""
    if isinstance(exc, ValidationError):
        return 400, invalid_request_error(str(exc), param=exc.field)
    if isinstance(exc, NotFoundError):
        return 404, not_found_error(str(exc), param=exc.entity)
    if isinstance(exc, ProviderError):
        return 502, provider_error(str(exc), provider=exc.provider)
    if isinstance(exc, ReplyLoopError):
        return 500, server_error(str(exc))
    return 500, server_error()
