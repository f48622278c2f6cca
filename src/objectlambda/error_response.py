"""Conversion of failures into the access point's error response shape.

Every error path in the handlers ends here, so the status/code/message
triple returned to the access point is built in one place.
"""

import logging

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from objectlambda import errors
from objectlambda.errors import (
    InternalError,
    ObjectLambdaError,
    UpstreamError,
    error_for_status,
)
from objectlambda.models import ErrorResponse, ObjectContext
from objectlambda.xml_utils import parse_error

logger = logging.getLogger(__name__)


def error_response(error: ObjectLambdaError) -> ErrorResponse:
    """Convert an ObjectLambdaError into an ErrorResponse."""
    return ErrorResponse(
        status_code=error.http_status,
        error_code=error.code,
        error_message=error.message,
    )


def build_error(
    context: ObjectContext | None, code: str | ObjectLambdaError, message: str | None = None
) -> ErrorResponse:
    """Build the response for a failure detected inside the function.

    Args:
        context: The operation context of the failing request.
        code: An ObjectLambdaError, or the error class name for one of the
            predefined errors (e.g. "NoSuchKey").
        message: Optional message overriding the error's default.

    Returns:
        The error response to send back.
    """
    if isinstance(code, ObjectLambdaError):
        error = code
    else:
        error = _error_from_code(code, message)
    route = context.output_route if context is not None else None
    logger.info(
        "Returning error %s (%d): %s",
        error.code,
        error.http_status,
        error.message,
        extra={"status": error.http_status, "request_route": route},
    )
    return error_response(error)


def _error_from_code(code: str, message: str | None) -> ObjectLambdaError:
    error_cls = getattr(errors, code, None)
    if isinstance(error_cls, type) and issubclass(error_cls, ObjectLambdaError):
        try:
            return error_cls(message) if message else error_cls()
        except TypeError:
            pass
    return ObjectLambdaError(code=code, message=message or code, http_status=500)


def response_for_upstream_failure(response: httpx.Response) -> ErrorResponse:
    """Map a failed backing store response onto an ErrorResponse.

    The upstream status is always kept. The S3 XML error body supplies the
    code and message when present; otherwise the status is mapped to the
    nearest standard error (404 NoSuchKey, 403 AccessDenied, 416
    InvalidRange, anything else InternalError).

    Args:
        response: The upstream response; its body must already be read.

    Returns:
        The error response to forward.
    """
    parsed = parse_error(response.content)
    fallback = error_for_status(response.status_code)
    if parsed is not None:
        code, message = parsed
        error = UpstreamError(code, message or fallback.message, response.status_code)
    else:
        error = UpstreamError(fallback.code, fallback.message, response.status_code)
    logger.info(
        "Backing store returned %d %s",
        response.status_code,
        error.code,
        extra={"status": response.status_code},
    )
    return error_response(error)


def error_from_exception(exc: Exception) -> ErrorResponse:
    """Convert an exception caught at a handler boundary into an ErrorResponse."""
    if isinstance(exc, ObjectLambdaError):
        return error_response(exc)
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        code = err.get("Code") or ""
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status is None:
            status = int(code) if code.isdigit() else _error_from_code(code, None).http_status
        fallback = error_for_status(status)
        # HEAD errors carry the bare status as the code
        if not code or code.isdigit():
            code = fallback.code
        return error_response(
            UpstreamError(
                code,
                err.get("Message") or fallback.message,
                status,
            )
        )
    if isinstance(exc, (httpx.HTTPError, BotoCoreError)):
        return error_response(InternalError(f"Request to the backing store failed: {exc}"))
    return error_response(InternalError(str(exc) or "Internal Error"))
