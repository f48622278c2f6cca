"""S3-compatible error definitions for the Object Lambda transformer."""


class ObjectLambdaError(Exception):
    """An S3-compatible error with code, message, and HTTP status.

    Attributes:
        code: The S3 error code string (e.g. "NoSuchKey", "InvalidRange").
        message: Human-readable error description.
        http_status: The HTTP status code to return to the access point.
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 400,
    ) -> None:
        """Initialize the error.

        Args:
            code: S3 error code.
            message: Error description.
            http_status: HTTP status code (default 400).
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


# -- Common pre-defined errors ------------------------------------------------


class AccessDenied(ObjectLambdaError):
    """Access denied error."""

    def __init__(self, message: str = "Access Denied") -> None:
        super().__init__(code="AccessDenied", message=message, http_status=403)


class NoSuchKey(ObjectLambdaError):
    """The specified key does not exist."""

    def __init__(self, message: str = "The specified key does not exist.") -> None:
        super().__init__(code="NoSuchKey", message=message, http_status=404)


class InvalidRange(ObjectLambdaError):
    """The requested range is not satisfiable."""

    def __init__(self, message: str = "The requested range is not satisfiable.") -> None:
        super().__init__(code="InvalidRange", message=message, http_status=416)


class InvalidPartNumber(ObjectLambdaError):
    """The requested part number is not satisfiable."""

    def __init__(self, message: str = "The requested partnumber is not satisfiable.") -> None:
        super().__init__(code="InvalidPartNumber", message=message, http_status=416)


class UpstreamError(ObjectLambdaError):
    """An error returned by the backing store, forwarded as-is."""

    def __init__(self, code: str, message: str, http_status: int) -> None:
        super().__init__(code=code, message=message, http_status=http_status)


class TransformError(ObjectLambdaError):
    """The transformation or its serialization failed."""

    def __init__(
        self, message: str = "The Lambda function failed to transform the result."
    ) -> None:
        super().__init__(code="TransformError", message=message, http_status=500)


class InternalError(ObjectLambdaError):
    """An internal error occurred."""

    def __init__(self, message: str = "Internal Error") -> None:
        super().__init__(code="InternalError", message=message, http_status=500)


_STATUS_ERRORS: dict[int, type[ObjectLambdaError]] = {
    403: AccessDenied,
    404: NoSuchKey,
    416: InvalidRange,
}


def error_for_status(status: int, message: str | None = None) -> ObjectLambdaError:
    """Map an upstream HTTP status to the nearest standard S3 error.

    Args:
        status: The HTTP status code returned by the backing store.
        message: Optional message overriding the error's default.

    Returns:
        The matching error instance; InternalError for unmapped statuses.
    """
    error_cls = _STATUS_ERRORS.get(status, InternalError)
    if message:
        return error_cls(message)
    return error_cls()
