"""Abstract backing store protocol for the Object Lambda transformer."""

from typing import Any, Protocol


class BackingStore(Protocol):
    """Protocol defining the backing store interface.

    The backing store is the object store actually holding the data. The
    bucket is fixed by configuration, so methods take object keys only.
    """

    bucket_name: str

    async def init(self) -> None:
        """Create the client connection."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""
        ...

    async def get_object(
        self, key: str, range: str | None = None, part_number: int | None = None
    ) -> dict[str, Any]:
        """Retrieve an object.

        Args:
            key: The object key.
            range: Optional HTTP Range value to pass through.
            part_number: Optional part number to pass through.

        Returns:
            The GetObject response with ``Body`` read into bytes.
        """
        ...

    async def head_object(self, key: str) -> dict[str, Any]:
        """Retrieve an object's metadata.

        Args:
            key: The object key.

        Returns:
            The HeadObject response.
        """
        ...

    async def list_objects_v2(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """List objects in the bucket.

        Args:
            prefix: Key prefix filter.
            delimiter: Grouping delimiter.
            **kwargs: Extra ListObjectsV2 parameters (MaxKeys,
                ContinuationToken, StartAfter, EncodingType).

        Returns:
            The ListObjectsV2 response.
        """
        ...

    async def presign(
        self,
        method: str,
        key: str,
        params: dict[str, Any] | None = None,
        expires_in: int = 300,
    ) -> str:
        """Generate a presigned URL for an object operation.

        Args:
            method: "GET" or "HEAD".
            key: The object key.
            params: Extra request parameters to sign (e.g. IfMatch).
            expires_in: URL lifetime in seconds.

        Returns:
            The presigned URL.
        """
        ...


class ResponseWriter(Protocol):
    """Protocol for sending GetObject results back to the access point."""

    async def init(self) -> None:
        """Create the client connection."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""
        ...

    async def write_get_object_response(
        self,
        route: str,
        token: str,
        status_code: int,
        body: bytes = b"",
        error_code: str | None = None,
        error_message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Send a GetObject result to the access point.

        Args:
            route: The ``outputRoute`` of the GetObject context.
            token: The ``outputToken`` of the GetObject context.
            status_code: HTTP status to return to the caller.
            body: The (transformed) object bytes.
            error_code: S3 error code, for failures.
            error_message: Error description, for failures.
            headers: Response headers to map onto the S3 parameters.
        """
        ...
