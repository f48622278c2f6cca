"""Data model types for Object Lambda events and responses.

These dataclasses represent the inbound access point event (a tagged
union over the four supported operations), the structured list-objects
result handed to transforms, and the response shapes written back to the
access point.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from httpx import Headers


class EventKind(str, Enum):
    """The operation an Object Lambda event was raised for.

    The value is the name of the context field carried by the event.
    """

    GET_OBJECT = "getObjectContext"
    HEAD_OBJECT = "headObjectContext"
    LIST_OBJECTS = "listObjectsContext"
    LIST_OBJECTS_V2 = "listObjectsV2Context"


class RequestState(str, Enum):
    """Lifecycle of a single invocation."""

    RECEIVED = "RECEIVED"
    FETCHING = "FETCHING"
    TRANSFORMING = "TRANSFORMING"
    RESPONDING = "RESPONDING"
    FAILED = "FAILED"


@dataclass(frozen=True)
class UserRequest:
    """The request originally made to the access point.

    Attributes:
        url: Full URL of the original request, including query string.
        headers: Case-insensitive request headers.
    """

    url: str
    headers: Headers = field(default_factory=Headers)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UserRequest:
        data = data or {}
        return cls(url=data.get("url", ""), headers=Headers(data.get("headers") or {}))


@dataclass(frozen=True)
class ObjectContext:
    """Per-operation context supplied by the access point.

    Attributes:
        input_s3_url: Presigned URL of the original object or listing.
        output_route: Routing token for WriteGetObjectResponse (GET only).
        output_token: Request token for WriteGetObjectResponse (GET only).
    """

    input_s3_url: str
    output_route: str | None = None
    output_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectContext:
        return cls(
            input_s3_url=data.get("inputS3Url", ""),
            output_route=data.get("outputRoute"),
            output_token=data.get("outputToken"),
        )


@dataclass(frozen=True)
class ObjectLambdaEvent:
    """An Object Lambda invocation event.

    Exactly one of the four operation contexts is present on the wire;
    ``kind`` records which one.
    """

    kind: EventKind
    context: ObjectContext
    user_request: UserRequest
    configuration: dict[str, Any] = field(default_factory=dict)
    protocol_version: str = ""

    @classmethod
    def from_dict(cls, event: dict[str, Any]) -> ObjectLambdaEvent | None:
        """Build an event from the raw invocation payload.

        Returns:
            The parsed event, or None when the payload carries none of the
            supported operation contexts as an object.
        """
        for kind in EventKind:
            context = event.get(kind.value)
            if isinstance(context, dict):
                return cls(
                    kind=kind,
                    context=ObjectContext.from_dict(context),
                    user_request=UserRequest.from_dict(event.get("userRequest")),
                    configuration=event.get("configuration") or {},
                    protocol_version=event.get("protocolVersion", ""),
                )
        return None


# ---------------------------------------------------------------------------
# List objects
# ---------------------------------------------------------------------------


@dataclass
class ListOwner:
    """Owner of a listed object."""

    id: str | None = None
    display_name: str | None = None


@dataclass
class ListContent:
    """One ``Contents`` entry of a list-objects result.

    Attributes:
        key: The object key.
        last_modified: ISO 8601 last-modified timestamp.
        size: Size in bytes.
        etag: Quoted ETag, if reported.
        storage_class: Storage class, if reported.
        checksum_algorithm: Checksum algorithm, if reported.
        owner: Object owner, if requested with fetch-owner.
    """

    key: str
    last_modified: str | None = None
    size: int = 0
    etag: str | None = None
    storage_class: str | None = None
    checksum_algorithm: str | None = None
    owner: ListOwner | None = None

    @property
    def is_directory_marker(self) -> bool:
        return self.size == 0 and self.key.endswith("/")


@dataclass
class ListObject:
    """Structured ListObjects / ListObjectsV2 result.

    V1 results carry ``marker``/``next_marker``; V2 results carry
    ``continuation_token``/``next_continuation_token``, ``key_count`` and
    ``start_after``. Unset optional fields are omitted when serialized.
    """

    is_truncated: bool = False
    max_keys: int = 1000
    name: str | None = None
    prefix: str | None = None
    delimiter: str | None = None
    encoding_type: str | None = None
    marker: str | None = None
    next_marker: str | None = None
    continuation_token: str | None = None
    next_continuation_token: str | None = None
    start_after: str | None = None
    key_count: int | None = None
    contents: list[ListContent] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


ListTransform = Callable[[ListObject], ListObject]
ObjectTransform = Callable[[bytes], bytes]
HeadersTransform = Callable[[Headers], Headers]


def identity(value):
    """Default transform: return the input unchanged."""
    return value


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorResponse:
    """Error returned to the access point.

    Always the last value produced on a failure path.
    """

    status_code: int
    error_code: str
    error_message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "errorCode": self.error_code,
            "errorMessage": self.error_message,
        }


@dataclass(frozen=True)
class RangeResponse:
    """Result of applying a range or part number to an object or headers.

    Attributes:
        object: The selected bytes (body variants only).
        headers: The adjusted headers (head variants only).
        has_error: Whether the selection failed.
        error_response: The error to return when ``has_error`` is set.
    """

    object: bytes | None = None
    headers: Headers | None = None
    has_error: bool = False
    error_response: ErrorResponse | None = None


@dataclass(frozen=True)
class GetObjectResponse:
    """Summary of a GetObject response written to the access point."""

    status_code: int
    body: bytes = b""
    headers: Headers = field(default_factory=Headers)

    def to_dict(self) -> dict[str, Any]:
        return {"statusCode": self.status_code}


@dataclass(frozen=True)
class HeadObjectResponse:
    """HeadObject response returned to the access point."""

    status_code: int
    headers: Headers = field(default_factory=Headers)

    def to_dict(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "headers": dict(self.headers.items())}


@dataclass(frozen=True)
class ListObjectsResponse:
    """ListObjects / ListObjectsV2 response returned to the access point."""

    status_code: int
    list_result_xml: str

    def to_dict(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "listResultXml": self.list_result_xml}


ObjectLambdaResponse = GetObjectResponse | HeadObjectResponse | ListObjectsResponse | ErrorResponse
