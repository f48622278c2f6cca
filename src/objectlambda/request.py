"""Utilities for reading the user request and fetching the original object.

Range and partNumber are read from the user request here but applied to
the transformed object by :mod:`objectlambda.range_mapper`; they are never
forwarded to the backing store.
"""

import logging
import urllib.parse
from typing import Any

import httpx
from httpx import Headers

from objectlambda.models import RangeResponse, UserRequest
from objectlambda.range_mapper import (
    DEFAULT_PART_SIZE,
    map_part_number,
    map_part_number_head,
    map_range,
    map_range_head,
)
from objectlambda.storage.backend import BackingStore

logger = logging.getLogger(__name__)

RANGE = "Range"
PART_NUMBER = "partNumber"

MAX_PRESIGN_EXPIRES = 300

# Headers copied onto requests for the original object, with the S3
# request parameter each one maps to when presigning.
SIGNED_HEADERS: dict[str, str] = {
    "x-amz-checksum-mode": "ChecksumMode",
    "x-amz-request-payer": "RequestPayer",
    "x-amz-expected-bucket-owner": "ExpectedBucketOwner",
    "if-match": "IfMatch",
    "if-modified-since": "IfModifiedSince",
    "if-none-match": "IfNoneMatch",
    "if-unmodified-since": "IfUnmodifiedSince",
}


def get_query_param(url: str, name: str) -> str | None:
    """Get a query parameter from a URL, matching the name case-insensitively.

    Args:
        url: The URL the parameter is extracted from.
        name: The parameter name.

    Returns:
        The first matching value, or None if the parameter is absent.
    """
    query = urllib.parse.urlsplit(url).query
    wanted = name.lower()
    for key, value in urllib.parse.parse_qsl(query, keep_blank_values=True):
        if key.lower() == wanted:
            return value
    return None


def _header_or_query(user_request: UserRequest, name: str) -> str | None:
    value = user_request.headers.get(name)
    if value is not None:
        return value
    return get_query_param(user_request.url, name)


def get_range(user_request: UserRequest) -> str | None:
    """Get the Range of the user request; the header wins over the query."""
    return _header_or_query(user_request, RANGE)


def get_part_number(user_request: UserRequest) -> str | None:
    """Get the partNumber of the user request; the header wins over the query."""
    return _header_or_query(user_request, PART_NUMBER)


def apply_range_or_part_number(
    transformed_object: bytes,
    user_request: UserRequest,
    part_size: int = DEFAULT_PART_SIZE,
) -> RangeResponse:
    """Apply the Range or partNumber of the user request to a transformed body.

    Range takes precedence when both are present. A request for the whole
    object returns it unchanged.
    """
    range_spec = get_range(user_request)
    if range_spec is not None:
        return map_range(range_spec, transformed_object)

    part_number = get_part_number(user_request)
    if part_number is not None:
        return map_part_number(part_number, transformed_object, part_size)

    return RangeResponse(object=transformed_object)


def apply_range_or_part_number_headers(
    transformed_headers: Headers,
    user_request: UserRequest,
    part_size: int = DEFAULT_PART_SIZE,
) -> RangeResponse:
    """Apply the Range or partNumber of the user request to HeadObject headers."""
    range_spec = get_range(user_request)
    if range_spec is not None:
        return map_range_head(range_spec, transformed_headers)

    part_number = get_part_number(user_request)
    if part_number is not None:
        return map_part_number_head(part_number, transformed_headers, part_size)

    return RangeResponse(headers=transformed_headers)


def get_request_headers(headers: Headers) -> Headers:
    """Keep only the headers that may be forwarded for the original object.

    Host, Range, partNumber and every header not in SIGNED_HEADERS are
    dropped.
    """
    return Headers(
        [(name, value) for name, value in headers.items() if name.lower() in SIGNED_HEADERS]
    )


def object_key_from_url(url: str) -> str:
    """Derive the object key from a request URL path."""
    path = urllib.parse.urlsplit(url).path
    return urllib.parse.unquote(path)[1:]


def _presign_params(headers: Headers) -> dict[str, Any]:
    return {SIGNED_HEADERS[name.lower()]: value for name, value in headers.items()}


async def make_backing_store_request(
    store: BackingStore,
    http_client: httpx.AsyncClient,
    url: str,
    user_request: UserRequest,
    method: str,
    expires_in: int = MAX_PRESIGN_EXPIRES,
) -> httpx.Response:
    """Fetch the object named by ``url`` from the backing store.

    The key is taken from the URL path and a GetObject/HeadObject URL is
    presigned for it with the forwardable headers signed in.

    Args:
        store: The backing store.
        http_client: Client used to issue the presigned request.
        url: The access point URL (``inputS3Url`` or the user request URL).
        user_request: The user request whose headers are forwarded.
        method: "GET" or "HEAD".
        expires_in: Presigned URL lifetime in seconds, capped at 300.

    Returns:
        The raw response, whatever its status. The body is read.

    Raises:
        httpx.HTTPError: On network failure.
    """
    key = object_key_from_url(url)
    headers = get_request_headers(user_request.headers)
    signed_url = await store.presign(
        method,
        key,
        params=_presign_params(headers),
        expires_in=min(expires_in, MAX_PRESIGN_EXPIRES),
    )
    logger.debug("Fetching %s %s from the backing store", method, key, extra={"key": key})
    response = await http_client.request(method, signed_url, headers=headers)
    logger.debug(
        "Backing store responded %d for %s",
        response.status_code,
        key,
        extra={"key": key, "status": response.status_code},
    )
    return response


async def make_original_request(
    http_client: httpx.AsyncClient,
    url: str,
    user_request: UserRequest,
    method: str,
) -> httpx.Response:
    """Fetch the original object through the access point's presigned URL.

    Args:
        http_client: Client used to issue the request.
        url: The ``inputS3Url`` of the event.
        user_request: The user request whose headers are forwarded.
        method: "GET" or "HEAD".

    Returns:
        The raw response, whatever its status. The body is read.

    Raises:
        httpx.HTTPError: On network failure.
    """
    headers = get_request_headers(user_request.headers)
    response = await http_client.request(method, url, headers=headers)
    logger.debug(
        "Original request responded %d",
        response.status_code,
        extra={"status": response.status_code},
    )
    return response
