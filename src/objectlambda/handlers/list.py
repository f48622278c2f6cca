"""ListObjects / ListObjectsV2 Object Lambda handler."""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from objectlambda.error_response import (
    build_error,
    error_from_exception,
    error_response,
    response_for_upstream_failure,
)
from objectlambda.errors import NoSuchKey, TransformError
from objectlambda.handlers.lifecycle import RequestLifecycle
from objectlambda.models import (
    ErrorResponse,
    EventKind,
    ListContent,
    ListObject,
    ListObjectsResponse,
    ListOwner,
    ListTransform,
    ObjectLambdaEvent,
    RequestState,
    identity,
)
from objectlambda.request import get_query_param, make_original_request
from objectlambda.storage.backend import BackingStore
from objectlambda.xml_utils import parse_list_objects_xml, render_list_objects_xml

logger = logging.getLogger(__name__)

SERIALIZATION_FAILED = "The Lambda function failed to transform the result to XML"


def filter_directory_markers(list_object: ListObject) -> ListObject:
    """Drop zero-byte keys ending in "/" from the listing, in place."""
    list_object.contents = [c for c in list_object.contents if not c.is_directory_marker]
    return list_object


def _iso8601(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
    return str(value)


def list_object_from_response(response: dict[str, Any], kind: EventKind) -> ListObject:
    """Build a ListObject from a ListObjectsV2 SDK response.

    For a ListObjects (v1) request the continuation fields are reported
    as Marker/NextMarker instead, with NextMarker set to the last key or
    common prefix of a truncated page.
    """
    contents = []
    for entry in response.get("Contents") or []:
        owner = entry.get("Owner")
        contents.append(
            ListContent(
                key=entry.get("Key", ""),
                last_modified=_iso8601(entry.get("LastModified")),
                size=int(entry.get("Size", 0)),
                etag=entry.get("ETag"),
                storage_class=entry.get("StorageClass"),
                checksum_algorithm=(entry.get("ChecksumAlgorithm") or [None])[0],
                owner=(
                    ListOwner(id=owner.get("ID"), display_name=owner.get("DisplayName"))
                    if owner
                    else None
                ),
            )
        )

    common_prefixes = [
        cp["Prefix"] for cp in response.get("CommonPrefixes") or [] if "Prefix" in cp
    ]

    list_object = ListObject(
        is_truncated=bool(response.get("IsTruncated", False)),
        max_keys=int(response.get("MaxKeys", 0)),
        name=response.get("Name"),
        prefix=response.get("Prefix", ""),
        delimiter=response.get("Delimiter") or None,
        encoding_type=response.get("EncodingType") or None,
        contents=contents,
        common_prefixes=common_prefixes,
    )
    if kind is EventKind.LIST_OBJECTS:
        list_object.marker = response.get("StartAfter", "")
        if list_object.is_truncated:
            last = [c.key for c in contents[-1:]] + common_prefixes[-1:]
            list_object.next_marker = max(last) if last else None
    else:
        list_object.key_count = int(response.get("KeyCount", len(contents)))
        list_object.continuation_token = response.get("ContinuationToken") or None
        list_object.next_continuation_token = response.get("NextContinuationToken") or None
        list_object.start_after = response.get("StartAfter") or None
    return list_object


class ListObjectsHandler:
    """Handles ListObjects and ListObjectsV2 requests.

    Performs the following steps:
        1. Lists the backing store and converts the result into a ListObject.
        2. Removes directory markers and applies the transform.
        3. Serializes the result back to XML for the access point.

    Listings whose prefix starts with ``bypass_prefix`` are served from the
    access point's own presigned URL, parsed and re-serialized without any
    transformation.

    Attributes:
        store: The backing store holding the original objects.
        http_client: Client used for the access point's presigned URL.
        transform: Transformation applied to every listing.
        bypass_prefix: Prefix marking verification traffic.
    """

    def __init__(
        self,
        store: BackingStore,
        http_client: httpx.AsyncClient,
        transform: ListTransform = identity,
        bypass_prefix: str = "verify_",
    ) -> None:
        self.store = store
        self.http_client = http_client
        self.transform = transform
        self.bypass_prefix = bypass_prefix

    def is_bypass(self, prefix: str | None) -> bool:
        return bool(self.bypass_prefix and prefix and prefix.startswith(self.bypass_prefix))

    async def handle(self, event: ObjectLambdaEvent) -> ListObjectsResponse | ErrorResponse:
        url = event.context.input_s3_url
        prefix = get_query_param(url, "prefix")
        operation = "ListObjectsV2" if event.kind is EventKind.LIST_OBJECTS_V2 else "ListObjects"
        lifecycle = RequestLifecycle(operation, prefix or "")

        if self.is_bypass(prefix):
            return await self.handle_original(event, lifecycle)

        lifecycle.advance(RequestState.FETCHING)
        try:
            response = await self.store.list_objects_v2(
                prefix=prefix,
                delimiter=get_query_param(url, "delimiter"),
                **self._list_params(url, event.kind),
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Listing the backing store failed", extra={"key": prefix})
            lifecycle.fail()
            return error_from_exception(exc)

        lifecycle.advance(RequestState.TRANSFORMING)
        list_object = filter_directory_markers(list_object_from_response(response, event.kind))
        try:
            transformed = self.transform(list_object)
        except Exception as exc:
            logger.exception("List transform failed", extra={"key": prefix})
            lifecycle.fail()
            return error_response(TransformError(str(exc)))
        return self.write_response(lifecycle, transformed)

    async def handle_original(
        self, event: ObjectLambdaEvent, lifecycle: RequestLifecycle
    ) -> ListObjectsResponse | ErrorResponse:
        """Serve a listing from the access point's presigned URL, untransformed."""
        lifecycle.advance(RequestState.FETCHING)
        try:
            response = await make_original_request(
                self.http_client, event.context.input_s3_url, event.user_request, "GET"
            )
        except httpx.HTTPError as exc:
            logger.exception("Fetching the original listing failed")
            lifecycle.fail()
            return error_from_exception(exc)

        if not response.is_success:
            # Errors in the original response are forwarded as-is.
            lifecycle.fail()
            return response_for_upstream_failure(response)

        lifecycle.advance(RequestState.TRANSFORMING)
        parsed = parse_list_objects_xml(response.content)
        if parsed is None:
            logger.warning("Failure parsing the listing from the access point")
            lifecycle.fail()
            return build_error(event.context, NoSuchKey("Requested key does not exist"))
        return self.write_response(lifecycle, parsed)

    def write_response(
        self, lifecycle: RequestLifecycle, list_object: ListObject
    ) -> ListObjectsResponse | ErrorResponse:
        """Serialize a listing into the response expected by the access point."""
        xml = render_list_objects_xml(list_object)
        if xml is None:
            logger.warning("Failed transforming the listing back to XML")
            lifecycle.fail()
            return error_response(TransformError(SERIALIZATION_FAILED))
        lifecycle.advance(RequestState.RESPONDING)
        logger.debug("Returning %d list entries", len(list_object.contents))
        return ListObjectsResponse(status_code=200, list_result_xml=xml)

    @staticmethod
    def _list_params(url: str, kind: EventKind) -> dict[str, Any]:
        params: dict[str, Any] = {}
        max_keys = get_query_param(url, "max-keys")
        if max_keys and max_keys.isdigit():
            params["MaxKeys"] = int(max_keys)
        encoding_type = get_query_param(url, "encoding-type")
        if encoding_type:
            params["EncodingType"] = encoding_type
        if kind is EventKind.LIST_OBJECTS:
            params["StartAfter"] = get_query_param(url, "marker")
        else:
            params["ContinuationToken"] = get_query_param(url, "continuation-token")
            params["StartAfter"] = get_query_param(url, "start-after")
        return params
