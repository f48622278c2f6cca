"""Tests for the ListObjects / ListObjectsV2 handler."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
from botocore.exceptions import ClientError

from objectlambda.handlers.list import (
    SERIALIZATION_FAILED,
    ListObjectsHandler,
    list_object_from_response,
)
from objectlambda.models import (
    ErrorResponse,
    EventKind,
    ListContent,
    ListObjectsResponse,
    ObjectLambdaEvent,
)
from objectlambda.xml_utils import parse_list_objects_xml

SDK_RESPONSE = {
    "IsTruncated": True,
    "Name": "origin-bucket",
    "Prefix": "docs/",
    "Delimiter": "/",
    "MaxKeys": 2,
    "KeyCount": 2,
    "NextContinuationToken": "next-token",
    "Contents": [
        {
            "Key": "docs/",
            "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "ETag": '"d41d8cd98f00b204e9800998ecf8427e"',
            "Size": 0,
            "StorageClass": "STANDARD",
        },
        {
            "Key": "docs/readme.md",
            "LastModified": datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc),
            "ETag": '"abc"',
            "ChecksumAlgorithm": ["CRC32"],
            "Size": 120,
            "StorageClass": "STANDARD",
        },
    ],
    "CommonPrefixes": [{"Prefix": "docs/img/"}],
}

ORIGINAL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
<Name>bucket</Name><Prefix>verify_</Prefix><KeyCount>2</KeyCount><MaxKeys>1000</MaxKeys>
<IsTruncated>false</IsTruncated>
<Contents><Key>verify_dir/</Key><Size>0</Size></Contents>
<Contents><Key>verify_a.txt</Key><Size>4</Size></Contents>
</ListBucketResult>"""


def _event(make_event, kind="listObjectsV2Context", query="list-type=2&prefix=docs%2F"):
    return ObjectLambdaEvent.from_dict(make_event(kind=kind, path="/", query=query))


def _client_error(code: str, status: int) -> ClientError:
    """Create a botocore ClientError with the given error code."""
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "ListObjectsV2",
    )


class TestListObjectFromResponse:
    """Tests for list_object_from_response()."""

    def test_v2_fields(self):
        obj = list_object_from_response(SDK_RESPONSE, EventKind.LIST_OBJECTS_V2)
        assert obj.is_truncated is True
        assert obj.key_count == 2
        assert obj.next_continuation_token == "next-token"
        assert obj.marker is None
        assert obj.contents[1].last_modified == "2024-01-02T03:04:05.678Z"
        assert obj.contents[1].checksum_algorithm == "CRC32"
        assert obj.common_prefixes == ["docs/img/"]

    def test_v1_fields(self):
        """V1 listings report Marker/NextMarker instead of tokens."""
        obj = list_object_from_response(SDK_RESPONSE, EventKind.LIST_OBJECTS)
        assert obj.marker == ""
        assert obj.next_marker == "docs/readme.md"
        assert obj.key_count is None
        assert obj.next_continuation_token is None

    def test_empty_response(self):
        response = {"IsTruncated": False, "MaxKeys": 1000}
        obj = list_object_from_response(response, EventKind.LIST_OBJECTS)
        assert obj.contents == []
        assert obj.next_marker is None


class TestListObjectsHandler:
    """Tests for ListObjectsHandler.handle()."""

    async def test_lists_backing_store(self, store, http_client, make_event):
        """Listings come from the backing store with directory markers removed."""
        store.list_objects_v2 = AsyncMock(return_value=SDK_RESPONSE)
        handler = ListObjectsHandler(store, http_client)
        query = "list-type=2&prefix=docs%2F&delimiter=%2F&max-keys=2&continuation-token=t1"
        event = _event(make_event, query=query)

        result = await handler.handle(event)

        assert isinstance(result, ListObjectsResponse)
        assert result.status_code == 200
        store.list_objects_v2.assert_awaited_once_with(
            prefix="docs/",
            delimiter="/",
            MaxKeys=2,
            ContinuationToken="t1",
            StartAfter=None,
        )
        parsed = parse_list_objects_xml(result.list_result_xml)
        assert [c.key for c in parsed.contents] == ["docs/readme.md"]
        assert parsed.common_prefixes == ["docs/img/"]
        assert result.to_dict()["listResultXml"] == result.list_result_xml

    async def test_v1_marker_passed_as_start_after(self, store, http_client, make_event):
        store.list_objects_v2 = AsyncMock(return_value={"IsTruncated": False, "MaxKeys": 1000})
        handler = ListObjectsHandler(store, http_client)
        await handler.handle(
            _event(make_event, kind="listObjectsContext", query="prefix=a&marker=a%2Fb")
        )
        assert store.list_objects_v2.await_args.kwargs["StartAfter"] == "a/b"

    async def test_transform_applied(self, store, http_client, make_event):
        store.list_objects_v2 = AsyncMock(return_value=SDK_RESPONSE)

        def rename(list_object):
            for content in list_object.contents:
                content.key = content.key.upper()
            return list_object

        handler = ListObjectsHandler(store, http_client, transform=rename)
        result = await handler.handle(_event(make_event))
        assert "<Key>DOCS/README.MD</Key>" in result.list_result_xml

    async def test_transform_exception(self, store, http_client, make_event):
        store.list_objects_v2 = AsyncMock(return_value=SDK_RESPONSE)
        transform = MagicMock(side_effect=KeyError("x"))
        handler = ListObjectsHandler(store, http_client, transform=transform)
        result = await handler.handle(_event(make_event))
        assert isinstance(result, ErrorResponse)
        assert (result.status_code, result.error_code) == (500, "TransformError")

    async def test_serialization_failure(self, store, http_client, make_event):
        """A transform producing an unrenderable listing is a 500 error."""
        store.list_objects_v2 = AsyncMock(return_value=SDK_RESPONSE)

        def drop_keys(list_object):
            list_object.contents.append(ListContent(key=""))
            return list_object

        handler = ListObjectsHandler(store, http_client, transform=drop_keys)
        result = await handler.handle(_event(make_event))
        assert result.status_code == 500
        assert result.error_message == SERIALIZATION_FAILED

    async def test_backing_store_error(self, store, http_client, make_event):
        store.list_objects_v2 = AsyncMock(side_effect=_client_error("AccessDenied", 403))
        handler = ListObjectsHandler(store, http_client)
        result = await handler.handle(_event(make_event))
        assert (result.status_code, result.error_code) == (403, "AccessDenied")


class TestBypassListing:
    """Tests for listings served from the access point's presigned URL."""

    async def test_original_listing_untransformed(self, store, http_client, upstream, make_event):
        """The original XML is parsed and re-serialized without changes."""
        upstream.response = httpx.Response(200, content=ORIGINAL_XML.encode())
        transform = MagicMock()
        handler = ListObjectsHandler(store, http_client, transform=transform)

        result = await handler.handle(_event(make_event, query="list-type=2&prefix=verify_"))

        assert result.status_code == 200
        transform.assert_not_called()
        store.list_objects_v2.assert_not_awaited()
        parsed = parse_list_objects_xml(result.list_result_xml)
        assert [c.key for c in parsed.contents] == ["verify_dir/", "verify_a.txt"]
        assert "prefix=verify_" in str(upstream.requests[0].url)

    async def test_original_error_forwarded(self, store, http_client, upstream, make_event):
        upstream.response = httpx.Response(
            403, content=b"<Error><Code>AccessDenied</Code><Message>Access Denied</Message></Error>"
        )
        handler = ListObjectsHandler(store, http_client)
        result = await handler.handle(_event(make_event, query="prefix=verify_x"))
        assert (result.status_code, result.error_code) == (403, "AccessDenied")

    async def test_original_redirect_forwarded(self, store, http_client, upstream, make_event):
        """A 3xx from the access point is not parsed as a listing."""
        upstream.response = httpx.Response(307)
        handler = ListObjectsHandler(store, http_client)
        result = await handler.handle(_event(make_event, query="prefix=verify_x"))
        assert isinstance(result, ErrorResponse)
        assert result.status_code == 307

    async def test_unparseable_original(self, store, http_client, upstream, make_event):
        upstream.response = httpx.Response(200, content=b"not xml")
        handler = ListObjectsHandler(store, http_client)
        result = await handler.handle(_event(make_event, query="prefix=verify_x"))
        assert (result.status_code, result.error_code) == (404, "NoSuchKey")
        assert result.error_message == "Requested key does not exist"
