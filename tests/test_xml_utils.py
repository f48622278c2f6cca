"""Tests for S3 list-objects XML parsing and rendering."""

import pytest

from objectlambda.handlers.list import filter_directory_markers
from objectlambda.models import ListContent, ListObject, ListOwner
from objectlambda.xml_utils import (
    parse_error,
    parse_list_objects_xml,
    render_list_objects_xml,
)

V1_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Name>bucket</Name>
  <Prefix>photos/</Prefix>
  <Marker></Marker>
  <NextMarker>photos/b.jpg</NextMarker>
  <MaxKeys>2</MaxKeys>
  <Delimiter>/</Delimiter>
  <IsTruncated>true</IsTruncated>
  <Contents>
    <Key>photos/a.jpg</Key>
    <LastModified>2024-01-01T00:00:00.000Z</LastModified>
    <ETag>"abc"</ETag>
    <Size>42</Size>
    <StorageClass>STANDARD</StorageClass>
  </Contents>
  <CommonPrefixes><Prefix>photos/2024/</Prefix></CommonPrefixes>
</ListBucketResult>"""

V2_XML = """<ListBucketResult>
  <Name>bucket</Name>
  <Prefix></Prefix>
  <ContinuationToken>tok1</ContinuationToken>
  <NextContinuationToken>tok2</NextContinuationToken>
  <KeyCount>1</KeyCount>
  <MaxKeys>1000</MaxKeys>
  <IsTruncated>false</IsTruncated>
  <Contents>
    <Key>a &amp; b.txt</Key>
    <Size>3</Size>
    <Owner><ID>owner-id</ID><DisplayName>me</DisplayName></Owner>
  </Contents>
</ListBucketResult>"""


def _sample() -> ListObject:
    return ListObject(
        is_truncated=True,
        max_keys=10,
        name="bucket",
        prefix="docs/",
        delimiter="/",
        continuation_token="abc",
        next_continuation_token="def",
        key_count=2,
        contents=[
            ListContent(
                key="docs/a.txt",
                last_modified="2024-01-01T00:00:00.000Z",
                size=10,
                etag='"e1"',
                storage_class="STANDARD",
            ),
            ListContent(
                key="docs/<b> & c.txt",
                last_modified="2024-02-01T00:00:00.000Z",
                size=0,
                owner=ListOwner(id="123", display_name="owner"),
            ),
        ],
        common_prefixes=["docs/sub/"],
    )


class TestParseError:
    """Tests for parse_error()."""

    def test_parse_error(self):
        """parse_error extracts code and message."""
        xml = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            "<Error><Code>AccessDenied</Code><Message>Access Denied</Message>"
            "<Resource>/k</Resource><RequestId>r1</RequestId></Error>"
        )
        assert parse_error(xml) == ("AccessDenied", "Access Denied")

    @pytest.mark.parametrize("body", [b"", b"not xml", b"<ListBucketResult/>", b"<Error/>"])
    def test_parse_error_rejects_other_bodies(self, body):
        """Non-error documents yield None."""
        assert parse_error(body) is None


class TestParseListObjects:
    """Tests for parse_list_objects_xml()."""

    def test_parse_v1(self):
        """V1 documents expose Marker/NextMarker."""
        obj = parse_list_objects_xml(V1_XML)
        assert obj is not None
        assert obj.name == "bucket"
        assert obj.prefix == "photos/"
        assert obj.marker == ""
        assert obj.next_marker == "photos/b.jpg"
        assert obj.max_keys == 2
        assert obj.delimiter == "/"
        assert obj.is_truncated is True
        assert obj.continuation_token is None
        assert [c.key for c in obj.contents] == ["photos/a.jpg"]
        assert obj.contents[0].size == 42
        assert obj.contents[0].etag == '"abc"'
        assert obj.common_prefixes == ["photos/2024/"]

    def test_parse_v2_without_namespace(self):
        """V2 documents expose continuation tokens; the namespace is optional."""
        obj = parse_list_objects_xml(V2_XML)
        assert obj.continuation_token == "tok1"
        assert obj.next_continuation_token == "tok2"
        assert obj.key_count == 1
        assert obj.marker is None
        assert obj.is_truncated is False
        assert obj.contents[0].key == "a & b.txt"
        assert obj.contents[0].owner == ListOwner(id="owner-id", display_name="me")
        assert obj.contents[0].last_modified is None

    def test_parse_bytes(self):
        """Raw response bytes are accepted."""
        assert parse_list_objects_xml(V1_XML.encode()) is not None

    @pytest.mark.parametrize(
        "xml",
        [
            "",
            "<ListBucketResult>",
            "<Error><Code>NoSuchKey</Code></Error>",
            "<ListBucketResult><MaxKeys>many</MaxKeys></ListBucketResult>",
            "<ListBucketResult><Contents><Size>1</Size></Contents></ListBucketResult>",
        ],
    )
    def test_invalid_documents_return_none(self, xml):
        """Malformed XML, wrong roots and invalid fields yield None."""
        assert parse_list_objects_xml(xml) is None

    def test_directory_markers_filtered(self):
        """Zero-byte keys ending in "/" are dropped by the filtering step."""
        xml = (
            "<ListBucketResult><Contents><Key>a/</Key><Size>0</Size></Contents>"
            "<Contents><Key>b.txt</Key><Size>10</Size>"
            "<LastModified>2024-01-01T00:00:00Z</LastModified></Contents></ListBucketResult>"
        )
        obj = filter_directory_markers(parse_list_objects_xml(xml))
        assert len(obj.contents) == 1
        assert obj.contents[0].key == "b.txt"
        assert obj.contents[0].size == 10
        assert obj.contents[0].last_modified == "2024-01-01T00:00:00Z"

    def test_non_empty_directory_keys_kept(self):
        """Keys ending in "/" with content, and empty files, are not markers."""
        obj = ListObject(
            contents=[
                ListContent(key="dir/", size=5),
                ListContent(key="empty.txt", size=0),
                ListContent(key="marker/", size=0),
            ]
        )
        assert [c.key for c in filter_directory_markers(obj).contents] == ["dir/", "empty.txt"]


class TestRenderListObjects:
    """Tests for render_list_objects_xml()."""

    def test_round_trip(self):
        """parse(render(x)) == x."""
        obj = _sample()
        assert parse_list_objects_xml(render_list_objects_xml(obj)) == obj

    def test_round_trip_v1(self):
        """V1 listings survive a round trip, including empty strings."""
        obj = parse_list_objects_xml(V1_XML)
        assert parse_list_objects_xml(render_list_objects_xml(obj)) == obj

    def test_round_trip_empty(self):
        """An empty listing survives a round trip."""
        obj = ListObject()
        assert parse_list_objects_xml(render_list_objects_xml(obj)) == obj

    def test_element_order(self):
        """Elements follow the ListBucketResult order."""
        xml = render_list_objects_xml(_sample())
        order = [
            "<Name>",
            "<Prefix>docs/</Prefix>",
            "<ContinuationToken>",
            "<KeyCount>",
            "<MaxKeys>",
            "<Delimiter>",
            "<IsTruncated>",
            "<NextContinuationToken>",
            "<Contents>",
            "<CommonPrefixes>",
            "</ListBucketResult>",
        ]
        positions = [xml.index(tag) for tag in order]
        assert positions == sorted(positions)
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert 'xmlns="http://s3.amazonaws.com/doc/2006-03-01/"' in xml

    def test_unset_fields_omitted(self):
        """Optional fields that are None are not rendered."""
        xml = render_list_objects_xml(ListObject(contents=[ListContent(key="k")]))
        assert "<Marker>" not in xml
        assert "<ContinuationToken>" not in xml
        assert "<LastModified>" not in xml
        assert "<IsTruncated>false</IsTruncated>" in xml
        assert "<Size>0</Size>" in xml

    def test_escapes_keys(self):
        """Keys are XML-escaped."""
        xml = render_list_objects_xml(ListObject(contents=[ListContent(key="a<b>&c")]))
        assert "<Key>a&lt;b&gt;&amp;c</Key>" in xml

    def test_missing_key_returns_none(self):
        """A Contents entry without a key cannot be rendered."""
        obj = ListObject(contents=[ListContent(key="")])
        assert render_list_objects_xml(obj) is None
        obj.contents[0].key = None
        assert render_list_objects_xml(obj) is None

    def test_dict_input(self):
        """Plain dicts with ListObject field names are accepted."""
        xml = render_list_objects_xml(
            {"is_truncated": False, "max_keys": 5, "contents": [{"key": "x", "size": 1}]}
        )
        assert "<Key>x</Key>" in xml
        assert "<MaxKeys>5</MaxKeys>" in xml

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "xml",
            {"unknown_field": 1},
            {"contents": [{"size": 1}]},
            {"contents": ["k"]},
        ],
    )
    def test_structurally_invalid_input(self, value):
        """Inputs that are not list results yield None."""
        assert render_list_objects_xml(value) is None
