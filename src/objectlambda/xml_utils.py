"""S3 list-objects XML parsing and rendering helpers."""

import logging
import xml.etree.ElementTree as ET
from typing import Any
from xml.sax.saxutils import escape as _sax_escape

from objectlambda.models import ListContent, ListObject, ListOwner

logger = logging.getLogger(__name__)

S3_NS = "http://s3.amazonaws.com/doc/2006-03-01/"
_NS = f"{{{S3_NS}}}"

# Scalar ListBucketResult children, in the order they are rendered.
# (element name, ListObject attribute, kind)
_SCALAR_FIELDS: list[tuple[str, str, str]] = [
    ("Name", "name", "str"),
    ("Prefix", "prefix", "str"),
    ("Marker", "marker", "str"),
    ("ContinuationToken", "continuation_token", "str"),
    ("StartAfter", "start_after", "str"),
    ("KeyCount", "key_count", "int"),
    ("MaxKeys", "max_keys", "int"),
    ("Delimiter", "delimiter", "str"),
    ("EncodingType", "encoding_type", "str"),
    ("IsTruncated", "is_truncated", "bool"),
    ("NextMarker", "next_marker", "str"),
    ("NextContinuationToken", "next_continuation_token", "str"),
]

_CONTENT_FIELDS: list[tuple[str, str, str]] = [
    ("Key", "key", "str"),
    ("LastModified", "last_modified", "str"),
    ("ETag", "etag", "str"),
    ("ChecksumAlgorithm", "checksum_algorithm", "str"),
    ("Size", "size", "int"),
    ("StorageClass", "storage_class", "str"),
]


def _escape_xml(value: str) -> str:
    """Escape special XML characters in a string value.

    Args:
        value: The raw string to escape.

    Returns:
        The XML-safe escaped string.
    """
    return _sax_escape(str(value))


def _format_value(value: Any, kind: str) -> str:
    if kind == "bool":
        return str(bool(value)).lower()
    if kind == "int":
        return str(int(value))
    return _escape_xml(value)


def parse_error(body: str | bytes) -> tuple[str, str] | None:
    """Extract (Code, Message) from an S3 XML error body.

    Returns:
        The code and message, or None when the body is not an S3 error
        document.
    """
    if not body:
        return None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None
    if _local_name(root.tag) != "Error":
        return None
    code = _find_text(root, "Code")
    if not code:
        return None
    return code, _find_text(root, "Message") or ""


# ---------------------------------------------------------------------------
# ListBucketResult rendering
# ---------------------------------------------------------------------------


def _coerce_list_object(obj: ListObject | dict[str, Any]) -> ListObject | None:
    if isinstance(obj, ListObject):
        return obj
    if not isinstance(obj, dict):
        return None
    data = dict(obj)
    contents = []
    for entry in data.pop("contents", None) or []:
        if isinstance(entry, ListContent):
            contents.append(entry)
            continue
        if not isinstance(entry, dict):
            return None
        entry = dict(entry)
        owner = entry.pop("owner", None)
        if isinstance(owner, dict):
            owner = ListOwner(**owner)
        contents.append(ListContent(owner=owner, **entry))
    return ListObject(contents=contents, **data)


def render_list_objects_xml(obj: ListObject | dict[str, Any]) -> str | None:
    """Render a ListObject as an S3 ListBucketResult document.

    Works for both ListObjects (v1) and ListObjectsV2 results: only the
    fields set on ``obj`` are emitted, in the element order S3 uses.

    Args:
        obj: The list result, or a dict with ListObject field names.

    Returns:
        The XML string, or None if ``obj`` is structurally invalid (for
        example a Contents entry without a key).
    """
    try:
        list_object = _coerce_list_object(obj)
    except TypeError:
        logger.warning("List result has unexpected fields", exc_info=True)
        return None
    if list_object is None:
        logger.warning("List result is not a ListObject: %r", type(obj).__name__)
        return None

    try:
        parts = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<ListBucketResult xmlns="{S3_NS}">',
        ]

        for tag, attr, kind in _SCALAR_FIELDS:
            value = getattr(list_object, attr)
            if value is None:
                continue
            parts.append(f"<{tag}>{_format_value(value, kind)}</{tag}>")

        for content in list_object.contents:
            if not isinstance(content, ListContent) or not content.key:
                logger.warning("Contents entry without a key: %r", content)
                return None
            parts.append("<Contents>")
            for tag, attr, kind in _CONTENT_FIELDS:
                value = getattr(content, attr)
                if value is None:
                    continue
                parts.append(f"<{tag}>{_format_value(value, kind)}</{tag}>")
            if content.owner is not None:
                parts.append("<Owner>")
                if content.owner.id is not None:
                    parts.append(f"<ID>{_escape_xml(content.owner.id)}</ID>")
                if content.owner.display_name is not None:
                    parts.append(
                        f"<DisplayName>{_escape_xml(content.owner.display_name)}</DisplayName>"
                    )
                parts.append("</Owner>")
            parts.append("</Contents>")

        for prefix in list_object.common_prefixes:
            parts.append("<CommonPrefixes>")
            parts.append(f"<Prefix>{_escape_xml(prefix)}</Prefix>")
            parts.append("</CommonPrefixes>")
    except (TypeError, ValueError, AttributeError):
        logger.warning("List result could not be rendered", exc_info=True)
        return None

    parts.append("</ListBucketResult>")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# ListBucketResult parsing
# ---------------------------------------------------------------------------


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_elem(parent: ET.Element, name: str) -> ET.Element | None:
    """Find a child element, trying namespaced name first, then bare name."""
    elem = parent.find(f"{_NS}{name}")
    if elem is not None:
        return elem
    return parent.find(name)


def _find_all(parent: ET.Element, name: str) -> list[ET.Element]:
    return parent.findall(f"{_NS}{name}") + parent.findall(name)


def _find_text(parent: ET.Element, name: str) -> str | None:
    elem = _find_elem(parent, name)
    if elem is None:
        return None
    return elem.text or ""


def _parse_value(text: str, kind: str) -> Any:
    if kind == "bool":
        return text.strip().lower() == "true"
    if kind == "int":
        return int(text.strip())
    return text


def _parse_fields(elem: ET.Element, fields: list[tuple[str, str, str]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for tag, attr, kind in fields:
        text = _find_text(elem, tag)
        if text is not None:
            values[attr] = _parse_value(text, kind)
    return values


def _parse_content(elem: ET.Element) -> ListContent:
    values = _parse_fields(elem, _CONTENT_FIELDS)
    owner_elem = _find_elem(elem, "Owner")
    if owner_elem is not None:
        values["owner"] = ListOwner(
            id=_find_text(owner_elem, "ID"),
            display_name=_find_text(owner_elem, "DisplayName"),
        )
    if "key" not in values:
        raise ValueError("Contents entry without a Key")
    return ListContent(**values)


def parse_list_objects_xml(xml: str | bytes) -> ListObject | None:
    """Parse an S3 ListBucketResult document into a ListObject.

    Accepts both ListObjects (v1, Marker/NextMarker) and ListObjectsV2
    (ContinuationToken/NextContinuationToken) documents, with or without
    the S3 namespace.

    Args:
        xml: The raw XML body.

    Returns:
        The parsed ListObject, or None if the document is not well-formed
        or is not a ListBucketResult.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError:
        logger.warning("List result is not well-formed XML", exc_info=True)
        return None

    if _local_name(root.tag) != "ListBucketResult":
        logger.warning("Unexpected list result root element: %s", root.tag)
        return None

    try:
        values = _parse_fields(root, _SCALAR_FIELDS)
        contents = [_parse_content(elem) for elem in _find_all(root, "Contents")]
        common_prefixes = []
        for cp in _find_all(root, "CommonPrefixes"):
            prefix = _find_text(cp, "Prefix")
            if prefix is not None:
                common_prefixes.append(prefix)
    except ValueError:
        logger.warning("List result has invalid field values", exc_info=True)
        return None

    return ListObject(contents=contents, common_prefixes=common_prefixes, **values)
