"""Range and partNumber selection for transformed objects.

The access point forwards ``Range`` and ``partNumber`` to the function
instead of applying them to the original object, because the selection
must be made on the *transformed* bytes. These helpers apply the
selection to a body (GetObject) or to a header set (HeadObject).
"""

import re

from httpx import Headers

from objectlambda.error_response import error_response
from objectlambda.errors import InvalidPartNumber, InvalidRange, ObjectLambdaError
from objectlambda.models import RangeResponse

CONTENT_LENGTH = "Content-Length"
CONTENT_RANGE = "Content-Range"
PARTS_COUNT = "x-amz-mp-parts-count"

# Part size used to split a transformed object into parts (S3 minimum).
DEFAULT_PART_SIZE = 5 * 1024 * 1024

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


# ---------------------------------------------------------------------------
# Range parsing
# ---------------------------------------------------------------------------


def parse_range_header(header: str, total: int) -> tuple[int, int]:
    """Parse an HTTP Range header into (start, end) byte offsets.

    Supports three forms:
        - bytes=start-end  (both specified)
        - bytes=start-     (suffix from start to end of file)
        - bytes=-suffix    (last N bytes)

    Args:
        header: The Range header value, e.g. "bytes=0-4".
        total: The total size of the resource in bytes.

    Returns:
        A (start, end) tuple of inclusive byte offsets.

    Raises:
        InvalidRange: If the header is malformed, names more than one
            range, or is not satisfiable for ``total`` bytes.
    """
    message = f"Cannot process specified range: {header}"
    if not header:
        raise InvalidRange(message)

    # Only a single range is supported
    if "," in header:
        raise InvalidRange(message)

    m = _RANGE_RE.match(header.strip())
    if not m:
        raise InvalidRange(message)

    start_str, end_str = m.group(1), m.group(2)

    if not start_str and not end_str:
        raise InvalidRange(message)

    if total == 0:
        raise InvalidRange(message)

    if not start_str:
        # Suffix range: bytes=-N  -> last N bytes
        suffix_length = int(end_str)
        if suffix_length == 0:
            raise InvalidRange(message)
        start = max(total - suffix_length, 0)
        end = total - 1
    elif not end_str:
        # Open-ended: bytes=N-  -> from N to end
        start = int(start_str)
        if start >= total:
            raise InvalidRange(message)
        end = total - 1
    else:
        start = int(start_str)
        end = int(end_str)
        if start > end or start >= total:
            raise InvalidRange(message)
        end = min(end, total - 1)

    return start, end


def _parse_part_number(part_number: str) -> int:
    message = f"Cannot specify part number: {part_number}. Use a number from 1 to 10000."
    value = part_number.strip() if part_number else ""
    if not (value.isascii() and value.isdigit()):
        raise InvalidPartNumber(message)
    number = int(value)
    if number < 1 or number > 10000:
        raise InvalidPartNumber(message)
    return number


def part_bounds(
    part_number: str, total: int, part_size: int = DEFAULT_PART_SIZE, parts_count: int | None = None
) -> tuple[int, int]:
    """Compute the byte span covered by a part.

    Objects no larger than ``part_size`` are single-part: only part 1 is
    valid and it covers the whole object, including an empty one.

    Args:
        part_number: The raw partNumber value.
        total: The total size of the object in bytes.
        part_size: Size of every part but the last.
        parts_count: Declared part count, when the object reports one.

    Returns:
        A (start, end) tuple where ``end`` is exclusive.

    Raises:
        InvalidPartNumber: If the value is not a positive integer or names a
            part the object does not have.
    """
    number = _parse_part_number(part_number)
    if parts_count is None:
        parts_count = max(1, -(-total // part_size))
    if number > parts_count:
        raise InvalidPartNumber(
            f"The requested partnumber is not satisfiable: {part_number} "
            f"(object has {parts_count} part(s))"
        )
    if parts_count == 1:
        return 0, total
    start = (number - 1) * part_size
    if start >= total:
        raise InvalidPartNumber(f"The requested partnumber is not satisfiable: {part_number}")
    return start, min(start + part_size, total)


def _error(exc: ObjectLambdaError) -> RangeResponse:
    return RangeResponse(has_error=True, error_response=error_response(exc))


def _content_length(headers: Headers) -> int | None:
    try:
        return int(headers.get(CONTENT_LENGTH, ""))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def map_range(range_spec: str, buffer: bytes) -> RangeResponse:
    """Select the bytes named by a Range value from a transformed object.

    The result carries a ``Content-Range`` header describing the selection.
    """
    try:
        start, end = parse_range_header(range_spec, len(buffer))
    except InvalidRange as exc:
        return _error(exc)
    return RangeResponse(
        object=buffer[start:end + 1],
        headers=Headers({CONTENT_RANGE: f"bytes {start}-{end}/{len(buffer)}"}),
    )


def map_range_head(range_spec: str, headers: Headers) -> RangeResponse:
    """Adjust HeadObject headers to describe the requested range.

    ``Content-Length`` becomes the length of the range and a
    ``Content-Range`` header is added.
    """
    total = _content_length(headers)
    if total is None:
        return _error(InvalidRange(f"Cannot process specified range: {range_spec}"))
    try:
        start, end = parse_range_header(range_spec, total)
    except InvalidRange as exc:
        return _error(exc)

    result = Headers(headers)
    result[CONTENT_LENGTH] = str(end - start + 1)
    result[CONTENT_RANGE] = f"bytes {start}-{end}/{total}"
    return RangeResponse(headers=result)


def map_part_number(
    part_number: str, buffer: bytes, part_size: int = DEFAULT_PART_SIZE
) -> RangeResponse:
    """Select one part of a transformed object.

    A single-part object is returned whole, without a ``Content-Range``.
    """
    try:
        start, end = part_bounds(part_number, len(buffer), part_size)
    except InvalidPartNumber as exc:
        return _error(exc)
    if start == 0 and end == len(buffer):
        return RangeResponse(object=buffer)
    return RangeResponse(
        object=buffer[start:end],
        headers=Headers({CONTENT_RANGE: f"bytes {start}-{end - 1}/{len(buffer)}"}),
    )


def map_part_number_head(
    part_number: str, headers: Headers, part_size: int = DEFAULT_PART_SIZE
) -> RangeResponse:
    """Adjust HeadObject headers to describe one part of the object.

    A ``x-amz-mp-parts-count`` header on the upstream response is taken as
    the object's part count.
    """
    total = _content_length(headers)
    if total is None:
        return _error(InvalidPartNumber(f"Cannot specify part number: {part_number}"))

    parts_count = None
    if PARTS_COUNT in headers:
        try:
            parts_count = int(headers[PARTS_COUNT])
        except ValueError:
            parts_count = None

    try:
        start, end = part_bounds(part_number, total, part_size, parts_count)
    except InvalidPartNumber as exc:
        return _error(exc)

    result = Headers(headers)
    result[CONTENT_LENGTH] = str(end - start)
    if end > start:
        result[CONTENT_RANGE] = f"bytes {start}-{end - 1}/{total}"
    result[PARTS_COUNT] = str(parts_count or max(1, -(-total // part_size)))
    return RangeResponse(headers=result)
