"""Shared pytest fixtures for Object Lambda tests.

The backing store and the access point writer are AsyncMocks. Presigned
and original fetches go through an httpx.AsyncClient backed by a
MockTransport, so no network access is needed. Tests set
``upstream.response`` (or ``upstream.error``) to control what the
"backing store" answers.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

PRESIGNED_URL = "https://backing.example.com/bucket/key?X-Amz-Signature=sig"
INPUT_URL = "https://ap-123.s3-object-lambda.us-east-1.amazonaws.com"
USER_URL = "https://my-ap-123.s3-object-lambda.us-east-1.amazonaws.com"


def make_event(
    kind: str = "getObjectContext",
    path: str = "/photos/cat.jpg",
    query: str = "",
    headers: dict | None = None,
    user_query: str = "",
) -> dict:
    """Build a raw Object Lambda event for the given operation context."""
    input_url = f"{INPUT_URL}{path}"
    if query:
        input_url += f"?{query}"
    context = {"inputS3Url": input_url}
    if kind == "getObjectContext":
        context["outputRoute"] = "io-route"
        context["outputToken"] = "io-token"
    user_url = f"{USER_URL}{path}"
    if user_query:
        user_url += f"?{user_query}"
    return {
        "xAmzRequestId": "req-1",
        kind: context,
        "configuration": {"accessPointArn": "arn:aws:s3-object-lambda:::accesspoint/ap"},
        "userRequest": {"url": user_url, "headers": headers or {"Host": "example.com"}},
        "userIdentity": {"type": "IAMUser"},
        "protocolVersion": "1.00",
    }


class Upstream:
    """Programmable responder recording the requests it receives."""

    def __init__(self) -> None:
        self.response = httpx.Response(200, content=b"hello world")
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
async def http_client(upstream):
    """An httpx client whose every request is answered by ``upstream``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    yield client
    await client.aclose()


@pytest.fixture
def store() -> AsyncMock:
    """A mock backing store returning a fixed presigned URL."""
    mock = AsyncMock()
    mock.bucket_name = "origin-bucket"
    mock.presign = AsyncMock(return_value=PRESIGNED_URL)
    return mock


@pytest.fixture
def writer() -> AsyncMock:
    """A mock WriteGetObjectResponse client."""
    return AsyncMock()


@pytest.fixture(name="make_event")
def make_event_fixture():
    """Expose make_event() to tests."""
    return make_event
