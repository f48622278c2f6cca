"""Object-level Object Lambda handlers.

Implements:
    - GetObject: fetch, transform the body, apply Range/partNumber and send
      the result through WriteGetObjectResponse.
    - HeadObject: fetch, transform the headers, apply Range/partNumber and
      return the headers.

Errors in the backing store response are forwarded to the caller without
invoking the transform.
"""

import logging

import httpx
from httpx import Headers

from objectlambda.error_response import (
    error_from_exception,
    error_response,
    response_for_upstream_failure,
)
from objectlambda.errors import TransformError
from objectlambda.handlers.lifecycle import RequestLifecycle
from objectlambda.models import (
    ErrorResponse,
    GetObjectResponse,
    HeadObjectResponse,
    HeadersTransform,
    ObjectContext,
    ObjectLambdaEvent,
    ObjectTransform,
    RequestState,
    UserRequest,
    identity,
)
from objectlambda.range_mapper import CONTENT_RANGE, DEFAULT_PART_SIZE
from objectlambda.request import (
    MAX_PRESIGN_EXPIRES,
    apply_range_or_part_number,
    apply_range_or_part_number_headers,
    make_backing_store_request,
    make_original_request,
    object_key_from_url,
)
from objectlambda.storage.backend import BackingStore, ResponseWriter

logger = logging.getLogger(__name__)

# Headers that describe the original representation or the connection and
# are not valid for the transformed object.
_DROPPED_RESPONSE_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "content-md5",
    "x-amz-request-id",
    "x-amz-id-2",
}


def _prepare_response_headers(headers: Headers) -> Headers:
    return Headers(
        [
            (name, value)
            for name, value in headers.items()
            if name.lower() not in _DROPPED_RESPONSE_HEADERS
        ]
    )


class _ObjectHandler:
    """Shared fetch logic for GetObject and HeadObject.

    Attributes:
        store: The backing store holding the original objects.
        http_client: Client used for presigned and original requests.
        bypass_prefix: Keys starting with this prefix are fetched through
            the access point's own presigned URL and left untransformed.
        part_size: Part size used for partNumber requests.
        presign_expires: Lifetime of backing store presigned URLs.
    """

    operation = ""

    def __init__(
        self,
        store: BackingStore,
        http_client: httpx.AsyncClient,
        bypass_prefix: str = "verify_",
        part_size: int = DEFAULT_PART_SIZE,
        presign_expires: int = MAX_PRESIGN_EXPIRES,
    ) -> None:
        self.store = store
        self.http_client = http_client
        self.bypass_prefix = bypass_prefix
        self.part_size = part_size
        self.presign_expires = presign_expires

    def is_bypass(self, key: str) -> bool:
        return bool(self.bypass_prefix) and key.startswith(self.bypass_prefix)

    async def _fetch(
        self, context: ObjectContext, user_request: UserRequest, method: str
    ) -> httpx.Response:
        key = object_key_from_url(context.input_s3_url)
        if self.is_bypass(key):
            logger.info("Fetching %s through the access point", key, extra={"key": key})
            return await make_original_request(
                self.http_client, context.input_s3_url, user_request, method
            )
        return await make_backing_store_request(
            self.store,
            self.http_client,
            context.input_s3_url,
            user_request,
            method,
            expires_in=self.presign_expires,
        )


class GetObjectHandler(_ObjectHandler):
    """Handles GetObject requests.

    Performs the following steps:
        1. Fetches the original object from the backing store.
        2. Applies the transform to the body.
        3. Applies the Range or partNumber of the user request.
        4. Sends the result to the access point with WriteGetObjectResponse.
    """

    operation = "GetObject"

    def __init__(
        self,
        store: BackingStore,
        http_client: httpx.AsyncClient,
        writer: ResponseWriter,
        transform: ObjectTransform = identity,
        **kwargs,
    ) -> None:
        super().__init__(store, http_client, **kwargs)
        self.writer = writer
        self.transform = transform

    async def handle(self, event: ObjectLambdaEvent) -> GetObjectResponse | ErrorResponse:
        context = event.context
        user_request = event.user_request
        key = object_key_from_url(context.input_s3_url)
        lifecycle = RequestLifecycle(self.operation, key)

        lifecycle.advance(RequestState.FETCHING)
        try:
            response = await self._fetch(context, user_request, "GET")
        except httpx.HTTPError as exc:
            logger.exception("Fetching %s failed", key, extra={"key": key})
            return await self.write_error(lifecycle, context, error_from_exception(exc))

        if response.status_code != 304 and not response.is_success:
            # Errors in the backing store response bypass the transform.
            return await self.write_error(
                lifecycle, context, response_for_upstream_failure(response)
            )

        lifecycle.advance(RequestState.TRANSFORMING)
        if response.status_code == 304:
            lifecycle.advance(RequestState.RESPONDING)
            await self.writer.write_get_object_response(
                route=context.output_route or "",
                token=context.output_token or "",
                status_code=304,
            )
            return GetObjectResponse(status_code=304)

        original = response.content
        if self.is_bypass(key):
            transformed = original
        else:
            try:
                transformed = self.transform(original)
            except Exception as exc:
                logger.exception("Transform of %s failed", key, extra={"key": key})
                return await self.write_error(
                    lifecycle, context, error_response(TransformError(str(exc)))
                )

        selection = apply_range_or_part_number(transformed, user_request, self.part_size)
        if selection.has_error:
            return await self.write_error(lifecycle, context, selection.error_response)

        headers = Headers()
        status_code = 200
        if selection.headers is not None and CONTENT_RANGE in selection.headers:
            headers[CONTENT_RANGE] = selection.headers[CONTENT_RANGE]
            status_code = 206
        content_type = response.headers.get("content-type")
        if content_type and transformed is original:
            headers["Content-Type"] = content_type

        lifecycle.advance(RequestState.RESPONDING)
        body = selection.object or b""
        await self.writer.write_get_object_response(
            route=context.output_route or "",
            token=context.output_token or "",
            status_code=status_code,
            body=body,
            headers=dict(headers.items()),
        )
        logger.info(
            "Sent %d bytes for %s",
            len(body),
            key,
            extra={"operation": self.operation, "key": key, "status": status_code},
        )
        return GetObjectResponse(status_code=status_code, body=body, headers=headers)

    async def write_error(
        self,
        lifecycle: RequestLifecycle | None,
        context: ObjectContext,
        error: ErrorResponse,
    ) -> ErrorResponse:
        """Send an error through WriteGetObjectResponse and return it."""
        if lifecycle is not None:
            lifecycle.fail()
        if context.output_route and context.output_token:
            await self.writer.write_get_object_response(
                route=context.output_route,
                token=context.output_token,
                status_code=error.status_code,
                error_code=error.error_code,
                error_message=error.error_message,
            )
        else:
            logger.warning("GetObject context has no output route; error not written")
        return error


class HeadObjectHandler(_ObjectHandler):
    """Handles HeadObject requests.

    Performs the following steps:
        1. Fetches the original object's headers from the backing store.
        2. Applies the transform to the headers.
        3. Applies the Range or partNumber of the user request.
        4. Returns the headers to the access point.
    """

    operation = "HeadObject"

    def __init__(
        self,
        store: BackingStore,
        http_client: httpx.AsyncClient,
        transform: HeadersTransform = identity,
        **kwargs,
    ) -> None:
        super().__init__(store, http_client, **kwargs)
        self.transform = transform

    async def handle(self, event: ObjectLambdaEvent) -> HeadObjectResponse | ErrorResponse:
        context = event.context
        user_request = event.user_request
        key = object_key_from_url(context.input_s3_url)
        lifecycle = RequestLifecycle(self.operation, key)

        lifecycle.advance(RequestState.FETCHING)
        try:
            response = await self._fetch(context, user_request, "HEAD")
        except httpx.HTTPError as exc:
            logger.exception("Fetching %s failed", key, extra={"key": key})
            lifecycle.fail()
            return error_from_exception(exc)

        if response.status_code != 304 and not response.is_success:
            lifecycle.fail()
            return response_for_upstream_failure(response)

        lifecycle.advance(RequestState.TRANSFORMING)
        original = _prepare_response_headers(response.headers)
        if response.status_code == 304:
            lifecycle.advance(RequestState.RESPONDING)
            return HeadObjectResponse(status_code=304, headers=original)

        if self.is_bypass(key):
            transformed = original
        else:
            try:
                transformed = self.transform(original)
            except Exception as exc:
                logger.exception("Header transform of %s failed", key, extra={"key": key})
                lifecycle.fail()
                return error_response(TransformError(str(exc)))

        selection = apply_range_or_part_number_headers(
            Headers(transformed), user_request, self.part_size
        )
        if selection.has_error:
            lifecycle.fail()
            return selection.error_response

        lifecycle.advance(RequestState.RESPONDING)
        return HeadObjectResponse(status_code=200, headers=selection.headers)
