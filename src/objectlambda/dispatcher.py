"""Routing of Object Lambda events to the operation handlers.

The dispatcher is the outermost boundary of an invocation: whatever
happens in a handler, exactly one well-formed response leaves it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from objectlambda import metrics
from objectlambda.config import ObjectLambdaConfig
from objectlambda.error_response import error_from_exception
from objectlambda.handlers.list import ListObjectsHandler
from objectlambda.handlers.object import GetObjectHandler, HeadObjectHandler
from objectlambda.models import (
    ErrorResponse,
    EventKind,
    GetObjectResponse,
    HeadersTransform,
    ListTransform,
    ObjectLambdaEvent,
    ObjectLambdaResponse,
    ObjectTransform,
    identity,
)
from objectlambda.storage.aws import AccessPointWriter, AWSBackingStore
from objectlambda.storage.backend import BackingStore, ResponseWriter

logger = logging.getLogger(__name__)


@dataclass
class Transforms:
    """The transformations applied per operation. Identity by default."""

    get_object: ObjectTransform = identity
    head_object: HeadersTransform = identity
    list_objects: ListTransform = identity
    list_objects_v2: ListTransform = identity


class Dispatcher:
    """Routes each event to the handler for its operation.

    Attributes:
        store: The backing store shared by all handlers.
        writer: Client used for WriteGetObjectResponse.
        http_client: Client used for presigned requests.
    """

    def __init__(
        self,
        store: BackingStore,
        writer: ResponseWriter,
        http_client: httpx.AsyncClient,
        transforms: Transforms | None = None,
        bypass_prefix: str = "verify_",
        part_size: int = 5 * 1024 * 1024,
        presign_expires: int = 300,
    ) -> None:
        transforms = transforms or Transforms()
        self.store = store
        self.writer = writer
        self.http_client = http_client
        options = {
            "bypass_prefix": bypass_prefix,
            "part_size": part_size,
            "presign_expires": presign_expires,
        }
        self.get_object = GetObjectHandler(
            store, http_client, writer, transform=transforms.get_object, **options
        )
        self.head_object = HeadObjectHandler(
            store, http_client, transform=transforms.head_object, **options
        )
        self.list_objects = ListObjectsHandler(
            store, http_client, transform=transforms.list_objects, bypass_prefix=bypass_prefix
        )
        self.list_objects_v2 = ListObjectsHandler(
            store, http_client, transform=transforms.list_objects_v2, bypass_prefix=bypass_prefix
        )

    @classmethod
    def from_config(
        cls, config: ObjectLambdaConfig, transforms: Transforms | None = None
    ) -> "Dispatcher":
        """Create a dispatcher and its clients from configuration.

        The aiobotocore clients connect lazily on first use, inside the
        event loop that serves the invocation.
        """
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.transform.fetch_timeout),
            trust_env=False,
        )
        return cls(
            store=AWSBackingStore.from_config(config.backing_store),
            writer=AccessPointWriter.from_config(config.access_point),
            http_client=http_client,
            transforms=transforms,
            bypass_prefix=config.transform.bypass_prefix,
            part_size=config.transform.part_size,
            presign_expires=config.backing_store.presign_expires,
        )

    async def close(self) -> None:
        """Close all clients. Not needed in the Lambda runtime."""
        await self.http_client.aclose()
        await self.store.close()
        await self.writer.close()

    async def dispatch(self, event: dict[str, Any]) -> dict[str, Any] | None:
        """Handle one invocation event.

        Args:
            event: The raw Object Lambda event.

        Returns:
            The response payload for the access point, or None for an event
            with no supported operation context.
        """
        try:
            parsed = ObjectLambdaEvent.from_dict(event)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Malformed event rejected", exc_info=True)
            return None
        if parsed is None:
            logger.warning("Event has no supported operation context: %s", sorted(event))
            return None

        operation = parsed.kind.name
        started = time.monotonic()
        try:
            result = await self._route(parsed)
        except Exception as exc:
            logger.exception("Unhandled exception in %s handler", operation)
            result = error_from_exception(exc)
            if parsed.kind is EventKind.GET_OBJECT:
                await self._write_get_error(parsed, result)

        if result is None:
            return None

        duration_ms = round((time.monotonic() - started) * 1000, 2)
        bytes_sent = len(result.body) if isinstance(result, GetObjectResponse) else 0
        metrics.record_operation(operation, result.status_code, bytes_sent)
        logger.info(
            "%s completed with %d",
            operation,
            result.status_code,
            extra={
                "operation": operation,
                "status": result.status_code,
                "duration_ms": duration_ms,
            },
        )
        return result.to_dict()

    async def _route(self, event: ObjectLambdaEvent) -> ObjectLambdaResponse | None:
        match event.kind:
            case EventKind.GET_OBJECT:
                return await self.get_object.handle(event)
            case EventKind.HEAD_OBJECT:
                return await self.head_object.handle(event)
            case EventKind.LIST_OBJECTS:
                return await self.list_objects.handle(event)
            case EventKind.LIST_OBJECTS_V2:
                return await self.list_objects_v2.handle(event)
            case _:
                logger.warning("No handler for operation %s", event.kind)
                return None

    async def _write_get_error(self, event: ObjectLambdaEvent, error: ErrorResponse) -> None:
        try:
            await self.get_object.write_error(None, event.context, error)
        except Exception:
            logger.exception("Could not send the error to the access point")
