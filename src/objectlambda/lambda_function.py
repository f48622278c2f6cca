"""AWS Lambda entry point for the Object Lambda transformer.

Configure the function handler as ``objectlambda.lambda_function.handler``.
The dispatcher, its clients and the event loop they are bound to are
created on the first invocation and reused for the lifetime of the
execution environment.
"""

import asyncio
import logging
from typing import Any

from objectlambda.config import config_from_env
from objectlambda.dispatcher import Dispatcher, Transforms
from objectlambda.logging_config import aws_request_id, configure_logging
from objectlambda.metrics import init_metrics

logger = logging.getLogger(__name__)

_loop: asyncio.AbstractEventLoop | None = None
_dispatcher: Dispatcher | None = None

# Transformations used by the deployed function. Replace the identity
# defaults to customize the output.
TRANSFORMS = Transforms()


def get_dispatcher() -> Dispatcher:
    """Return the process-wide dispatcher, creating it on first use."""
    global _dispatcher
    if _dispatcher is None:
        config = config_from_env()
        configure_logging(config.logging.level, config.logging.format)
        if config.metrics.enabled:
            init_metrics()
        _dispatcher = Dispatcher.from_config(config, TRANSFORMS)
        logger.info("Dispatcher created for bucket %s", config.backing_store.bucket)
    return _dispatcher


def _get_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop


def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any] | None:
    """Lambda handler: dispatch one Object Lambda event.

    Args:
        event: The Object Lambda invocation event.
        context: The Lambda context object; its request id is attached to
            every log record of the invocation.

    Returns:
        The response payload for the access point, or None.
    """
    aws_request_id.set(getattr(context, "aws_request_id", None))
    dispatcher = get_dispatcher()
    return _get_loop().run_until_complete(dispatcher.dispatch(event))
