"""Per-invocation request state tracking."""

import logging

from objectlambda.models import RequestState

logger = logging.getLogger(__name__)

_ALLOWED: dict[RequestState, set[RequestState]] = {
    RequestState.RECEIVED: {RequestState.FETCHING, RequestState.FAILED},
    RequestState.FETCHING: {RequestState.TRANSFORMING, RequestState.FAILED},
    RequestState.TRANSFORMING: {RequestState.RESPONDING, RequestState.FAILED},
    RequestState.FAILED: {RequestState.RESPONDING},
    RequestState.RESPONDING: set(),
}


class RequestLifecycle:
    """Tracks one invocation through RECEIVED -> ... -> RESPONDING.

    FAILED is reachable from every non-terminal state. RESPONDING is
    terminal, so at most one response is produced per invocation.

    Attributes:
        operation: Operation name used in log records.
        key: Object key or prefix the request is for.
        state: The current state.
    """

    def __init__(self, operation: str, key: str = "") -> None:
        self.operation = operation
        self.key = key
        self.state = RequestState.RECEIVED

    def advance(self, state: RequestState) -> None:
        """Move to ``state``.

        Raises:
            RuntimeError: If the transition is not allowed.
        """
        if state not in _ALLOWED[self.state]:
            raise RuntimeError(
                f"{self.operation}: invalid transition {self.state.value} -> {state.value}"
            )
        logger.debug(
            "%s %s -> %s",
            self.operation,
            self.state.value,
            state.value,
            extra={"operation": self.operation, "key": self.key},
        )
        self.state = state

    def fail(self) -> None:
        """Move to FAILED and then RESPONDING."""
        self.advance(RequestState.FAILED)
        self.advance(RequestState.RESPONDING)
