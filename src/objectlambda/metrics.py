"""Prometheus metrics definitions for the Object Lambda transformer.

All metrics use the ``objectlambda_`` prefix for namespace isolation.
Counters live for the lifetime of the execution environment and reset when
it is recycled. They are registered in the default registry.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Operation counter  (labels: operation, status)
# ---------------------------------------------------------------------------
operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_sent_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    This must be called once when metrics are enabled.  When metrics are
    disabled in config the module-level references stay ``None`` and no
    collectors are registered in the global registry.
    """
    global _initialized
    global operations_total, bytes_sent_total

    if _initialized:
        return

    operations_total = Counter(
        "objectlambda_operations_total",
        "Total Object Lambda invocations by operation and outcome",
        ["operation", "status"],
    )

    bytes_sent_total = Counter(
        "objectlambda_bytes_sent_total",
        "Total transformed bytes returned to the access point",
    )

    _initialized = True


def record_operation(operation: str, status: int, bytes_sent: int = 0) -> None:
    """Count one invocation; a no-op when metrics are disabled."""
    if operations_total is not None:
        operations_total.labels(operation=operation, status=str(status)).inc()
    if bytes_sent and bytes_sent_total is not None:
        bytes_sent_total.inc(bytes_sent)
