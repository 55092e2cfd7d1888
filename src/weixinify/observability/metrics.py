"""Metric names emitted by the transports and the hook they are sent to.

Pass any object with ``increment``/``timing``/``gauge`` methods as
``WeixinifyConfig(metrics=...)`` to forward them to StatsD, Prometheus or
similar.  Tags are ``str -> str``.  Request counters and timings are tagged with
``method``, ``path`` and ``status``; retry counters with ``reason``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

REQUESTS_TOTAL = "weixinify.requests_total"
RETRIES_TOTAL = "weixinify.retries_total"
API_ERRORS_TOTAL = "weixinify.api_errors_total"
REQUEST_DURATION_MS = "weixinify.request_duration_ms"
UPLOAD_BYTES = "weixinify.upload_bytes"

Tags = dict[str, str]


@runtime_checkable
class MetricsHook(Protocol):
    def increment(self, name: str, value: int = 1, tags: Tags | None = None) -> None: ...

    def timing(self, name: str, ms: float, tags: Tags | None = None) -> None: ...

    def gauge(self, name: str, value: float, tags: Tags | None = None) -> None: ...


class NoopMetricsHook:
    """Used when no hook is configured; every call is dropped."""

    __slots__ = ()

    def increment(self, name: str, value: int = 1, tags: Tags | None = None) -> None:
        return None

    def timing(self, name: str, ms: float, tags: Tags | None = None) -> None:
        return None

    def gauge(self, name: str, value: float, tags: Tags | None = None) -> None:
        return None
