"""SDK configuration for weixinify.

:class:`WeixinifyConfig` is a dataclass that captures every tuneable knob
exposed by the SDK.  Instances are passed to both :class:`WeixinifyClient`
and :class:`AsyncWeixinifyClient`.

Two module-level constants name the API roots most deployments use:

* :data:`WECOM_BASE_URL` -- enterprise WeChat (WeCom), the default.
* :data:`OFFICIAL_ACCOUNT_BASE_URL` -- WeChat official accounts.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

WECOM_BASE_URL = "https://qyapi.weixin.qq.com/cgi-bin"
"""API root for enterprise WeChat (message, crm, media endpoints)."""

OFFICIAL_ACCOUNT_BASE_URL = "https://api.weixin.qq.com/cgi-bin"
"""API root for official accounts (material and media endpoints)."""


@dataclass
class WeixinifyConfig:
    """Complete configuration for a weixinify client.

    Every parameter has a default; a client needs either ``access_token``
    or ``token_provider`` before its first request.

    Parameters
    ----------
    access_token:
        Static access token appended as the ``access_token`` query
        parameter.  Never logged.
    token_provider:
        Callable returning the current access token.  Evaluated before
        every attempt, so a provider that refreshes its cache on expiry
        is picked up on retry.  Takes precedence over ``access_token``.
    base_url:
        API root URL.  Endpoint paths such as ``media/upload`` are
        resolved relative to it.
    retry_max_attempts:
        Maximum number of attempts per request for retryable failures
        (HTTP 5xx, network errors, ``errcode -1``).
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Add random jitter (50-100 % of the delay) to backoff intervals.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    metrics:
        Optional :class:`~weixinify.observability.MetricsHook` backend.
    debug_dump_payload:
        Write the (redacted) request/response pair to *stderr*.
    """

    # ── Core ────────────────────────────────────────────────────────────
    access_token: str = ""

    token_provider: Callable[[], str] | None = None

    base_url: str = WECOM_BASE_URL

    # ── Retry ───────────────────────────────────────────────────────────
    retry_max_attempts: int = 3

    retry_base_delay: float = 0.5

    retry_max_delay: float = 30.0

    retry_jitter: bool = True

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.base_url)
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS to protect your access token, or target localhost for testing."
            )

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")

    def resolve_token(self) -> str:
        """Return the access token to attach to the next request."""
        if self.token_provider is not None:
            return self.token_provider()
        return self.access_token

    def __repr__(self) -> str:
        """Mask the token to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "access_token":
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"access_token='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"WeixinifyConfig({', '.join(parts)})"
