"""Retry decision logic and exponential backoff computation.

Two pure functions used by the transport layer:

* :func:`should_retry` -- decide whether a failed attempt is retryable.
* :func:`compute_backoff` -- compute the delay before the next attempt.

A failure is retryable when the HTTP status is a gateway/server error, the
request never got a response (timeout, connection reset), or the API body
carries a transient ``errcode`` such as ``-1`` ("system busy").
"""

from __future__ import annotations

import random

import httpx

_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# errcode values the API documents as transient.
_RETRYABLE_ERRCODES: frozenset[int] = frozenset({-1})

# errcode values meaning the access token is invalid or expired.
TOKEN_ERRCODES: frozenset[int] = frozenset({40001, 40014, 41001, 42001})

_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)


def should_retry(
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
    errcode: int | None = None,
) -> bool:
    """Decide whether a request should be retried.

    Parameters
    ----------
    status_code:
        HTTP status code, or ``None`` if no response was received.
    exception:
        The exception raised by the HTTP client, if any.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts allowed (including the initial request).
    errcode:
        The ``errcode`` from a JSON response body, if any.

    Returns
    -------
    bool
        ``True`` if another attempt should be made.
    """
    if attempt + 1 >= max_attempts:
        return False

    if exception is not None:
        return isinstance(exception, _RETRYABLE_EXCEPTIONS)

    if errcode is not None and errcode != 0:
        return errcode in _RETRYABLE_ERRCODES

    if status_code is not None:
        return status_code in _RETRYABLE_STATUSES

    return False


def compute_backoff(
    attempt: int,
    base: float = 0.5,
    maximum: float = 30.0,
    jitter: bool = True,
) -> float:
    """Compute the delay before the next attempt.

    The delay follows exponential backoff (``base * 2^attempt``) capped at
    *maximum*.  With *jitter* the delay is scaled to 50-100 % of its value.

    Parameters
    ----------
    attempt:
        The current attempt number (0-indexed).
    base:
        Base delay in seconds.
    maximum:
        Maximum delay cap in seconds.
    jitter:
        Whether to apply random jitter.

    Returns
    -------
    float
        Delay in seconds.
    """
    delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay
