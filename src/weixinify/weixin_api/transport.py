"""Sync and async HTTP transports for the WeChat / WeCom API.

Both transports execute a :class:`RequestDescriptor` through the same
lifecycle:

1. Resolve the access token and attach it as the ``access_token`` query
   parameter.
2. Encode the body: JSON as UTF-8 without ``\\u`` escapes, multipart by
   handing the file part to httpx under the descriptor's own boundary.
3. On ``2xx`` -- decode the body.  A JSON body with a non-zero ``errcode``
   raises :class:`WeixinifyApiError` (``-1`` is retried first).
4. On ``5xx`` / network error -- exponential backoff and retry.
5. On any other status -- raise :class:`WeixinifyHTTPError` immediately.
6. On max attempts exceeded -- raise :class:`WeixinifyRetryExhaustedError`.
"""

from __future__ import annotations

import asyncio
import json as _json
import re
import sys
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import httpx

from weixinify.config import WeixinifyConfig
from weixinify.errors import (
    WeixinifyApiError,
    WeixinifyAuthError,
    WeixinifyFileNotFoundError,
    WeixinifyHTTPError,
    WeixinifyNetworkError,
    WeixinifyRetryExhaustedError,
    WeixinifySerializationError,
)
from weixinify.models import FilePath, MediaDownload, MultipartFile, RequestDescriptor
from weixinify.observability import NoopMetricsHook, get_logger
from weixinify.observability.metrics import (
    API_ERRORS_TOTAL,
    REQUEST_DURATION_MS,
    REQUESTS_TOTAL,
    RETRIES_TOTAL,
    UPLOAD_BYTES,
)

from .retries import _RETRYABLE_STATUSES, TOKEN_ERRCODES, compute_backoff, should_retry

log = get_logger("weixinify.transport")

_FILENAME_RE = re.compile(r"(?<![\w*])filename=\"?([^\";]+)\"?", re.IGNORECASE)
# RFC 5987 extended form: charset'language'percent-encoded-value
_FILENAME_EXT_RE = re.compile(r"filename\*=([\w!#$%&+^`{}~-]*)'[^']*'([^;\s]+)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Request encoding
# ---------------------------------------------------------------------------

def _encode_json(payload: Any) -> bytes:
    """Encode *payload* as UTF-8 JSON, keeping non-ASCII text readable.

    Several endpoints mangle ``\\uXXXX`` escapes in message content, so
    text is sent verbatim.
    """
    try:
        return _json.dumps(payload, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as exc:
        raise WeixinifySerializationError(
            message=f"Cannot encode request body as JSON: {exc}",
            context={"field": "json"},
            cause=exc,
        ) from exc


def _missing_source(source: FilePath, exc: OSError) -> WeixinifyFileNotFoundError:
    return WeixinifyFileNotFoundError(
        message=f"Upload source disappeared before sending: {source.path}",
        context={"path": str(source.path)},
        cause=exc,
    )


def _open_part(part: MultipartFile, stack: ExitStack) -> Any:
    """Return the content httpx should stream for *part*."""
    source = part.source
    if isinstance(source, FilePath):
        try:
            return stack.enter_context(open(source.path, "rb"))
        except OSError as exc:
            raise _missing_source(source, exc) from exc
    return bytes(source.data)


async def _read_part_off_loop(descriptor: RequestDescriptor) -> bytes | None:
    """Load a file part's bytes in a worker thread.

    Returns ``None`` when *descriptor* has no file-backed part.
    """
    body = descriptor.multipart
    if body is None or not isinstance(body.file.source, FilePath):
        return None
    source = body.file.source
    try:
        return await asyncio.to_thread(Path(source.path).read_bytes)
    except OSError as exc:
        raise _missing_source(source, exc) from exc


def _build_request_kwargs(
    descriptor: RequestDescriptor,
    token: str,
    stack: ExitStack,
    content: bytes | None = None,
) -> dict[str, Any]:
    """Translate *descriptor* into keyword arguments for ``httpx`` ``request``.

    File handles opened for multipart bodies are registered on *stack* and
    closed when the caller leaves it.  Preloaded *content* replaces the
    file part's source.
    """
    # Carries the multipart boundary, which httpx reads back out.
    headers = descriptor.request_headers
    kwargs: dict[str, Any] = {
        "params": {"access_token": token, **descriptor.params},
    }

    body = descriptor.multipart
    if body is not None:
        part = body.file
        payload = content if content is not None else _open_part(part, stack)
        kwargs["files"] = {part.name: (part.filename, payload, part.content_type)}
        if body.fields:
            kwargs["data"] = dict(body.fields)
    elif descriptor.json is not None:
        kwargs["content"] = _encode_json(descriptor.json)
        headers.setdefault("Content-Type", "application/json; charset=utf-8")

    if headers:
        kwargs["headers"] = headers
    return kwargs


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------

def _is_json_like(content_type: str) -> bool:
    content_type = content_type.lower()
    return "json" in content_type or content_type.startswith("text/plain")


def _parse_filename(disposition: str | None) -> str | None:
    """Extract the filename from a ``Content-Disposition`` header."""
    if not disposition:
        return None
    extended = _FILENAME_EXT_RE.search(disposition)
    if extended:
        charset = extended.group(1) or "utf-8"
        try:
            return unquote(extended.group(2), encoding=charset, errors="strict").strip()
        except (LookupError, UnicodeDecodeError):
            log.debug(
                "Undecodable extended filename, using plain form",
                extra={"extra_fields": {"charset": charset}},
            )
    match = _FILENAME_RE.search(disposition)
    return match.group(1).strip() if match else None


def _decode_body(response: httpx.Response, descriptor: RequestDescriptor) -> Any:
    """Decode a ``2xx`` response into a dict or a :class:`MediaDownload`."""
    content_type = response.headers.get("content-type", "")

    if descriptor.response_type == "stream" and not _is_json_like(content_type):
        return MediaDownload(
            content=response.content,
            content_type=content_type or "application/octet-stream",
            filename=_parse_filename(response.headers.get("content-disposition")),
        )

    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        raise WeixinifyHTTPError(
            message=(
                f"Expected a JSON body from {descriptor.method} {descriptor.url}, "
                f"got {content_type or 'no content type'}"
            ),
            context={"status_code": response.status_code, "body": response.text[:500]},
            cause=exc,
        ) from exc


def _errcode_of(result: Any) -> int | None:
    """Return the non-zero ``errcode`` carried by *result*, if any."""
    if not isinstance(result, dict):
        return None
    errcode = result.get("errcode")
    if isinstance(errcode, int) and errcode != 0:
        return errcode
    return None


def _raise_for_errcode(body: dict[str, Any], method: str, path: str) -> None:
    """Raise the :class:`WeixinifyApiError` subclass matching ``errcode``."""
    errcode = body.get("errcode")
    errmsg = body.get("errmsg", "")
    context = {"errcode": errcode, "errmsg": errmsg, "method": method, "path": path}

    if errcode in TOKEN_ERRCODES:
        raise WeixinifyAuthError(
            message=f"Access token rejected on {method} {path}: {errcode} {errmsg}",
            context=context,
        )
    raise WeixinifyApiError(
        message=f"API error on {method} {path}: {errcode} {errmsg}",
        context=context,
    )


def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
    """Raise :class:`WeixinifyHTTPError` for a status that is not retried."""
    status = response.status_code
    raise WeixinifyHTTPError(
        message=f"HTTP {status} on {method} {path}",
        context={"status_code": status, "body": response.text[:500]},
    )


# ---------------------------------------------------------------------------
# Debug dumps
# ---------------------------------------------------------------------------

def _describe_body(descriptor: RequestDescriptor) -> Any:
    body = descriptor.multipart
    if body is not None:
        return {
            "multipart": {
                "name": body.file.name,
                "filename": body.file.filename,
                "content_type": body.file.content_type,
                "size": body.file.size,
                "fields": dict(body.fields),
            }
        }
    return descriptor.json


def _dump_payload(
    method: str,
    url: str,
    payload: Any | None,
    response_status: int | None,
    response_body: Any | None,
    token: str | None = None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    from weixinify.utils.redact import redact

    dump: dict[str, Any] = {
        "method": method,
        "url": url,
    }
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    safe_dump = redact(dump, token)
    print(
        _json.dumps(safe_dump, indent=2, default=str, ensure_ascii=False),
        file=sys.stderr,
    )


def _emit_debug_dump(
    config: WeixinifyConfig,
    descriptor: RequestDescriptor,
    response: httpx.Response,
    token: str,
) -> None:
    if not config.debug_dump_payload:
        return
    if _is_json_like(response.headers.get("content-type", "")):
        try:
            resp_body: Any = response.json()
        except ValueError:
            resp_body = response.text[:1000]
    else:
        resp_body = f"<binary:{len(response.content)}_bytes>"
    _dump_payload(
        descriptor.method,
        str(response.url),
        _describe_body(descriptor),
        response.status_code,
        resp_body,
        token=token,
    )


# ---------------------------------------------------------------------------
# Shared attempt helpers (used by both sync and async transports)
# ---------------------------------------------------------------------------

def _handle_network_exception(
    config: WeixinifyConfig,
    metrics: Any,
    method: str,
    path: str,
    exc: Exception,
    attempt: int,
) -> float:
    """Handle a network error during a request attempt.

    Returns the backoff delay (seconds) if the request should be retried.
    Raises :class:`WeixinifyNetworkError` if retries are exhausted.
    """
    max_attempts = config.retry_max_attempts
    metrics.increment(
        REQUESTS_TOTAL,
        tags={"method": method, "path": path, "status": "error"},
    )
    log.warning(
        "Request network error",
        extra={
            "extra_fields": {
                "op": "request",
                "method": method,
                "path": path,
                "attempt": attempt + 1,
                "error": str(exc),
            }
        },
    )
    if should_retry(None, exc, attempt, max_attempts):
        delay = compute_backoff(
            attempt,
            base=config.retry_base_delay,
            maximum=config.retry_max_delay,
            jitter=config.retry_jitter,
        )
        metrics.increment(
            RETRIES_TOTAL,
            tags={"method": method, "path": path, "reason": "network_error"},
        )
        return delay
    raise WeixinifyNetworkError(
        message=f"Network error on {method} {path}: {exc}",
        context={"url": path, "attempt": attempt + 1},
        cause=exc,
    ) from exc


def _record_response(
    metrics: Any,
    descriptor: RequestDescriptor,
    response: httpx.Response,
    elapsed_ms: float,
) -> None:
    tags = {
        "method": descriptor.method,
        "path": descriptor.url,
        "status": str(response.status_code),
    }
    metrics.increment(REQUESTS_TOTAL, tags=tags)
    metrics.timing(REQUEST_DURATION_MS, elapsed_ms, tags=tags)
    if descriptor.multipart is not None:
        metrics.gauge(
            UPLOAD_BYTES,
            descriptor.multipart.file.size,
            tags={"path": descriptor.url},
        )


def _next_delay(
    config: WeixinifyConfig,
    metrics: Any,
    response: httpx.Response,
    result: Any,
    descriptor: RequestDescriptor,
    attempt: int,
) -> tuple[Any, float | None]:
    """Classify one completed attempt.

    Returns ``(result, None)`` when *result* should be handed to the caller,
    or ``(None, delay)`` when the request should be retried after *delay*
    seconds.  Non-retryable failures raise.
    """
    method, path = descriptor.method, descriptor.url
    max_attempts = config.retry_max_attempts

    errcode = _errcode_of(result)
    if errcode is None:
        return result, None

    metrics.increment(
        API_ERRORS_TOTAL,
        tags={"method": method, "path": path, "errcode": str(errcode)},
    )
    if not should_retry(response.status_code, None, attempt, max_attempts, errcode=errcode):
        _raise_for_errcode(result, method, path)

    log.warning(
        "Transient API error, retrying",
        extra={
            "extra_fields": {
                "op": "request",
                "method": method,
                "path": path,
                "errcode": errcode,
                "attempt": attempt + 1,
            }
        },
    )
    metrics.increment(
        RETRIES_TOTAL,
        tags={"method": method, "path": path, "reason": "errcode"},
    )
    delay = compute_backoff(
        attempt,
        base=config.retry_base_delay,
        maximum=config.retry_max_delay,
        jitter=config.retry_jitter,
    )
    return None, delay


def _server_error_delay(
    config: WeixinifyConfig,
    metrics: Any,
    response: httpx.Response,
    descriptor: RequestDescriptor,
    attempt: int,
) -> float | None:
    """Return the backoff for a non-2xx response, or ``None`` when exhausted.

    Raises :class:`WeixinifyHTTPError` for statuses that are never retried.
    """
    method, path = descriptor.method, descriptor.url
    if response.status_code not in _RETRYABLE_STATUSES:
        _raise_for_status(response, method, path)
    if not should_retry(response.status_code, None, attempt, config.retry_max_attempts):
        return None

    log.warning(
        "Server error, retrying",
        extra={
            "extra_fields": {
                "op": "request",
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "attempt": attempt + 1,
            }
        },
    )
    metrics.increment(
        RETRIES_TOTAL,
        tags={"method": method, "path": path, "reason": "server_error"},
    )
    return compute_backoff(
        attempt,
        base=config.retry_base_delay,
        maximum=config.retry_max_delay,
        jitter=config.retry_jitter,
    )


def _exhausted(
    descriptor: RequestDescriptor,
    attempts: int,
    last_status: int | None,
    last_exception: Exception | None,
) -> WeixinifyRetryExhaustedError:
    method, path = descriptor.method, descriptor.url
    ctx: dict[str, Any] = {
        "attempts": attempts,
        "last_status_code": last_status,
    }
    if last_exception is not None:
        return WeixinifyRetryExhaustedError(
            message=(
                f"All {attempts} attempts exhausted for {method} {path} "
                f"(last error: {last_exception})"
            ),
            context=ctx,
            cause=last_exception,
        )
    return WeixinifyRetryExhaustedError(
        message=(
            f"All {attempts} attempts exhausted for {method} {path} "
            f"(last status: {last_status})"
        ),
        context=ctx,
    )


def _client_options(config: WeixinifyConfig) -> dict[str, Any]:
    proxy: httpx.URL | str | None = config.http_proxy
    return {
        "base_url": config.base_url,
        "timeout": httpx.Timeout(config.timeout_seconds),
        "proxy": proxy,
    }


# ---------------------------------------------------------------------------
# Sync transport
# ---------------------------------------------------------------------------

class WeixinTransport:
    """Synchronous HTTP transport with token injection and retries.

    Parameters
    ----------
    config:
        A :class:`WeixinifyConfig` instance controlling all transport behaviour.
    """

    def __init__(self, config: WeixinifyConfig) -> None:
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._client = httpx.Client(**_client_options(config))

    # -- public API --------------------------------------------------------

    def request(self, descriptor: RequestDescriptor) -> Any:
        """Execute *descriptor* against the API.

        Returns
        -------
        dict | MediaDownload
            The parsed JSON body, or the raw media for
            ``response_type="stream"`` descriptors answered with a
            non-JSON body.

        Raises
        ------
        WeixinifyAuthError
            The access token was rejected.
        WeixinifyApiError
            The body carried a non-zero ``errcode``.
        WeixinifyHTTPError
            A non-retryable, non-2xx status was returned.
        WeixinifyRetryExhaustedError
            All attempts failed with retryable statuses.
        WeixinifyNetworkError
            Transport-level failure after exhausting retries.
        WeixinifySerializationError
            The JSON body could not be encoded.
        """
        method, path = descriptor.method, descriptor.url
        max_attempts = self._config.retry_max_attempts
        last_exception: Exception | None = None
        last_status: int | None = None

        for attempt in range(max_attempts):
            token = self._config.resolve_token()

            t0 = time.monotonic()
            try:
                with ExitStack() as stack:
                    kwargs = _build_request_kwargs(descriptor, token, stack)
                    response = self._client.request(method, path, **kwargs)
                elapsed_ms = (time.monotonic() - t0) * 1000
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_exception = exc
                last_status = None
                delay = _handle_network_exception(
                    self._config, self._metrics, method, path, exc, attempt,
                )
                time.sleep(delay)
                continue

            last_status = response.status_code
            last_exception = None
            _record_response(self._metrics, descriptor, response, elapsed_ms)
            _emit_debug_dump(self._config, descriptor, response, token)

            if 200 <= response.status_code < 300:
                result, delay = _next_delay(
                    self._config, self._metrics, response,
                    _decode_body(response, descriptor), descriptor, attempt,
                )
                if delay is None:
                    return result
                time.sleep(delay)
                continue

            server_delay = _server_error_delay(
                self._config, self._metrics, response, descriptor, attempt,
            )
            if server_delay is None:
                break
            time.sleep(server_delay)

        raise _exhausted(descriptor, max_attempts, last_status, last_exception)

    def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> WeixinTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Async transport
# ---------------------------------------------------------------------------

class AsyncWeixinTransport:
    """Asynchronous HTTP transport with token injection and retries.

    Mirrors :class:`WeixinTransport` but uses ``httpx.AsyncClient`` and
    ``asyncio.sleep`` for non-blocking I/O.  File-backed upload parts are
    read once in a worker thread before the first attempt.
    """

    def __init__(self, config: WeixinifyConfig) -> None:
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._client = httpx.AsyncClient(**_client_options(config))

    # -- public API --------------------------------------------------------

    async def request(self, descriptor: RequestDescriptor) -> Any:
        """Execute *descriptor* against the API (async).

        See :meth:`WeixinTransport.request` for full documentation.
        """
        method, path = descriptor.method, descriptor.url
        max_attempts = self._config.retry_max_attempts
        last_exception: Exception | None = None
        last_status: int | None = None
        content = await _read_part_off_loop(descriptor)

        for attempt in range(max_attempts):
            token = self._config.resolve_token()

            t0 = time.monotonic()
            try:
                with ExitStack() as stack:
                    kwargs = _build_request_kwargs(descriptor, token, stack, content)
                    response = await self._client.request(method, path, **kwargs)
                elapsed_ms = (time.monotonic() - t0) * 1000
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_exception = exc
                last_status = None
                delay = _handle_network_exception(
                    self._config, self._metrics, method, path, exc, attempt,
                )
                await asyncio.sleep(delay)
                continue

            last_status = response.status_code
            last_exception = None
            _record_response(self._metrics, descriptor, response, elapsed_ms)
            _emit_debug_dump(self._config, descriptor, response, token)

            if 200 <= response.status_code < 300:
                result, delay = _next_delay(
                    self._config, self._metrics, response,
                    _decode_body(response, descriptor), descriptor, attempt,
                )
                if delay is None:
                    return result
                await asyncio.sleep(delay)
                continue

            server_delay = _server_error_delay(
                self._config, self._metrics, response, descriptor, attempt,
            )
            if server_delay is None:
                break
            await asyncio.sleep(server_delay)

        raise _exhausted(descriptor, max_attempts, last_status, last_exception)

    async def close(self) -> None:
        """Close the underlying async HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncWeixinTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
