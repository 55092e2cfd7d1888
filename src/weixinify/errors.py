"""Full error hierarchy for the weixinify SDK.

Every public error class inherits from WeixinifyError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Local input errors also inherit from the matching builtin exception
(``FileNotFoundError``, ``ValueError``) so that callers who do not know
about the SDK hierarchy can still catch them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the SDK can raise."""

    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    API_ERROR = "API_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    NETWORK_ERROR = "NETWORK_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class WeixinifyError(Exception):
    """Base exception for all weixinify errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Local input errors (raised before any network I/O)
# ---------------------------------------------------------------------------

class WeixinifyFileNotFoundError(WeixinifyError, FileNotFoundError):
    """An upload source path does not exist or is not a regular file.

    Context keys: ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.FILE_NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )


class WeixinifyInvalidArgumentError(WeixinifyError, ValueError):
    """An argument failed local validation (empty filename, bad count...).

    Context keys: ``field``, ``value``, ``constraint``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_ARGUMENT,
            message=message,
            context=context,
            cause=cause,
        )


class WeixinifySerializationError(WeixinifyError, ValueError):
    """A value could not be encoded as JSON (circular reference, unknown type).

    Context keys: ``field``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.SERIALIZATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# API / transport errors
# ---------------------------------------------------------------------------

class WeixinifyApiError(WeixinifyError):
    """The API answered with a non-zero ``errcode``.

    Context keys: ``errcode``, ``errmsg``, ``method``, ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str = ErrorCode.API_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )

    @property
    def errcode(self) -> int | None:
        return self.context.get("errcode")

    @property
    def errmsg(self) -> str:
        return self.context.get("errmsg", "")


class WeixinifyAuthError(WeixinifyApiError):
    """The access token was rejected (invalid, expired or missing).

    Context keys: ``errcode``, ``errmsg``, ``method``, ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.AUTH_ERROR,
        )


class WeixinifyHTTPError(WeixinifyError):
    """A non-retryable, non-2xx HTTP status was returned.

    Context keys: ``status_code``, ``body``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.HTTP_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class WeixinifyRetryExhaustedError(WeixinifyError):
    """All retry attempts have been exhausted for a retryable request.

    Context keys: ``attempts``, ``last_status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RETRY_EXHAUSTED,
            message=message,
            context=context,
            cause=cause,
        )


class WeixinifyNetworkError(WeixinifyError):
    """A transport-level failure occurred (timeout, DNS, connection reset).

    Context keys: ``url``, ``attempt``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
