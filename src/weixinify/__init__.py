"""weixinify -- WeChat / WeCom server API SDK.

Public re-exports
-----------------

* **Clients:** :class:`WeixinifyClient`, :class:`AsyncWeixinifyClient`
* **Configuration:** :class:`WeixinifyConfig` and the base URL constants
* **Errors:** Every :class:`WeixinifyError` subclass and :class:`ErrorCode`
* **Models:** Payload sources, media kinds, descriptors and results
* **Uploads:** :func:`build_upload_request`

Usage::

    from weixinify import FilePath, WeixinifyClient

    client = WeixinifyClient(access_token="ACCESS_TOKEN")
    result = client.media.upload_media(FilePath("photo.jpg"), "image")
    print(result["media_id"])
"""

from __future__ import annotations

from weixinify.async_client import AsyncWeixinifyClient

# ── Clients ────────────────────────────────────────────────────────────
from weixinify.client import WeixinifyClient

# ── Configuration ───────────────────────────────────────────────────────
from weixinify.config import (
    OFFICIAL_ACCOUNT_BASE_URL,
    WECOM_BASE_URL,
    WeixinifyConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
from weixinify.errors import (
    ErrorCode,
    WeixinifyApiError,
    WeixinifyAuthError,
    WeixinifyError,
    WeixinifyFileNotFoundError,
    WeixinifyHTTPError,
    WeixinifyInvalidArgumentError,
    WeixinifyNetworkError,
    WeixinifyRetryExhaustedError,
    WeixinifySerializationError,
)

# ── Models ──────────────────────────────────────────────────────────────
from weixinify.models import (
    FilePath,
    InMemoryBuffer,
    MaterialKind,
    MediaDownload,
    MediaKind,
    MultipartBody,
    MultipartFile,
    PayloadSource,
    RequestDescriptor,
    UploadResult,
)

# ── Uploads ─────────────────────────────────────────────────────────────
from weixinify.upload import build_upload_request

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Clients
    "WeixinifyClient",
    "AsyncWeixinifyClient",
    # Configuration
    "WeixinifyConfig",
    "WECOM_BASE_URL",
    "OFFICIAL_ACCOUNT_BASE_URL",
    # Error base + code enum
    "WeixinifyError",
    "ErrorCode",
    # Local input errors
    "WeixinifyFileNotFoundError",
    "WeixinifyInvalidArgumentError",
    "WeixinifySerializationError",
    # API / transport errors
    "WeixinifyApiError",
    "WeixinifyAuthError",
    "WeixinifyHTTPError",
    "WeixinifyRetryExhaustedError",
    "WeixinifyNetworkError",
    # Models -- payload sources
    "FilePath",
    "InMemoryBuffer",
    "PayloadSource",
    # Models -- enums
    "MediaKind",
    "MaterialKind",
    # Models -- request descriptor
    "RequestDescriptor",
    "MultipartBody",
    "MultipartFile",
    # Models -- results
    "UploadResult",
    "MediaDownload",
    # Uploads
    "build_upload_request",
]
