"""Public data models for the weixinify SDK.

This module contains the payload-source union, the media kind enums, the
request descriptor handed to the transport, and the download result type.
All types are plain dataclasses; descriptors and their parts are frozen so
that a descriptor built once can be handed to the transport unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Union

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MediaKind(str, Enum):
    """Binary media categories accepted by the upload endpoints."""

    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    THUMB = "thumb"


class MaterialKind(str, Enum):
    """Permanent material categories, as listed by ``batchget_material``."""

    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    THUMB = "thumb"
    NEWS = "news"


ResponseType = Literal["json", "stream"]


# ---------------------------------------------------------------------------
# Payload sources
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilePath:
    """Upload payload read from the local filesystem."""

    path: str | Path


@dataclass(frozen=True)
class InMemoryBuffer:
    """Upload payload held in memory.

    Unlike :class:`FilePath`, neither the filename nor the MIME type can be
    inferred, so both must be supplied by the caller.
    """

    data: bytes
    filename: str
    mime_type: str

    def __repr__(self) -> str:
        return (
            f"InMemoryBuffer(<{len(self.data)} bytes>, "
            f"filename={self.filename!r}, mime_type={self.mime_type!r})"
        )


PayloadSource = Union[FilePath, InMemoryBuffer]


# ---------------------------------------------------------------------------
# Request descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MultipartFile:
    """The single file part of an upload body."""

    name: str
    filename: str
    content_type: str
    size: int
    """Declared payload length in bytes."""

    source: PayloadSource


@dataclass(frozen=True)
class MultipartBody:
    """A ``multipart/form-data`` body: one file part plus plain fields.

    The boundary is random per body and excluded from equality.
    """

    file: MultipartFile
    boundary: str = field(compare=False)
    fields: tuple[tuple[str, str], ...] = ()

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def get_field(self, name: str) -> str | None:
        """Return the value of the form field *name*, or ``None``."""
        for key, value in self.fields:
            if key == name:
                return value
        return None


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything the transport needs to execute one API call.

    ``url`` is relative to the configured base URL.  At most one of
    ``json`` and ``multipart`` is set.  ``headers`` holds the fixed
    headers; :attr:`request_headers` adds the multipart ``Content-Type``.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    json: Any | None = None
    multipart: MultipartBody | None = None
    response_type: ResponseType = "json"

    @property
    def request_headers(self) -> dict[str, str]:
        headers = dict(self.headers)
        if self.multipart is not None:
            headers["Content-Type"] = self.multipart.content_type
        return headers


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

UploadResult = dict[str, Any]
"""Vendor JSON echoed back by upload endpoints (``media_id``, ``created_at``,
``url``...).  Passed through unparsed."""


@dataclass
class MediaDownload:
    """Binary body returned by media and material retrieval endpoints."""

    content: bytes
    content_type: str = "application/octet-stream"
    filename: str | None = None

    def __repr__(self) -> str:
        return (
            f"MediaDownload(<{len(self.content)} bytes>, "
            f"content_type={self.content_type!r}, filename={self.filename!r})"
        )
