"""Multipart request construction shared by every upload endpoint.

:func:`build_upload_request` turns a :data:`PayloadSource` into a
:class:`RequestDescriptor` carrying a single ``media`` file part.  It is
used by the temporary-media, permanent-material and in-article image
endpoints alike.

The builder performs no network I/O.  For a :class:`FilePath` it stats the
file once so that the part can declare its size up front; the bytes are only
read when the transport sends the request.
"""

from __future__ import annotations

import json
import mimetypes
import os
import stat
from pathlib import Path
from typing import Any

from weixinify.errors import (
    WeixinifyFileNotFoundError,
    WeixinifyInvalidArgumentError,
    WeixinifySerializationError,
)
from weixinify.models import (
    FilePath,
    InMemoryBuffer,
    MediaKind,
    MultipartBody,
    MultipartFile,
    PayloadSource,
    RequestDescriptor,
)
from weixinify.observability import get_logger
from weixinify.utils.boundary import new_boundary

log = get_logger("weixinify.upload")

MEDIA_FIELD = "media"
DESCRIPTION_FIELD = "description"
DEFAULT_MIME = "application/octet-stream"


def _guess_mime_from_name(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME


def _resolve_file(source: FilePath, filename: str | None) -> tuple[str, str, int]:
    """Stat a file source, returning ``(filename, content_type, size)``."""
    path = Path(source.path)
    try:
        st = path.stat()
    except OSError as exc:
        raise WeixinifyFileNotFoundError(
            message=f"Upload source not found: {path}",
            context={"path": str(path)},
            cause=exc,
        ) from exc

    if not stat.S_ISREG(st.st_mode):
        raise WeixinifyFileNotFoundError(
            message=f"Upload source is not a regular file: {path}",
            context={"path": str(path)},
        )
    if not os.access(path, os.R_OK):
        raise WeixinifyFileNotFoundError(
            message=f"Upload source is not readable: {path}",
            context={"path": str(path)},
        )

    name = filename or path.name
    return name, _guess_mime_from_name(name), st.st_size


def _resolve_buffer(source: InMemoryBuffer, filename: str | None) -> tuple[str, str, int]:
    """Validate a buffer source, returning ``(filename, content_type, size)``."""
    if not isinstance(source.data, (bytes, bytearray, memoryview)):
        raise WeixinifyInvalidArgumentError(
            message="InMemoryBuffer.data must be bytes-like",
            context={"field": "data", "value": type(source.data).__name__},
        )
    name = filename or source.filename
    if not name:
        raise WeixinifyInvalidArgumentError(
            message="A filename is required when uploading from memory",
            context={"field": "filename", "constraint": "non-empty"},
        )
    if not source.mime_type:
        raise WeixinifyInvalidArgumentError(
            message="A MIME type is required when uploading from memory",
            context={"field": "mime_type", "constraint": "non-empty"},
        )
    return name, source.mime_type, len(source.data)


def resolve_payload(
    source: PayloadSource,
    filename: str | None = None,
) -> MultipartFile:
    """Resolve *source* into the ``media`` file part of an upload body.

    Parameters
    ----------
    source:
        A :class:`FilePath` or :class:`InMemoryBuffer`.
    filename:
        Overrides the filename sent to the server.

    Raises
    ------
    WeixinifyFileNotFoundError
        The path does not exist, is not a regular file, or is unreadable.
    WeixinifyInvalidArgumentError
        A buffer source lacks a filename or MIME type, or *source* is not
        a payload source at all.
    """
    if isinstance(source, FilePath):
        name, content_type, size = _resolve_file(source, filename)
    elif isinstance(source, InMemoryBuffer):
        name, content_type, size = _resolve_buffer(source, filename)
    else:
        raise WeixinifyInvalidArgumentError(
            message=(
                "Upload source must be FilePath or InMemoryBuffer, "
                f"got {type(source).__name__}"
            ),
            context={"field": "source", "value": type(source).__name__},
        )
    return MultipartFile(
        name=MEDIA_FIELD,
        filename=name,
        content_type=content_type,
        size=size,
        source=source,
    )


def encode_description(description: Any) -> str:
    """Serialise a video description object for the ``description`` field.

    Raises
    ------
    WeixinifySerializationError
        If *description* is not JSON-serialisable.
    """
    try:
        return json.dumps(description, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as exc:
        raise WeixinifySerializationError(
            message=f"Cannot encode video description as JSON: {exc}",
            context={"field": DESCRIPTION_FIELD},
            cause=exc,
        ) from exc


def build_upload_request(
    source: PayloadSource,
    kind: MediaKind | str | None,
    path: str,
    *,
    filename: str | None = None,
    description: Any | None = None,
    method: str = "POST",
) -> RequestDescriptor:
    """Build the multipart request descriptor for an upload endpoint.

    Parameters
    ----------
    source:
        Where the bytes come from.
    kind:
        Media kind sent as the ``type`` query parameter.  ``None`` for
        endpoints that take no type (``media/uploadimg``).
    path:
        Endpoint path relative to the API root, e.g. ``"media/upload"``.
    filename:
        Overrides the filename sent to the server.
    description:
        Optional object sent as a JSON-encoded ``description`` form field
        (video material uploads: ``{"title": ..., "introduction": ...}``).
    method:
        HTTP method.  Every upload endpoint uses ``POST``.

    Returns
    -------
    RequestDescriptor
        A descriptor with a :class:`MultipartBody`.  Building twice from
        equal arguments yields equal descriptors; only the random boundary
        differs, and it is excluded from equality.
    """
    file_part = resolve_payload(source, filename)

    fields: tuple[tuple[str, str], ...] = ()
    if description is not None:
        fields = ((DESCRIPTION_FIELD, encode_description(description)),)

    params: dict[str, Any] = {}
    kind_value: str | None = None
    if kind is not None:
        try:
            kind_value = MediaKind(kind).value
        except ValueError as exc:
            raise WeixinifyInvalidArgumentError(
                message=f"Unknown media kind: {kind!r}",
                context={
                    "field": "kind",
                    "value": kind,
                    "constraint": [k.value for k in MediaKind],
                },
                cause=exc,
            ) from exc
        params["type"] = kind_value

    body = MultipartBody(file=file_part, boundary=new_boundary(), fields=fields)

    log.debug(
        "Built upload request",
        extra={
            "extra_fields": {
                "op": "build_upload_request",
                "path": path,
                "type": kind_value,
                "filename": file_part.filename,
                "size": file_part.size,
            }
        },
    )

    return RequestDescriptor(
        method=method,
        url=path,
        headers={"Accept": "application/json"},
        params=params,
        multipart=body,
    )
