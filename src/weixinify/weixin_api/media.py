"""Temporary media API wrappers.

Provides :class:`MediaAPI` (sync) and :class:`AsyncMediaAPI` (async) over
the ``media/*`` endpoints: uploading temporary media (kept by the server for
three days), uploading in-article images, and downloading media by id.

Each kind-specific shortcut (``upload_image_media``...) is an explicit
method, and :attr:`MediaAPI.uploaders` maps every :class:`MediaKind` to its
shortcut so callers holding a kind value can dispatch without string
manipulation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from weixinify.models import (
    MediaDownload,
    MediaKind,
    PayloadSource,
    RequestDescriptor,
    UploadResult,
)
from weixinify.upload import build_upload_request

from .transport import AsyncWeixinTransport, WeixinTransport


def _get_media_descriptor(path: str, media_id: str) -> RequestDescriptor:
    return RequestDescriptor(
        method="GET",
        url=path,
        params={"media_id": media_id},
        response_type="stream",
    )


class MediaAPI:
    """Synchronous wrapper for the temporary media endpoints.

    Parameters
    ----------
    transport:
        A configured :class:`WeixinTransport` instance.
    """

    def __init__(self, transport: WeixinTransport) -> None:
        self._transport = transport
        self.uploaders: dict[MediaKind, Callable[[PayloadSource], UploadResult]] = {
            MediaKind.IMAGE: self.upload_image_media,
            MediaKind.VOICE: self.upload_voice_media,
            MediaKind.VIDEO: self.upload_video_media,
            MediaKind.THUMB: self.upload_thumb_media,
        }

    def upload_media(
        self,
        source: PayloadSource,
        kind: MediaKind | str,
        filename: str | None = None,
    ) -> UploadResult:
        """Upload temporary media.

        Parameters
        ----------
        source:
            A :class:`FilePath` or :class:`InMemoryBuffer`.
        kind:
            One of ``image``, ``voice``, ``video``, ``thumb``.
        filename:
            Overrides the filename sent to the server.

        Returns
        -------
        dict
            ``{"type": ..., "media_id": ..., "created_at": ...}``
        """
        descriptor = build_upload_request(source, kind, "media/upload", filename=filename)
        return self._transport.request(descriptor)

    def upload_image_media(self, source: PayloadSource) -> UploadResult:
        return self.upload_media(source, MediaKind.IMAGE)

    def upload_voice_media(self, source: PayloadSource) -> UploadResult:
        return self.upload_media(source, MediaKind.VOICE)

    def upload_video_media(self, source: PayloadSource) -> UploadResult:
        return self.upload_media(source, MediaKind.VIDEO)

    def upload_thumb_media(self, source: PayloadSource) -> UploadResult:
        return self.upload_media(source, MediaKind.THUMB)

    def upload_image(self, source: PayloadSource) -> UploadResult:
        """Upload an image for use inside article content.

        Returns
        -------
        dict
            ``{"url": "http://mmbiz.qpic.cn/..."}``
        """
        descriptor = build_upload_request(source, None, "media/uploadimg")
        return self._transport.request(descriptor)

    def get_media(self, media_id: str) -> MediaDownload | dict[str, Any]:
        """Download temporary media.

        Returns
        -------
        MediaDownload | dict
            The raw media; video media is answered with JSON carrying a
            ``video_url`` instead.
        """
        return self._transport.request(_get_media_descriptor("media/get", media_id))

    def get_media_hd(self, media_id: str) -> MediaDownload | dict[str, Any]:
        """Download high-definition voice recorded through the JS-SDK."""
        return self._transport.request(_get_media_descriptor("media/get/jssdk", media_id))


class AsyncMediaAPI:
    """Asynchronous wrapper for the temporary media endpoints.

    Mirrors :class:`MediaAPI` but all methods are coroutines.  The upload
    descriptor is built in a worker thread so the file ``stat`` never blocks
    the event loop.
    """

    def __init__(self, transport: AsyncWeixinTransport) -> None:
        self._transport = transport
        self.uploaders: dict[MediaKind, Callable[[PayloadSource], Awaitable[UploadResult]]] = {
            MediaKind.IMAGE: self.upload_image_media,
            MediaKind.VOICE: self.upload_voice_media,
            MediaKind.VIDEO: self.upload_video_media,
            MediaKind.THUMB: self.upload_thumb_media,
        }

    async def upload_media(
        self,
        source: PayloadSource,
        kind: MediaKind | str,
        filename: str | None = None,
    ) -> UploadResult:
        """Upload temporary media (async).

        See :meth:`MediaAPI.upload_media` for parameter documentation.
        """
        descriptor = await asyncio.to_thread(
            build_upload_request, source, kind, "media/upload", filename=filename,
        )
        return await self._transport.request(descriptor)

    async def upload_image_media(self, source: PayloadSource) -> UploadResult:
        return await self.upload_media(source, MediaKind.IMAGE)

    async def upload_voice_media(self, source: PayloadSource) -> UploadResult:
        return await self.upload_media(source, MediaKind.VOICE)

    async def upload_video_media(self, source: PayloadSource) -> UploadResult:
        return await self.upload_media(source, MediaKind.VIDEO)

    async def upload_thumb_media(self, source: PayloadSource) -> UploadResult:
        return await self.upload_media(source, MediaKind.THUMB)

    async def upload_image(self, source: PayloadSource) -> UploadResult:
        """Upload an in-article image (async)."""
        descriptor = await asyncio.to_thread(
            build_upload_request, source, None, "media/uploadimg",
        )
        return await self._transport.request(descriptor)

    async def get_media(self, media_id: str) -> MediaDownload | dict[str, Any]:
        """Download temporary media (async)."""
        return await self._transport.request(_get_media_descriptor("media/get", media_id))

    async def get_media_hd(self, media_id: str) -> MediaDownload | dict[str, Any]:
        """Download high-definition JS-SDK voice (async)."""
        return await self._transport.request(
            _get_media_descriptor("media/get/jssdk", media_id),
        )
