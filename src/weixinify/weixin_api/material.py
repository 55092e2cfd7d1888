"""Permanent material API wrappers.

Provides :class:`MaterialAPI` (sync) and :class:`AsyncMaterialAPI` (async)
over the ``material/*`` endpoints: uploading binary and news material,
retrieving, deleting, counting and listing it.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator, Mapping, Sequence
from typing import Any

from weixinify.errors import WeixinifyInvalidArgumentError
from weixinify.models import (
    MaterialKind,
    MediaDownload,
    MediaKind,
    PayloadSource,
    RequestDescriptor,
    UploadResult,
)
from weixinify.upload import build_upload_request

from .transport import AsyncWeixinTransport, WeixinTransport

MAX_BATCH_COUNT = 20
"""Upper bound the API accepts for ``count`` in ``batchget_material``."""


def _news_body(news: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Accept either ``{"articles": [...]}`` or a bare list of articles."""
    if isinstance(news, Mapping):
        return dict(news)
    if isinstance(news, (str, bytes, bytearray)) or not isinstance(news, Sequence):
        raise WeixinifyInvalidArgumentError(
            message=f"news must be a mapping or a list of articles, got {type(news).__name__}",
            context={"field": "news", "value": type(news).__name__},
        )
    articles = list(news)
    for index, article in enumerate(articles):
        if not isinstance(article, Mapping):
            raise WeixinifyInvalidArgumentError(
                message=f"Article {index} must be a mapping, got {type(article).__name__}",
                context={"field": f"news[{index}]", "value": type(article).__name__},
            )
    return {"articles": articles}


def _material_kind(kind: MaterialKind | str) -> str:
    try:
        return MaterialKind(kind).value
    except ValueError as exc:
        raise WeixinifyInvalidArgumentError(
            message=f"Unknown material kind: {kind!r}",
            context={
                "field": "type",
                "value": kind,
                "constraint": [k.value for k in MaterialKind],
            },
            cause=exc,
        ) from exc


def _batchget_descriptor(kind: MaterialKind | str, offset: int, count: int) -> RequestDescriptor:
    kind_value = _material_kind(kind)
    if offset < 0:
        raise WeixinifyInvalidArgumentError(
            message=f"offset must be >= 0, got {offset}",
            context={"field": "offset", "value": offset, "constraint": ">= 0"},
        )
    if not 1 <= count <= MAX_BATCH_COUNT:
        raise WeixinifyInvalidArgumentError(
            message=f"count must be between 1 and {MAX_BATCH_COUNT}, got {count}",
            context={"field": "count", "value": count, "constraint": f"1..{MAX_BATCH_COUNT}"},
        )
    return RequestDescriptor(
        method="POST",
        url="material/batchget_material",
        json={"type": kind_value, "offset": offset, "count": count},
    )


def _get_material_descriptor(media_id: str) -> RequestDescriptor:
    return RequestDescriptor(
        method="GET",
        url="material/get_material",
        json={"media_id": media_id},
        response_type="stream",
    )


def _page_done(page: dict[str, Any], offset: int) -> bool:
    items = page.get("item") or []
    return not items or offset >= page.get("total_count", 0)


class MaterialAPI:
    """Synchronous wrapper for the permanent material endpoints.

    Parameters
    ----------
    transport:
        A configured :class:`WeixinTransport` instance.
    """

    def __init__(self, transport: WeixinTransport) -> None:
        self._transport = transport
        self.uploaders: dict[MediaKind, Callable[[PayloadSource], UploadResult]] = {
            MediaKind.IMAGE: self.upload_image_material,
            MediaKind.VOICE: self.upload_voice_material,
            MediaKind.THUMB: self.upload_thumb_material,
        }

    def upload_material(self, source: PayloadSource, kind: MediaKind | str) -> UploadResult:
        """Upload permanent binary material.

        Video material needs a description; use
        :meth:`upload_video_material` for it.

        Returns
        -------
        dict
            ``{"media_id": ..., "url": ...}`` (``url`` for images only).
        """
        descriptor = build_upload_request(source, kind, "material/add_material")
        return self._transport.request(descriptor)

    def upload_image_material(self, source: PayloadSource) -> UploadResult:
        return self.upload_material(source, MediaKind.IMAGE)

    def upload_voice_material(self, source: PayloadSource) -> UploadResult:
        return self.upload_material(source, MediaKind.VOICE)

    def upload_thumb_material(self, source: PayloadSource) -> UploadResult:
        return self.upload_material(source, MediaKind.THUMB)

    def upload_video_material(
        self,
        source: PayloadSource,
        description: Mapping[str, Any],
    ) -> UploadResult:
        """Upload permanent video material.

        Parameters
        ----------
        source:
            The video payload.
        description:
            ``{"title": ..., "introduction": ...}``, sent as a JSON-encoded
            ``description`` form field.

        Returns
        -------
        dict
            ``{"media_id": ...}``
        """
        descriptor = build_upload_request(
            source, MediaKind.VIDEO, "material/add_material", description=description,
        )
        return self._transport.request(descriptor)

    def upload_news_material(
        self,
        news: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> UploadResult:
        """Create permanent news material from one or more articles.

        Parameters
        ----------
        news:
            ``{"articles": [...]}`` or the list of article objects
            (``title``, ``thumb_media_id``, ``author``, ``digest``,
            ``show_cover_pic``, ``content``, ``content_source_url``).
        """
        return self._transport.request(
            RequestDescriptor(method="POST", url="material/add_news", json=_news_body(news)),
        )

    def update_news_material(self, news: Mapping[str, Any]) -> dict[str, Any]:
        """Replace one article of existing news material.

        Parameters
        ----------
        news:
            ``{"media_id": ..., "index": ..., "articles": {...}}``
        """
        return self._transport.request(
            RequestDescriptor(method="POST", url="material/update_news", json=dict(news)),
        )

    def get_material(self, media_id: str) -> MediaDownload | dict[str, Any]:
        """Retrieve permanent material.

        Returns
        -------
        MediaDownload | dict
            Raw bytes for image/voice/thumb material; news and video
            material are answered with JSON.
        """
        return self._transport.request(_get_material_descriptor(media_id))

    def remove_material(self, media_id: str) -> dict[str, Any]:
        return self._transport.request(
            RequestDescriptor(
                method="POST", url="material/del_material", json={"media_id": media_id},
            ),
        )

    def get_material_count(self) -> dict[str, Any]:
        """Return ``voice_count``, ``video_count``, ``image_count``, ``news_count``."""
        return self._transport.request(
            RequestDescriptor(method="GET", url="material/get_materialcount"),
        )

    def get_materials(
        self,
        kind: MaterialKind | str,
        offset: int = 0,
        count: int = MAX_BATCH_COUNT,
    ) -> dict[str, Any]:
        """List one page of permanent material.

        Parameters
        ----------
        kind:
            ``image``, ``voice``, ``video``, ``thumb`` or ``news``.
        offset:
            Position to start from; ``0`` is the first item.
        count:
            Page size, between 1 and 20.

        Returns
        -------
        dict
            ``{"total_count": ..., "item_count": ..., "item": [...]}``
        """
        return self._transport.request(_batchget_descriptor(kind, offset, count))

    def iter_materials(
        self,
        kind: MaterialKind | str,
        page_size: int = MAX_BATCH_COUNT,
    ) -> Iterator[dict[str, Any]]:
        """Yield every item of *kind*, fetching pages of *page_size* lazily."""
        offset = 0
        while True:
            page = self.get_materials(kind, offset, page_size)
            items = page.get("item") or []
            yield from items
            offset += len(items)
            if _page_done(page, offset):
                break


class AsyncMaterialAPI:
    """Asynchronous wrapper for the permanent material endpoints.

    Mirrors :class:`MaterialAPI` but all methods are coroutines.
    """

    def __init__(self, transport: AsyncWeixinTransport) -> None:
        self._transport = transport
        self.uploaders: dict[MediaKind, Callable[[PayloadSource], Awaitable[UploadResult]]] = {
            MediaKind.IMAGE: self.upload_image_material,
            MediaKind.VOICE: self.upload_voice_material,
            MediaKind.THUMB: self.upload_thumb_material,
        }

    async def upload_material(self, source: PayloadSource, kind: MediaKind | str) -> UploadResult:
        """Upload permanent binary material (async)."""
        descriptor = await asyncio.to_thread(
            build_upload_request, source, kind, "material/add_material",
        )
        return await self._transport.request(descriptor)

    async def upload_image_material(self, source: PayloadSource) -> UploadResult:
        return await self.upload_material(source, MediaKind.IMAGE)

    async def upload_voice_material(self, source: PayloadSource) -> UploadResult:
        return await self.upload_material(source, MediaKind.VOICE)

    async def upload_thumb_material(self, source: PayloadSource) -> UploadResult:
        return await self.upload_material(source, MediaKind.THUMB)

    async def upload_video_material(
        self,
        source: PayloadSource,
        description: Mapping[str, Any],
    ) -> UploadResult:
        """Upload permanent video material (async).

        See :meth:`MaterialAPI.upload_video_material`.
        """
        descriptor = await asyncio.to_thread(
            build_upload_request,
            source,
            MediaKind.VIDEO,
            "material/add_material",
            description=description,
        )
        return await self._transport.request(descriptor)

    async def upload_news_material(
        self,
        news: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> UploadResult:
        return await self._transport.request(
            RequestDescriptor(method="POST", url="material/add_news", json=_news_body(news)),
        )

    async def update_news_material(self, news: Mapping[str, Any]) -> dict[str, Any]:
        return await self._transport.request(
            RequestDescriptor(method="POST", url="material/update_news", json=dict(news)),
        )

    async def get_material(self, media_id: str) -> MediaDownload | dict[str, Any]:
        return await self._transport.request(_get_material_descriptor(media_id))

    async def remove_material(self, media_id: str) -> dict[str, Any]:
        return await self._transport.request(
            RequestDescriptor(
                method="POST", url="material/del_material", json={"media_id": media_id},
            ),
        )

    async def get_material_count(self) -> dict[str, Any]:
        return await self._transport.request(
            RequestDescriptor(method="GET", url="material/get_materialcount"),
        )

    async def get_materials(
        self,
        kind: MaterialKind | str,
        offset: int = 0,
        count: int = MAX_BATCH_COUNT,
    ) -> dict[str, Any]:
        """List one page of permanent material (async).

        See :meth:`MaterialAPI.get_materials`.
        """
        return await self._transport.request(_batchget_descriptor(kind, offset, count))

    async def iter_materials(
        self,
        kind: MaterialKind | str,
        page_size: int = MAX_BATCH_COUNT,
    ) -> AsyncIterator[dict[str, Any]]:
        """Async equivalent of :meth:`MaterialAPI.iter_materials`."""
        offset = 0
        while True:
            page = await self.get_materials(kind, offset, page_size)
            items = page.get("item") or []
            for item in items:
                yield item
            offset += len(items)
            if _page_done(page, offset):
                break
