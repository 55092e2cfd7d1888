"""Asynchronous WeChat / WeCom SDK client.

:class:`AsyncWeixinifyClient` mirrors :class:`WeixinifyClient` but every
I/O method is an ``async def`` coroutine.

Usage::

    import asyncio
    from weixinify import AsyncWeixinifyClient, InMemoryBuffer

    async def main():
        async with AsyncWeixinifyClient(access_token="ACCESS_TOKEN") as client:
            result = await client.media.upload_voice_media(
                InMemoryBuffer(data=b"...", filename="hello.amr", mime_type="audio/amr"),
            )
            print(result["media_id"])

    asyncio.run(main())
"""

from __future__ import annotations

from typing import Any

from weixinify.config import WeixinifyConfig
from weixinify.weixin_api.customer import AsyncCustomerAPI
from weixinify.weixin_api.material import AsyncMaterialAPI
from weixinify.weixin_api.media import AsyncMediaAPI
from weixinify.weixin_api.message import AsyncMessageAPI
from weixinify.weixin_api.transport import AsyncWeixinTransport


class AsyncWeixinifyClient:
    """Asynchronous WeChat / WeCom SDK client.

    Parameters
    ----------
    access_token:
        Static access token.  May be empty when ``token_provider`` is
        given.
    **kwargs:
        All remaining keyword arguments are forwarded to
        :class:`WeixinifyConfig`.
    """

    def __init__(self, access_token: str = "", **kwargs: Any) -> None:
        """Create client.  All kwargs are forwarded to WeixinifyConfig."""
        self._config = WeixinifyConfig(access_token=access_token, **kwargs)
        self._transport = AsyncWeixinTransport(self._config)
        self.media = AsyncMediaAPI(self._transport)
        self.material = AsyncMaterialAPI(self._transport)
        self.message = AsyncMessageAPI(self._transport)
        self.customer = AsyncCustomerAPI(self._transport)

    @property
    def config(self) -> WeixinifyConfig:
        return self._config

    # ------------------------------------------------------------------
    # Resource management
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP transport."""
        await self._transport.close()

    async def __aenter__(self) -> AsyncWeixinifyClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
