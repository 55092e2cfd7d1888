"""Synchronous WeChat / WeCom SDK client.

:class:`WeixinifyClient` owns one :class:`WeixinTransport` and exposes the
endpoint groups as attributes.

Usage::

    from weixinify import FilePath, WeixinifyClient

    with WeixinifyClient(access_token="ACCESS_TOKEN") as client:
        result = client.media.upload_image_media(FilePath("photo.jpg"))
        client.message.send_text(agentid=1, touser="@all", content="hi")
"""

from __future__ import annotations

from typing import Any

from weixinify.config import WeixinifyConfig
from weixinify.weixin_api.customer import CustomerAPI
from weixinify.weixin_api.material import MaterialAPI
from weixinify.weixin_api.media import MediaAPI
from weixinify.weixin_api.message import MessageAPI
from weixinify.weixin_api.transport import WeixinTransport


class WeixinifyClient:
    """Synchronous WeChat / WeCom SDK client.

    Parameters
    ----------
    access_token:
        Static access token.  May be empty when ``token_provider`` is
        given.
    **kwargs:
        All remaining keyword arguments are forwarded to
        :class:`WeixinifyConfig`.

    Attributes
    ----------
    media:
        :class:`MediaAPI` -- temporary media.
    material:
        :class:`MaterialAPI` -- permanent material.
    message:
        :class:`MessageAPI` -- application messages.
    customer:
        :class:`CustomerAPI` -- external contacts.
    """

    def __init__(self, access_token: str = "", **kwargs: Any) -> None:
        self._config = WeixinifyConfig(access_token=access_token, **kwargs)
        self._transport = WeixinTransport(self._config)
        self.media = MediaAPI(self._transport)
        self.material = MaterialAPI(self._transport)
        self.message = MessageAPI(self._transport)
        self.customer = CustomerAPI(self._transport)

    @property
    def config(self) -> WeixinifyConfig:
        return self._config

    # ------------------------------------------------------------------
    # Resource management
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the HTTP transport."""
        self._transport.close()

    def __enter__(self) -> WeixinifyClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
