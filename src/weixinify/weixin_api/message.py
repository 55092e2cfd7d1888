"""Application message API wrappers.

Provides :class:`MessageAPI` (sync) and :class:`AsyncMessageAPI` (async)
around ``message/send``.  :meth:`MessageAPI.send` takes a complete message
object; the ``send_*`` helpers assemble the common message types.

Recipients are ``|``-separated id lists (``"UserID1|UserID2"``); ``"@all"``
as ``touser`` addresses every member visible to the application.  Recipient
keys left as ``None`` are omitted from the payload.
"""

from __future__ import annotations

from typing import Any

from weixinify.models import RequestDescriptor

from .transport import AsyncWeixinTransport, WeixinTransport

DEFAULT_CARD_BUTTON = "详情"


def _message(
    msgtype: str,
    body: dict[str, Any],
    *,
    agentid: int,
    touser: str | None,
    toparty: str | None,
    totag: str | None,
) -> dict[str, Any]:
    message: dict[str, Any] = {
        key: value
        for key, value in (("touser", touser), ("toparty", toparty), ("totag", totag))
        if value is not None
    }
    message["msgtype"] = msgtype
    message["agentid"] = agentid
    message[msgtype] = body
    return message


def text_message(
    *,
    agentid: int,
    content: str,
    touser: str | None = None,
    toparty: str | None = None,
    totag: str | None = None,
) -> dict[str, Any]:
    """Build a ``text`` message object."""
    return _message(
        "text", {"content": content},
        agentid=agentid, touser=touser, toparty=toparty, totag=totag,
    )


def card_message(
    *,
    agentid: int,
    title: str,
    description: str,
    url: str,
    btntxt: str | None = None,
    touser: str | None = None,
    toparty: str | None = None,
    totag: str | None = None,
) -> dict[str, Any]:
    """Build a ``textcard`` message object; ``btntxt`` defaults to ``详情``."""
    body = {
        "title": title,
        "description": description,
        "url": url,
        "btntxt": btntxt or DEFAULT_CARD_BUTTON,
    }
    return _message(
        "textcard", body,
        agentid=agentid, touser=touser, toparty=toparty, totag=totag,
    )


def markdown_message(
    *,
    agentid: int,
    content: str,
    touser: str | None = None,
    toparty: str | None = None,
    totag: str | None = None,
) -> dict[str, Any]:
    """Build a ``markdown`` message object."""
    return _message(
        "markdown", {"content": content},
        agentid=agentid, touser=touser, toparty=toparty, totag=totag,
    )


class MessageAPI:
    """Synchronous wrapper for ``message/send``.

    Parameters
    ----------
    transport:
        A configured :class:`WeixinTransport` instance.
    """

    def __init__(self, transport: WeixinTransport) -> None:
        self._transport = transport

    def send(self, message: dict[str, Any]) -> dict[str, Any]:
        """Send an application message.

        Parameters
        ----------
        message:
            The full message object, e.g.::

                {"touser": "UserID1|UserID2", "msgtype": "text",
                 "agentid": 1, "text": {"content": "..."}, "safe": 0}

        Returns
        -------
        dict
            ``{"errcode": 0, "errmsg": "ok", "invaliduser": ...}``
        """
        return self._transport.request(
            RequestDescriptor(method="POST", url="message/send", json=message),
        )

    def send_text(
        self,
        *,
        agentid: int,
        content: str,
        touser: str | None = None,
        toparty: str | None = None,
        totag: str | None = None,
    ) -> dict[str, Any]:
        return self.send(text_message(
            agentid=agentid, content=content,
            touser=touser, toparty=toparty, totag=totag,
        ))

    def send_card(
        self,
        *,
        agentid: int,
        title: str,
        description: str,
        url: str,
        btntxt: str | None = None,
        touser: str | None = None,
        toparty: str | None = None,
        totag: str | None = None,
    ) -> dict[str, Any]:
        return self.send(card_message(
            agentid=agentid, title=title, description=description, url=url,
            btntxt=btntxt, touser=touser, toparty=toparty, totag=totag,
        ))

    def send_markdown(
        self,
        *,
        agentid: int,
        content: str,
        touser: str | None = None,
        toparty: str | None = None,
        totag: str | None = None,
    ) -> dict[str, Any]:
        return self.send(markdown_message(
            agentid=agentid, content=content,
            touser=touser, toparty=toparty, totag=totag,
        ))


class AsyncMessageAPI:
    """Asynchronous wrapper for ``message/send``.

    Mirrors :class:`MessageAPI` but all methods are coroutines.
    """

    def __init__(self, transport: AsyncWeixinTransport) -> None:
        self._transport = transport

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        return await self._transport.request(
            RequestDescriptor(method="POST", url="message/send", json=message),
        )

    async def send_text(
        self,
        *,
        agentid: int,
        content: str,
        touser: str | None = None,
        toparty: str | None = None,
        totag: str | None = None,
    ) -> dict[str, Any]:
        return await self.send(text_message(
            agentid=agentid, content=content,
            touser=touser, toparty=toparty, totag=totag,
        ))

    async def send_card(
        self,
        *,
        agentid: int,
        title: str,
        description: str,
        url: str,
        btntxt: str | None = None,
        touser: str | None = None,
        toparty: str | None = None,
        totag: str | None = None,
    ) -> dict[str, Any]:
        return await self.send(card_message(
            agentid=agentid, title=title, description=description, url=url,
            btntxt=btntxt, touser=touser, toparty=toparty, totag=totag,
        ))

    async def send_markdown(
        self,
        *,
        agentid: int,
        content: str,
        touser: str | None = None,
        toparty: str | None = None,
        totag: str | None = None,
    ) -> dict[str, Any]:
        return await self.send(markdown_message(
            agentid=agentid, content=content,
            touser=touser, toparty=toparty, totag=totag,
        ))
