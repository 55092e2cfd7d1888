"""External contact (customer relationship) API wrappers.

Provides :class:`CustomerAPI` (sync) and :class:`AsyncCustomerAPI` (async)
over the WeCom ``crm/*`` endpoints: members configured for customer contact,
external contacts, and "contact me" channels.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from weixinify.models import RequestDescriptor

from .transport import AsyncWeixinTransport, WeixinTransport


def _post(path: str, body: Mapping[str, Any] | None) -> RequestDescriptor:
    return RequestDescriptor(method="POST", url=path, json=dict(body or {}))


class CustomerAPI:
    """Synchronous wrapper for the external contact endpoints.

    Parameters
    ----------
    transport:
        A configured :class:`WeixinTransport` instance.
    """

    def __init__(self, transport: WeixinTransport) -> None:
        self._transport = transport

    def get_customer_contacts(self, data: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """List members that have customer contact enabled.

        Returns
        -------
        dict
            ``{"errcode": 0, "errmsg": "ok", "follow_user": [...]}``
        """
        return self._transport.request(_post("crm/get_customer_contacts", data))

    def get_external_contact_list(self, user_id: str) -> dict[str, Any]:
        """List the external contacts of member *user_id*."""
        return self._transport.request(
            RequestDescriptor(
                method="GET",
                url="crm/get_external_contact_list",
                params={"userid": user_id},
            ),
        )

    def get_external_contact(self, external_user_id: str) -> dict[str, Any]:
        """Retrieve one external contact and the members following them."""
        return self._transport.request(
            RequestDescriptor(
                method="GET",
                url="crm/get_external_contact",
                params={"external_userid": external_user_id},
            ),
        )

    def add_contact_way(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Configure a "contact me" channel.

        Parameters
        ----------
        data:
            ``type`` (1 single member, 2 multiple members) and ``scene``
            (1 mini program, 2 QR code) are required; ``style``,
            ``remark``, ``skip_verify``, ``state``, ``user`` and ``party``
            are optional.

        Returns
        -------
        dict
            ``{"errcode": 0, "errmsg": "ok", "config_id": ...}``
        """
        return self._transport.request(_post("crm/add_contact_way", data))

    def get_contact_way(self, config_id: str) -> dict[str, Any]:
        return self._transport.request(
            _post("crm/get_contact_way", {"config_id": config_id}),
        )

    def update_contact_way(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Update a channel; *data* must carry its ``config_id``."""
        return self._transport.request(_post("crm/update_contact_way", data))

    def del_contact_way(self, config_id: str) -> dict[str, Any]:
        return self._transport.request(
            _post("crm/del_contact_way", {"config_id": config_id}),
        )


class AsyncCustomerAPI:
    """Asynchronous wrapper for the external contact endpoints.

    Mirrors :class:`CustomerAPI` but all methods are coroutines.
    """

    def __init__(self, transport: AsyncWeixinTransport) -> None:
        self._transport = transport

    async def get_customer_contacts(
        self,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await self._transport.request(_post("crm/get_customer_contacts", data))

    async def get_external_contact_list(self, user_id: str) -> dict[str, Any]:
        return await self._transport.request(
            RequestDescriptor(
                method="GET",
                url="crm/get_external_contact_list",
                params={"userid": user_id},
            ),
        )

    async def get_external_contact(self, external_user_id: str) -> dict[str, Any]:
        return await self._transport.request(
            RequestDescriptor(
                method="GET",
                url="crm/get_external_contact",
                params={"external_userid": external_user_id},
            ),
        )

    async def add_contact_way(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return await self._transport.request(_post("crm/add_contact_way", data))

    async def get_contact_way(self, config_id: str) -> dict[str, Any]:
        return await self._transport.request(
            _post("crm/get_contact_way", {"config_id": config_id}),
        )

    async def update_contact_way(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return await self._transport.request(_post("crm/update_contact_way", data))

    async def del_contact_way(self, config_id: str) -> dict[str, Any]:
        return await self._transport.request(
            _post("crm/del_contact_way", {"config_id": config_id}),
        )
