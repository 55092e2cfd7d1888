"""weixinify.weixin_api -- HTTP transport and endpoint wrappers.

This sub-package provides:

* :mod:`.retries` -- Retry decision logic and exponential backoff.
* :mod:`.transport` -- HTTP transport executing request descriptors.
* :mod:`.media` -- Temporary media wrappers.
* :mod:`.material` -- Permanent material wrappers.
* :mod:`.message` -- Application message wrappers.
* :mod:`.customer` -- External contact wrappers.
"""

from __future__ import annotations

from .customer import AsyncCustomerAPI, CustomerAPI
from .material import AsyncMaterialAPI, MaterialAPI
from .media import AsyncMediaAPI, MediaAPI
from .message import AsyncMessageAPI, MessageAPI
from .retries import compute_backoff, should_retry
from .transport import AsyncWeixinTransport, WeixinTransport

__all__ = [
    "AsyncCustomerAPI",
    "AsyncMaterialAPI",
    "AsyncMediaAPI",
    "AsyncMessageAPI",
    "AsyncWeixinTransport",
    "CustomerAPI",
    "MaterialAPI",
    "MediaAPI",
    "MessageAPI",
    "WeixinTransport",
    "compute_backoff",
    "should_retry",
]
