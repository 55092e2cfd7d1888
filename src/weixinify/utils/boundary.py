"""Multipart boundary generation."""

from __future__ import annotations

import os

BOUNDARY_PREFIX = "WeixinifyFormBoundary"


def new_boundary() -> str:
    """Return a fresh random multipart boundary.

    The 128-bit random suffix is hex so the boundary stays a legal
    unquoted RFC 2046 token.  A new value is drawn for every body; callers
    must never derive it from request metadata.

    Examples
    --------
    >>> new_boundary().startswith(BOUNDARY_PREFIX)
    True
    >>> new_boundary() != new_boundary()
    True
    """
    return f"{BOUNDARY_PREFIX}{os.urandom(16).hex()}"
