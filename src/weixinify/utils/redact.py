"""Token / payload redaction for safe logging.

Before any request or response is written to a debug dump the
:func:`redact` function must be applied.  It enforces the following rules:

* Values under **sensitive keys** (``access_token``, ``secret``...) are
  replaced with a masked placeholder that shows only the last four
  characters of the token.
* The configured **access token is scrubbed** from every string, including
  URLs where it travels as a query parameter.
* **Binary values** are replaced with ``<binary:N_bytes>``.
"""

from __future__ import annotations

import re
from typing import Any

# If any of these substrings appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "encodingaeskey",
})

_TOKEN_QUERY_RE = re.compile(r"(access_token=)[^&\s]+")


def _mask_token(value: str, token: str | None) -> str:
    """Replace the access token inside *value* with a safe placeholder."""
    if token and token in value:
        suffix = token[-4:] if len(token) >= 4 else "****"
        placeholder = f"<redacted:...{suffix}>"
        if token in placeholder:
            placeholder = "<redacted>"
        value = value.replace(token, placeholder)
    return _TOKEN_QUERY_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)


def _redact_value(value: Any, token: str | None) -> Any:
    """Redact a single value (recursive for dicts / lists)."""
    if isinstance(value, dict):
        return _redact_dict(value, token)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, token) for item in value]
    if isinstance(value, str):
        return _mask_token(value, token)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<binary:{len(value)}_bytes>"
    return value


def _redact_dict(d: dict, token: str | None) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            if isinstance(value, str) and token and value == token:
                result[key] = _mask_token(value, token)
            else:
                result[key] = "<redacted>"
        else:
            result[key] = _redact_value(value, token)
    return result


def redact(payload: dict, token: str | None = None) -> dict:
    """Return a copy of *payload* with sensitive data redacted.

    Parameters
    ----------
    payload:
        The dictionary to sanitize (a debug dump, query parameters...).
    token:
        The access token.  If supplied, any occurrence of this exact
        string anywhere in the payload is replaced.

    Returns
    -------
    dict
        A new dictionary; the original *payload* is never mutated.

    Examples
    --------
    >>> redact({"access_token": "abc"})
    {'access_token': '<redacted>'}
    """
    return _redact_dict(payload, token)
