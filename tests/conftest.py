"""Shared test fixtures for the weixinify test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

# JPEG SOI and EOI markers around zero padding, 2048 bytes in total.
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 2042 + b"\xff\xd9"


@pytest.fixture
def photo(tmp_path: Path) -> Path:
    """A 2048-byte ``photo.jpg`` on disk."""
    path = tmp_path / "photo.jpg"
    path.write_bytes(JPEG_BYTES)
    return path
