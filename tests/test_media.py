"""Tests for inbound media classification and storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from sigbridge.media import LocalMediaStore, MediaTooLargeError, media_kind_from_mime

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("mime", "kind"),
    [
        ("image/jpeg", "image"),
        ("audio/aac", "audio"),
        ("video/mp4; codecs=avc1", "video"),
        ("application/pdf", "document"),
        ("application/octet-stream", None),
        (None, None),
    ],
)
def test_media_kind_from_mime(mime, kind) -> None:
    assert media_kind_from_mime(mime) == kind


class TestLocalMediaStore:
    async def test_save_writes_date_partitioned_file(self, tmp_path: Path) -> None:
        store = LocalMediaStore(tmp_path)
        saved = await store.save(b"\x89PNG", "image/png", max_bytes=1024)

        path = Path(saved.path)
        assert path.read_bytes() == b"\x89PNG"
        assert path.suffix == ".png"
        assert path.relative_to(tmp_path.resolve()).parts[0] == "inbound"
        assert saved.content_type == "image/png"

    async def test_save_unknown_type_has_no_extension(self, tmp_path: Path) -> None:
        saved = await LocalMediaStore(tmp_path).save(b"data", None, max_bytes=1024)
        assert Path(saved.path).suffix == ""

    async def test_save_rejects_oversized(self, tmp_path: Path) -> None:
        with pytest.raises(MediaTooLargeError):
            await LocalMediaStore(tmp_path).save(b"x" * 11, "text/plain", max_bytes=10)
