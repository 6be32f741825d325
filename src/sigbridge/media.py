"""Inbound media storage for Signal attachments.

Attachments fetched from the daemon are written to a local directory and
handed to the reply pipeline by path. Keys are date-partitioned with a random
suffix to avoid collisions:

    {base_dir}/inbound/2026/02/16/a1b2c3d4-....jpg
"""

from __future__ import annotations

import asyncio
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal, Protocol

MediaKind = Literal["image", "audio", "video", "document"]

_DOCUMENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "text/csv",
    }
)


def media_kind_from_mime(content_type: str | None) -> MediaKind | None:
    """Map a MIME type to a coarse media kind, or None when unknown."""
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("audio/"):
        return "audio"
    if mime.startswith("video/"):
        return "video"
    if mime in _DOCUMENT_TYPES:
        return "document"
    return None


class MediaTooLargeError(Exception):
    """Raised when media exceeds the configured byte cap."""

    def __init__(self, size: int, max_bytes: int) -> None:
        self.size = size
        self.max_bytes = max_bytes
        super().__init__(f"Media size {size} exceeds {max_bytes} byte limit")


@dataclass(frozen=True)
class SavedMedia:
    path: str
    content_type: str | None


class MediaStore(Protocol):
    async def save(
        self, data: bytes, content_type: str | None, max_bytes: int
    ) -> SavedMedia: ...


class LocalMediaStore:
    """Filesystem-backed media store.

    Args:
        base_dir: Root directory; inbound files land under ``inbound/``.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir).resolve()

    def _generate_path(self, content_type: str | None) -> Path:
        date_prefix = datetime.now(UTC).strftime("%Y/%m/%d")
        ext = ""
        if content_type:
            ext = mimetypes.guess_extension(content_type.split(";", 1)[0].strip()) or ""
        return self.base_dir / "inbound" / date_prefix / f"{uuid.uuid4()}{ext}"

    async def save(self, data: bytes, content_type: str | None, max_bytes: int) -> SavedMedia:
        if len(data) > max_bytes:
            raise MediaTooLargeError(len(data), max_bytes)

        path = self._generate_path(content_type)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.get_running_loop().run_in_executor(None, _write)
        return SavedMedia(path=str(path), content_type=content_type)
