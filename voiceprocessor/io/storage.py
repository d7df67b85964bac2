"""Audio storage abstraction.

Responsibilities:
- Persist segment and final audio under deterministic relative paths.
- Return the public URL clients use to fetch stored audio.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import Protocol


class AudioStorage(Protocol):
    """Capability for persisting audio payloads."""

    async def save(self, relative_path: str, data: bytes, content_type: str) -> str:
        """Persist `data` and return its public URL."""


def generation_audio_path(generation_id: str, audio_format: str) -> str:
    """Return the storage path of a generation's final audio."""

    return f"generations/{generation_id}/audio.{audio_format}"


def segment_audio_path(generation_id: str, index: int, audio_format: str) -> str:
    """Return the storage path of one segment's audio."""

    return f"generations/{generation_id}/segments/{index}.{audio_format}"


class LocalAudioStorage:
    """Filesystem-backed audio store."""

    def __init__(self, root: Path, public_url_base: str = "/files") -> None:
        """Initialize the store with a root directory and URL prefix."""

        self.root = root
        self.public_url_base = public_url_base.rstrip("/")

    async def save(self, relative_path: str, data: bytes, content_type: str) -> str:
        """Write audio bytes off the event loop and return the public URL."""

        normalized = self.normalize(relative_path)
        await asyncio.to_thread(self._write, normalized, data)
        return f"{self.public_url_base}/{normalized}"

    def path_for(self, relative_path: str) -> Path:
        """Return the filesystem path backing `relative_path`."""

        return self.root / self.normalize(relative_path)

    def load(self, relative_path: str) -> bytes:
        """Load stored audio bytes."""

        return self.path_for(relative_path).read_bytes()

    def exists(self, relative_path: str) -> bool:
        """Return whether audio exists at `relative_path`."""

        return self.path_for(relative_path).exists()

    @staticmethod
    def normalize(relative_path: str) -> str:
        """Strip traversal and empty segments from a storage path."""

        parts = [
            part
            for part in PurePosixPath(relative_path.replace("\\", "/")).parts
            if part not in {"", ".", "..", "/"}
        ]
        if not parts:
            raise ValueError(f"Storage path `{relative_path}` is empty after normalization.")
        return "/".join(parts)

    def _write(self, normalized: str, data: bytes) -> None:
        path = self.root / normalized
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
