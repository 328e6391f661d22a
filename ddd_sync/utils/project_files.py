"""Async project file primitives: hash, read, write, create-directory, delete.

Every primitive is a coroutine so callers suspend only on file I/O. The
blocking ``pathlib``/``hashlib`` work runs in the default thread pool.
Paths are project-root relative unless already absolute.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

from ddd_sync.errors import FileMissingError

CHUNK_SIZE = 64 * 1024


def content_hash(data: bytes | str) -> str:
    """SHA-256 hex digest of the given content."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def short_checksum(data: bytes | str) -> str:
    """First 12 hex characters of the SHA-256 digest."""
    return content_hash(data)[:12]


def _hash_path(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ProjectFiles:
    """Async file access rooted at a project directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def resolve(self, path: str | Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    def relative(self, path: str | Path) -> str:
        """Return ``path`` relative to the project root in POSIX form.

        Paths outside the root are returned unchanged.
        """
        path = Path(path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.root)
            except ValueError:
                return path.as_posix()
        return path.as_posix()

    async def hash_file(self, path: str | Path) -> str:
        """Content hash of a file.

        Raises:
            FileMissingError: The file does not exist or cannot be read.
        """
        target = self.resolve(path)
        try:
            return await asyncio.to_thread(_hash_path, target)
        except OSError as e:
            raise FileMissingError(str(path), e.strerror or type(e).__name__) from e

    async def read_text(self, path: str | Path) -> str:
        target = self.resolve(path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileMissingError(str(path), str(e)) from e

    async def write_text(self, path: str | Path, contents: str) -> None:
        target = self.resolve(path)
        await asyncio.to_thread(target.write_text, contents, encoding="utf-8")

    async def create_directory(self, path: str | Path) -> None:
        """Create a directory and its parents; an existing directory is fine."""
        target = self.resolve(path)
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)

    async def delete(self, path: str | Path) -> None:
        target = self.resolve(path)
        await asyncio.to_thread(target.unlink, missing_ok=True)

    async def exists(self, path: str | Path) -> bool:
        return await asyncio.to_thread(self.resolve(path).exists)

    async def list_directory(self, path: str | Path) -> list[str]:
        """Sorted entry names of a directory, empty when it does not exist."""
        target = self.resolve(path)

        def _list() -> list[str]:
            if not target.is_dir():
                return []
            return sorted(item.name for item in target.iterdir())

        return await asyncio.to_thread(_list)
