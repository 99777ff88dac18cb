"""Filesystem blob store for staged image bytes."""

from __future__ import annotations

import asyncio
import shutil
from logging import getLogger
from pathlib import Path

log = getLogger(__name__)


class FileBlobStore:
    """Stores each blob as one file named by its key inside ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        name = Path(key).name
        if not name or name != key:
            raise ValueError(f"Invalid blob key {key!r}")
        return self.directory / name

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        await asyncio.to_thread(self._write, path, data)

    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        return await asyncio.to_thread(self._read, path)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear)

    def _write(self, path: Path, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)

    @staticmethod
    def _read(path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def _clear(self) -> None:
        if self.directory.exists():
            shutil.rmtree(self.directory)
            log.info("Removed staged images in %s", self.directory)
        self.directory.mkdir(parents=True, exist_ok=True)
