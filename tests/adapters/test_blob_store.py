from __future__ import annotations

import asyncio
from pathlib import Path  # noqa: TC003

import pytest

from shelfsync.adapters.blobs import FileBlobStore


def test_put_get_delete_round_trip(tmp_path: Path) -> None:
    store = FileBlobStore(tmp_path / "blobs")

    async def scenario() -> tuple[bytes | None, bytes | None]:
        await store.put("taza_1.png", b"png")
        stored = await store.get("taza_1.png")
        await store.delete("taza_1.png")
        return stored, await store.get("taza_1.png")

    stored, after_delete = asyncio.run(scenario())

    assert stored == b"png"
    assert after_delete is None


def test_clear_removes_every_blob(tmp_path: Path) -> None:
    store = FileBlobStore(tmp_path / "blobs")

    async def scenario() -> None:
        await store.put("a.png", b"a")
        await store.put("b.png", b"b")
        await store.clear()

    asyncio.run(scenario())

    assert list((tmp_path / "blobs").iterdir()) == []
    assert (tmp_path / "blobs").is_dir()


def test_put_leaves_no_temporary_files(tmp_path: Path) -> None:
    store = FileBlobStore(tmp_path)

    asyncio.run(store.put("a.png", b"a"))

    assert [path.name for path in tmp_path.iterdir()] == ["a.png"]


@pytest.mark.parametrize("key", ["../escape.png", "nested/a.png", ""])
def test_rejects_keys_outside_the_directory(tmp_path: Path, key: str) -> None:
    store = FileBlobStore(tmp_path)

    with pytest.raises(ValueError, match="Invalid blob key"):
        asyncio.run(store.put(key, b"x"))
