from __future__ import annotations

import pytest

from steam_archive.errors import StorageError
from steam_archive.storage.memory_transport import MemoryTransport


@pytest.mark.asyncio
async def test_write_blob_if_absent(transport: MemoryTransport) -> None:
    assert await transport.write_blob_if_absent("a/b.json", b"first") is True
    assert await transport.write_blob_if_absent("a/b.json", b"second") is False

    assert await transport.read_blob("a/b.json") == b"first"


@pytest.mark.asyncio
async def test_commit_without_changes(transport: MemoryTransport) -> None:
    await transport.write_blob("a/b.json", b"x")
    assert await transport.commit("one") is not None
    assert await transport.commit("two") is None
    assert transport.commit_count == 1


@pytest.mark.asyncio
async def test_tags_are_published_on_push(transport: MemoryTransport) -> None:
    commit_id = await transport.commit_tree({"x": b"1"}, "detached")
    await transport.create_tag("keep", commit_id)
    assert transport.published_tags == set()

    await transport.push()
    assert transport.published_tags == {"keep"}

    await transport.delete_tag("keep")
    await transport.push()
    assert transport.published_tags == set()


@pytest.mark.asyncio
async def test_tag_errors(transport: MemoryTransport) -> None:
    with pytest.raises(StorageError):
        await transport.create_tag("nowhere")
    commit_id = await transport.commit_tree({"x": b"1"}, "detached")
    await transport.create_tag("once", commit_id)
    with pytest.raises(StorageError):
        await transport.create_tag("once", commit_id)
    with pytest.raises(StorageError):
        await transport.delete_tag("never")


@pytest.mark.asyncio
async def test_gc_keeps_head_history_and_tagged_commits(transport: MemoryTransport) -> None:
    await transport.write_blob("k", b"v1")
    await transport.commit("v1")
    await transport.write_blob("k", b"v2")
    await transport.commit("v2")
    tagged = await transport.commit_tree({"m": b"tagged"}, "tagged")
    await transport.create_tag("t", tagged)
    await transport.commit_tree({"m": b"orphan"}, "orphan")

    assert transport.gc() == 1

    assert transport.has_object(b"v1")
    assert transport.has_object(b"v2")
    assert transport.has_object(b"tagged")
    assert not transport.has_object(b"orphan")
    assert await transport.read_blob("m", revision="t") == b"tagged"
