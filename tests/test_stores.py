"""Tests for the store adapters: metadata key-value stores and blob stores."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cloudvault.fs.exceptions import InvalidPathError, NotFoundError
from cloudvault.stores import (
    BlobBody,
    BlobStore,
    ByteRange,
    Conditional,
    LocalDiskBlobStore,
    MemoryBlobStore,
    MemoryMetadataStore,
    MetadataStore,
    iter_keys,
)


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


@pytest.fixture(params=["memory", "database"])
async def metadata(request, db_store) -> MetadataStore:
    if request.param == "memory":
        return MemoryMetadataStore()
    return db_store


@pytest.fixture(params=["memory", "disk"])
async def blobs(request, tmp_path) -> BlobStore:
    store = MemoryBlobStore() if request.param == "memory" else LocalDiskBlobStore(tmp_path)
    await store.open()
    return store


# ---------------------------------------------------------------------------
# Metadata stores
# ---------------------------------------------------------------------------


class TestMetadataStore:
    def test_protocol(self, metadata):
        assert isinstance(metadata, MetadataStore)

    async def test_put_get_delete(self, metadata):
        assert await metadata.get("file:1") is None
        await metadata.put("file:1", "one")
        assert await metadata.get("file:1") == "one"
        await metadata.put("file:1", "uno")
        assert await metadata.get("file:1") == "uno"
        await metadata.delete("file:1")
        assert await metadata.get("file:1") is None

    async def test_delete_missing_is_noop(self, metadata):
        await metadata.delete("nope")

    async def test_list_prefix(self, metadata):
        for key in ["file:b", "file:a", "folder:x", "filez"]:
            await metadata.put(key, "v")
        page = await metadata.list("file:")
        assert page.keys == ["file:a", "file:b"]
        assert page.complete is True
        assert page.cursor is None

    async def test_list_prefix_with_like_wildcards(self, metadata):
        await metadata.put("stats:total_files", "1")
        await metadata.put("stats:totalXfiles", "1")
        page = await metadata.list("stats:total_")
        assert page.keys == ["stats:total_files"]

    async def test_pagination(self, metadata):
        for i in range(5):
            await metadata.put(f"session:{i}", "v")
        first = await metadata.list("session:", limit=2)
        assert first.keys == ["session:0", "session:1"]
        assert first.complete is False
        second = await metadata.list("session:", limit=2, cursor=first.cursor)
        assert second.keys == ["session:2", "session:3"]
        third = await metadata.list("session:", limit=2, cursor=second.cursor)
        assert third.keys == ["session:4"]
        assert third.complete is True

    async def test_iter_keys_follows_cursors(self, metadata):
        for i in range(7):
            await metadata.put(f"folder:{i}", "v")
        await metadata.put("other", "v")
        keys = [k async for k in iter_keys(metadata, "folder:", page_size=3)]
        assert keys == [f"folder:{i}" for i in range(7)]


# ---------------------------------------------------------------------------
# Blob stores
# ---------------------------------------------------------------------------


class TestBlobPutGet:
    async def test_put_bytes(self, blobs):
        obj = await blobs.put("docs/a.txt", b"hello", content_type="text/plain")
        assert obj.size == 5
        assert obj.key == "docs/a.txt"
        assert obj.content_type == "text/plain"
        body = await blobs.get("docs/a.txt")
        assert isinstance(body, BlobBody)
        assert await body.read() == b"hello"

    async def test_put_stream(self, blobs):
        obj = await blobs.put("big.bin", _chunks(b"ab", b"", b"cd"))
        assert obj.size == 4
        body = await blobs.get("big.bin")
        assert await body.read() == b"abcd"

    async def test_etag_is_md5(self, blobs):
        obj = await blobs.put("a", b"hello")
        assert obj.etag == "5d41402abc4b2a76b9719d911017c592"
        assert obj.http_etag == '"5d41402abc4b2a76b9719d911017c592"'

    async def test_get_missing(self, blobs):
        assert await blobs.get("missing") is None
        assert await blobs.head("missing") is None

    async def test_key_and_nested_key_coexist(self, blobs):
        await blobs.put("a", b"file")
        await blobs.put("a/b", b"nested")
        assert await (await blobs.get("a")).read() == b"file"
        assert await (await blobs.get("a/b")).read() == b"nested"

    async def test_traversal_rejected(self, blobs):
        with pytest.raises(InvalidPathError):
            await blobs.put("../escape", b"x")
        with pytest.raises(InvalidPathError):
            await blobs.get("a/../../b")

    async def test_custom_metadata_round_trip(self, blobs):
        await blobs.put("a.txt", b"x", custom_metadata={"fileId": "123"})
        head = await blobs.head("a.txt")
        assert head.custom_metadata == {"fileId": "123"}

    async def test_range(self, blobs):
        await blobs.put("r.bin", bytes(range(100)))
        body = await blobs.get("r.bin", range=ByteRange(offset=10, length=10))
        assert body.range == ByteRange(10, 10)
        assert await body.read() == bytes(range(10, 20))

    async def test_delete_and_copy(self, blobs):
        await blobs.put("src.txt", b"data", content_type="text/plain")
        copied = await blobs.copy("src.txt", "dir/dst.txt")
        assert copied.key == "dir/dst.txt"
        assert copied.size == 4
        await blobs.delete("src.txt")
        assert await blobs.head("src.txt") is None
        assert await (await blobs.get("dir/dst.txt")).read() == b"data"

    async def test_copy_missing(self, blobs):
        assert await blobs.copy("nope", "dst") is None


class TestConditional:
    async def test_if_none_match_hit(self, blobs):
        obj = await blobs.put("c.txt", b"hello")
        cond = Conditional(if_none_match=obj.http_etag)
        result = await blobs.get("c.txt", conditional=cond)
        assert not isinstance(result, BlobBody)
        assert cond.evaluate(result.etag, result.uploaded) == 304

    async def test_if_match_miss(self, blobs):
        await blobs.put("c.txt", b"hello")
        cond = Conditional(if_match='"other"')
        result = await blobs.get("c.txt", conditional=cond)
        assert not isinstance(result, BlobBody)
        assert cond.evaluate(result.etag, result.uploaded) == 412

    async def test_if_match_hit(self, blobs):
        obj = await blobs.put("c.txt", b"hello")
        result = await blobs.get("c.txt", conditional=Conditional(if_match=obj.http_etag))
        assert isinstance(result, BlobBody)

    def test_from_headers_empty(self):
        assert Conditional.from_headers({}) is None

    def test_dates_compare_at_second_precision(self):
        modified = datetime(2024, 1, 1, 12, 0, 0, 500000, tzinfo=UTC)
        cond = Conditional(if_modified_since=modified.replace(microsecond=0))
        assert cond.evaluate("x", modified) == 304
        later = Conditional(if_modified_since=modified - timedelta(minutes=1))
        assert later.evaluate("x", modified) is None

    def test_if_unmodified_since(self):
        modified = datetime(2024, 1, 1, tzinfo=UTC)
        cond = Conditional(if_unmodified_since=modified - timedelta(days=1))
        assert cond.evaluate("x", modified) == 412


class TestMultipart:
    async def test_complete(self, blobs):
        upload_id = await blobs.create_multipart_upload("movies/film.mp4", content_type="video/mp4")
        p2 = await blobs.upload_part("movies/film.mp4", upload_id, 2, b"world")
        p1 = await blobs.upload_part("movies/film.mp4", upload_id, 1, _chunks(b"hello "))
        obj = await blobs.complete_multipart_upload("movies/film.mp4", upload_id, [p2, p1])
        assert obj.size == 11
        assert obj.content_type == "video/mp4"
        assert await (await blobs.get("movies/film.mp4")).read() == b"hello world"

    async def test_unknown_upload(self, blobs):
        with pytest.raises(NotFoundError):
            await blobs.upload_part("x", "deadbeef", 1, b"data")

    async def test_key_mismatch(self, blobs):
        upload_id = await blobs.create_multipart_upload("a.bin")
        with pytest.raises(NotFoundError):
            await blobs.upload_part("b.bin", upload_id, 1, b"data")

    async def test_missing_part(self, blobs):
        upload_id = await blobs.create_multipart_upload("a.bin")
        part = await blobs.upload_part("a.bin", upload_id, 1, b"data")
        ghost = type(part)(part_number=2, etag=part.etag)
        with pytest.raises(NotFoundError):
            await blobs.complete_multipart_upload("a.bin", upload_id, [part, ghost])

    async def test_mismatched_etag(self, blobs):
        upload_id = await blobs.create_multipart_upload("a.bin")
        part = await blobs.upload_part("a.bin", upload_id, 1, b"data")
        stale = type(part)(part_number=1, etag="0" * 32)
        with pytest.raises(NotFoundError):
            await blobs.complete_multipart_upload("a.bin", upload_id, [stale])
        obj = await blobs.complete_multipart_upload("a.bin", upload_id, [part])
        assert obj.size == 4

    async def test_abort(self, blobs):
        upload_id = await blobs.create_multipart_upload("a.bin")
        await blobs.abort_multipart_upload("a.bin", upload_id)
        with pytest.raises(NotFoundError):
            await blobs.upload_part("a.bin", upload_id, 1, b"data")


class TestLocalDiskLayout:
    async def test_files_stay_under_root(self, tmp_path):
        store = LocalDiskBlobStore(tmp_path / "blobs")
        await store.open()
        await store.put("deep/nested/file.txt", b"x")
        written = [p for p in (tmp_path / "blobs").rglob("*") if p.is_file()]
        assert written
        assert all(p.is_relative_to(tmp_path / "blobs") for p in written)

    async def test_survives_reopen(self, tmp_path):
        store = LocalDiskBlobStore(tmp_path)
        await store.open()
        await store.put("keep.txt", b"persisted", content_type="text/plain")
        again = LocalDiskBlobStore(tmp_path)
        await again.open()
        head = await again.head("keep.txt")
        assert head.size == 9
        assert head.content_type == "text/plain"
