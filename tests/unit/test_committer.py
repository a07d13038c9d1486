"""
Unit tests for page staging and commit.

Tests cover:
- Last-write-wins buffering
- Upload key layout
- Page size validation
- Retry after transport failures
"""

import pytest

from dbaas.bottomless.errors import PageSizeMismatchError
from dbaas.bottomless.keys import page_key
from dbaas.bottomless.replicator import Committer, PageWriteBuffer
from dbaas.bottomless.storage import StorageTransportError
from tests.conftest import make_page


class TestPageWriteBuffer:
    """Tests for PageWriteBuffer."""

    def test_last_write_wins(self):
        buffer = PageWriteBuffer()

        buffer.write(0, make_page(1))
        buffer.write(0, make_page(2))

        assert len(buffer) == 1
        assert buffer.get(0) == make_page(2)

    def test_insertion_order(self):
        buffer = PageWriteBuffer()
        for page_no in (5, 0, 3):
            buffer.write(page_no, make_page(page_no))
        buffer.write(5, make_page(9))

        assert [page_no for page_no, _ in buffer.items()] == [5, 0, 3]

    def test_negative_page_rejected(self):
        with pytest.raises(ValueError):
            PageWriteBuffer().write(-1, make_page(0))

    def test_copies_mutable_input(self):
        data = bytearray(make_page(1))
        buffer = PageWriteBuffer()

        buffer.write(0, data)
        data[0] = 0xFF

        assert buffer.get(0) == make_page(1)

    def test_clear(self):
        buffer = PageWriteBuffer()
        buffer.write(1, make_page(1))

        buffer.clear()

        assert not buffer
        assert 1 not in buffer


class TestCommitter:
    """Tests for Committer."""

    @pytest.fixture
    def generation(self, clock):
        return clock.mint()

    @pytest.mark.asyncio
    async def test_commit_uploads_padded_keys(self, store, generation):
        buffer = PageWriteBuffer()
        pages = {0: make_page(0xA), 1: make_page(0xB), 2: make_page(0xC)}
        for page_no, data in pages.items():
            buffer.write(page_no, data)

        uploaded = await Committer(store).commit(buffer, "mydb", generation)

        assert uploaded == 3
        assert len(buffer) == 0
        assert store.keys() == [f"mydb-{generation}/00000000000{n}" for n in range(3)]
        for page_no, data in pages.items():
            assert store.get_object_bytes(page_key("mydb", generation, page_no)) == data

    @pytest.mark.asyncio
    async def test_large_page_number_key(self, store, generation):
        buffer = PageWriteBuffer()
        buffer.write(123456, make_page(1))

        await Committer(store).commit(buffer, "mydb", generation)

        assert store.keys() == [f"mydb-{generation}/000000123456"]

    @pytest.mark.asyncio
    async def test_commit_empty_buffer(self, store, generation):
        committer = Committer(store)

        assert await committer.commit(PageWriteBuffer(), "mydb", generation) == 0
        assert store.get_object_count() == 0
        assert committer.stats["commit_count"] == 1

    @pytest.mark.asyncio
    async def test_size_mismatch_aborts_remaining_pages(self, store, generation):
        """Pages before the bad one may be durable; the buffer is kept."""
        buffer = PageWriteBuffer()
        buffer.write(0, make_page(0xA))
        buffer.write(1, b"short")
        buffer.write(2, make_page(0xC))

        with pytest.raises(PageSizeMismatchError) as exc_info:
            await Committer(store).commit(buffer, "mydb", generation)

        assert exc_info.value.page_no == 1
        assert exc_info.value.actual == 5
        assert exc_info.value.expected == 4096
        assert store.keys() == [page_key("mydb", generation, 0)]
        assert len(buffer) == 3

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_buffer_for_retry(self, store, generation):
        buffer = PageWriteBuffer()
        for page_no in range(3):
            buffer.write(page_no, make_page(page_no))
        store.fail_on(page_key("mydb", generation, 1))
        committer = Committer(store)

        with pytest.raises(StorageTransportError):
            await committer.commit(buffer, "mydb", generation)
        assert len(buffer) == 3

        store.clear_failures()
        assert await committer.commit(buffer, "mydb", generation) == 3

        assert store.get_object_count() == 3
        for page_no in range(3):
            assert store.get_object_bytes(page_key("mydb", generation, page_no)) == make_page(
                page_no
            )

    @pytest.mark.asyncio
    async def test_after_upload_runs_before_clear(self, store, generation):
        buffer = PageWriteBuffer()
        buffer.write(0, make_page(1))
        seen = []

        async def after_upload():
            seen.append((store.get_object_count(), len(buffer)))

        await Committer(store).commit(buffer, "mydb", generation, after_upload=after_upload)

        assert seen == [(1, 1)]
        assert len(buffer) == 0

    @pytest.mark.asyncio
    async def test_after_upload_failure_keeps_buffer(self, store, generation):
        buffer = PageWriteBuffer()
        buffer.write(0, make_page(1))

        async def after_upload():
            raise StorageTransportError("marker upload failed", "put")

        with pytest.raises(StorageTransportError):
            await Committer(store).commit(buffer, "mydb", generation, after_upload=after_upload)

        assert len(buffer) == 1

    @pytest.mark.asyncio
    async def test_repeated_commit_is_idempotent(self, store, generation):
        """Committing the same images twice leaves the same bucket contents."""
        committer = Committer(store)

        def fill():
            buffer = PageWriteBuffer()
            buffer.write(0, make_page(7))
            buffer.write(4, make_page(8))
            return buffer

        await committer.commit(fill(), "mydb", generation)
        first = {key: store.get_object_bytes(key) for key in store.keys()}
        await committer.commit(fill(), "mydb", generation)
        second = {key: store.get_object_bytes(key) for key in store.keys()}

        assert first == second
        assert committer.stats == {"commit_count": 2, "pages_uploaded": 4}
