"""
Unit tests for the saved-book synchronizer.
Tests the ABSENT/SAVED state machine, idempotence, concurrency, and cache reconciliation.
"""

import asyncio

import pytest

from accounts.errors import Invalid, Unauthenticated
from accounts.models import SavedBook, SavedState
from accounts.sync import SavedBookSynchronizer


class TestSavedBookSynchronizer:
    """Test cases for SavedBookSynchronizer."""

    @pytest.fixture
    def synchronizer(self, memory_store):
        return SavedBookSynchronizer(memory_store)

    @pytest.fixture
    def user_id(self, alice):
        return alice.user.id

    @pytest.mark.asyncio
    async def test_initial_state_is_absent(self, synchronizer, user_id):
        assert await synchronizer.state(user_id, "abc") == SavedState.ABSENT

    @pytest.mark.asyncio
    async def test_save_then_remove(self, synchronizer, user_id, sample_book):
        saved = await synchronizer.save(user_id, sample_book)
        assert saved.changed is True
        assert await synchronizer.state(user_id, "abc") == SavedState.SAVED

        removed = await synchronizer.remove(user_id, "abc")
        assert removed.changed is True
        assert await synchronizer.state(user_id, "abc") == SavedState.ABSENT

    @pytest.mark.asyncio
    async def test_save_twice_yields_one_record(self, synchronizer, user_id, sample_book):
        """Collection grows by exactly one for a repeated save."""
        before = len(await synchronizer.list(user_id))

        await synchronizer.save(user_id, sample_book)
        second = await synchronizer.save(user_id, sample_book)

        assert second.changed is False
        assert len(second.saved_books) == before + 1
        assert [book.book_id for book in second.saved_books].count("abc") == 1

    @pytest.mark.asyncio
    async def test_remove_never_saved_is_noop(self, synchronizer, user_id, sample_book):
        await synchronizer.save(user_id, dict(sample_book, book_id="keep"))

        update = await synchronizer.remove(user_id, "never-saved")

        assert update.changed is False
        assert update.book_ids == ["keep"]

    @pytest.mark.asyncio
    async def test_pairs_can_oscillate(self, synchronizer, user_id, sample_book):
        for _ in range(3):
            assert (await synchronizer.save(user_id, sample_book)).changed
            assert (await synchronizer.remove(user_id, "abc")).changed

        assert await synchronizer.list(user_id) == []

    @pytest.mark.asyncio
    async def test_save_order_preserved(self, synchronizer, user_id):
        for book_id in ["c", "a", "b"]:
            await synchronizer.save(user_id, {"book_id": book_id})

        assert [book.book_id for book in await synchronizer.list(user_id)] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_accepts_saved_book_instances(self, synchronizer, user_id, sample_book):
        update = await synchronizer.save(user_id, SavedBook(**sample_book))
        assert update.book_ids == ["abc"]

    @pytest.mark.asyncio
    async def test_concurrent_saves_store_one_record(self, synchronizer, user_id, sample_book):
        """N concurrent saves of the same book persist exactly one record."""
        results = await asyncio.gather(
            *[synchronizer.save(user_id, sample_book) for _ in range(25)]
        )

        assert sum(1 for result in results if result.changed) == 1
        saved = await synchronizer.list(user_id)
        assert [book.book_id for book in saved] == ["abc"]

    @pytest.mark.asyncio
    async def test_concurrent_save_and_remove_stay_consistent(self, synchronizer, user_id, sample_book):
        await asyncio.gather(
            *[
                synchronizer.save(user_id, sample_book) if i % 2 == 0 else synchronizer.remove(user_id, "abc")
                for i in range(20)
            ]
        )

        book_ids = [book.book_id for book in await synchronizer.list(user_id)]
        assert book_ids.count("abc") <= 1

    @pytest.mark.asyncio
    async def test_unknown_user_is_unauthenticated(self, synchronizer, sample_book):
        with pytest.raises(Unauthenticated):
            await synchronizer.save("missing", sample_book)
        with pytest.raises(Unauthenticated):
            await synchronizer.remove("missing", "abc")
        with pytest.raises(Unauthenticated):
            await synchronizer.list("missing")

    @pytest.mark.asyncio
    async def test_invalid_book_rejected(self, synchronizer, user_id):
        with pytest.raises(Invalid):
            await synchronizer.save(user_id, {"title": "No identifier"})

    @pytest.mark.asyncio
    async def test_reconcile_server_wins(self, synchronizer, user_id):
        await synchronizer.save(user_id, {"book_id": "a"})
        await synchronizer.save(user_id, {"book_id": "b"})

        result = await synchronizer.reconcile(user_id, ["b", "stale-1", "b", " ", "stale-2"])

        assert result.saved_book_ids == ["a", "b"]
        assert result.stale == ["stale-1", "stale-2"]
        assert result.missing == ["a"]
        assert not result.in_sync

    @pytest.mark.asyncio
    async def test_reconcile_never_writes(self, synchronizer, user_id):
        """Ids in the client cache are never saved on the server."""
        await synchronizer.reconcile(user_id, ["client-only"])

        assert await synchronizer.state(user_id, "client-only") == SavedState.ABSENT

    @pytest.mark.asyncio
    async def test_reconcile_in_sync(self, synchronizer, user_id):
        await synchronizer.save(user_id, {"book_id": "a"})

        result = await synchronizer.reconcile(user_id, ["a"])

        assert result.in_sync
        assert result.saved_book_ids == ["a"]
