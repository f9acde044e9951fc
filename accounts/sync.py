"""
Saved-book synchronization.

Every (user, book_id) pair is either ``ABSENT`` or ``SAVED`` on the server.
Saving a saved book and removing an absent one are successful no-ops, and the
server's list is authoritative over any client-held cache of saved ids.
"""

from typing import Iterable, List

from accounts.errors import Unauthenticated
from accounts.models import CacheReconciliation, SavedBook, SavedBooksUpdate, SavedState
from accounts.store import UserStore, normalize_book_id, validate_book
from utilities.logger import AccountLogger

STALE_PRINCIPAL = "Account no longer exists"


class SavedBookSynchronizer:
    """Applies idempotent save/remove operations to a user's saved books."""

    def __init__(self, store: UserStore):
        self.store = store
        self.account_logger = AccountLogger("saved_books")

    async def save(self, user_id: str, book) -> SavedBooksUpdate:
        """
        Move (user, book_id) to SAVED.

        An already-saved book is left untouched and the call still succeeds.

        Raises:
            Invalid: If the book payload is malformed
            Unauthenticated: If the user no longer exists
        """
        book = validate_book(book)
        update = await self.store.add_saved_book(user_id, book)
        if update is None:
            raise Unauthenticated(STALE_PRINCIPAL)

        self.account_logger.log_saved_book_transition(
            "save", user_id, book.book_id, update.changed, len(update.saved_books)
        )
        return update

    async def remove(self, user_id: str, book_id: str) -> SavedBooksUpdate:
        """
        Move (user, book_id) to ABSENT. Removing an absent book succeeds.

        Raises:
            Invalid: If book_id is blank
            Unauthenticated: If the user no longer exists
        """
        update = await self.store.remove_saved_book(user_id, book_id)
        if update is None:
            raise Unauthenticated(STALE_PRINCIPAL)

        self.account_logger.log_saved_book_transition(
            "remove", user_id, book_id, update.changed, len(update.saved_books)
        )
        return update

    async def list(self, user_id: str) -> List[SavedBook]:
        """Return the authoritative saved-book list."""
        saved_books = await self.store.list_saved_books(user_id)
        if saved_books is None:
            raise Unauthenticated(STALE_PRINCIPAL)
        return saved_books

    async def state(self, user_id: str, book_id: str) -> SavedState:
        book_id = normalize_book_id(book_id)
        saved_books = await self.list(user_id)
        if any(book.book_id == book_id for book in saved_books):
            return SavedState.SAVED
        return SavedState.ABSENT

    async def reconcile(self, user_id: str, cached_book_ids: Iterable[str]) -> CacheReconciliation:
        """
        Compare a client cache of saved ids with the server list.

        The result's ``saved_book_ids`` replaces the client cache; nothing the
        client sends is ever written back.
        """
        saved_ids = [book.book_id for book in await self.list(user_id)]
        saved_set = set(saved_ids)

        cached = []
        for book_id in cached_book_ids or []:
            book_id = (book_id or "").strip()
            if book_id and book_id not in cached:
                cached.append(book_id)
        cached_set = set(cached)

        reconciliation = CacheReconciliation(
            saved_book_ids=saved_ids,
            stale=[book_id for book_id in cached if book_id not in saved_set],
            missing=[book_id for book_id in saved_ids if book_id not in cached_set],
        )
        if not reconciliation.in_sync:
            self.account_logger.logger.info(
                "Client cache out of sync",
                user_id=user_id,
                stale=len(reconciliation.stale),
                missing=len(reconciliation.missing),
            )
        return reconciliation
