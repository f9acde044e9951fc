"""
In-process user store used in tests and during local development.
"""

import asyncio
import secrets
from collections import defaultdict
from typing import Dict, Optional

from accounts.errors import Conflict
from accounts.models import SavedBook, SavedBooksUpdate, User
from accounts.store import UserStore


class InMemoryUserStore(UserStore):
    """
    Dictionary-backed user store.

    Registration is serialized by a store-wide lock and each user's saved
    books by a per-user lock, so every check-and-write is indivisible.
    """

    def __init__(self, password_hash_iterations: Optional[int] = None):
        super().__init__(password_hash_iterations)
        self._users: Dict[str, User] = {}
        self._ids_by_username: Dict[str, str] = {}
        self._ids_by_email: Dict[str, str] = {}
        self._registration_lock = asyncio.Lock()
        self._user_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _copy(self, user: Optional[User]) -> Optional[User]:
        return user.model_copy(deep=True) if user else None

    async def _insert_user(self, username: str, email: str, password_hash: str) -> User:
        async with self._registration_lock:
            if username in self._ids_by_username or email in self._ids_by_email:
                raise Conflict()

            user_id = secrets.token_hex(12)
            user = User(id=user_id, username=username, email=email, password_hash=password_hash)
            self._users[user_id] = user
            self._ids_by_username[username] = user_id
            self._ids_by_email[email] = user_id
            return self._copy(user)

    async def find_user_by_username_or_email(self, identifier: str) -> Optional[User]:
        identifier = (identifier or "").strip()
        user_id = self._ids_by_username.get(identifier) or self._ids_by_email.get(identifier.lower())
        return self._copy(self._users.get(user_id)) if user_id else None

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._copy(self._users.get(user_id))

    async def _add_saved_book(self, user_id: str, book: SavedBook) -> Optional[SavedBooksUpdate]:
        if user_id not in self._users:
            return None

        async with self._user_locks[user_id]:
            # The user may have been deleted while we waited for the lock.
            user = self._users.get(user_id)
            if user is None:
                return None
            changed = book.book_id not in user.saved_book_ids
            if changed:
                user.saved_books.append(book)
            return SavedBooksUpdate(
                saved_books=[item.model_copy() for item in user.saved_books],
                changed=changed,
            )

    async def _remove_saved_book(self, user_id: str, book_id: str) -> Optional[SavedBooksUpdate]:
        if user_id not in self._users:
            return None

        async with self._user_locks[user_id]:
            user = self._users.get(user_id)
            if user is None:
                return None
            remaining = [item for item in user.saved_books if item.book_id != book_id]
            changed = len(remaining) != len(user.saved_books)
            user.saved_books = remaining
            return SavedBooksUpdate(
                saved_books=[item.model_copy() for item in remaining],
                changed=changed,
            )

    async def delete_user(self, user_id: str) -> bool:
        """Drop a user; stands in for the out-of-band account deletion path."""
        async with self._registration_lock:
            if user_id not in self._users:
                return False
            # Wait for any in-flight saved-book update on this user.
            async with self._user_locks[user_id]:
                user = self._users.pop(user_id)
                self._ids_by_username.pop(user.username, None)
                self._ids_by_email.pop(user.email, None)
            self._user_locks.pop(user_id, None)
            return True

    async def health_check(self) -> Dict:
        return {
            "status": "healthy",
            "backend": "memory",
            "users_count": len(self._users),
        }
