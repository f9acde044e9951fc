"""
Account operations exposed to the transport layer.

Registration and login reach the credential store and the token service;
saved-book operations require a present principal and go through the
synchronizer.
"""

import asyncio
from typing import Iterable, List, Optional

from accounts.errors import INVALID_CREDENTIALS, Conflict, Invalid, Unauthenticated
from accounts.models import (
    AuthResult, CacheReconciliation, Principal, SavedBook, SavedBooksUpdate, User
)
from accounts.passwords import dummy_hash, verify_password
from accounts.store import UserStore
from accounts.sync import STALE_PRINCIPAL, SavedBookSynchronizer
from accounts.tokens import TokenService
from utilities.logger import AccountLogger


def require_principal(principal: Optional[Principal]) -> Principal:
    """
    Reject anonymous callers.

    Raises:
        Unauthenticated: If no principal is attached to the request
    """
    if principal is None:
        raise Unauthenticated("You need to be logged in")
    return principal


class AccountService:
    """Coordinates the credential store, token service and synchronizer."""

    def __init__(self, store: UserStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens
        self.saved_books = SavedBookSynchronizer(store)
        self.account_logger = AccountLogger("account_service")
        self._dummy_hash: Optional[str] = None

    async def register(self, username: str, email: str, password: str) -> AuthResult:
        """
        Create an account and sign the new user in.

        Raises:
            Invalid: If any field is malformed
            Conflict: If the username or email is taken
        """
        try:
            user = await self.store.create_user(username, email, password)
        except Invalid as e:
            self.account_logger.log_registration_rejected(e.message)
            raise
        except Conflict:
            self.account_logger.log_registration_rejected("duplicate identity")
            raise

        self.account_logger.log_registration(user.id, user.username)
        return AuthResult(token=self.tokens.issue(user.id, user.username), user=user)

    async def login(self, identifier: str, password: str) -> AuthResult:
        """
        Authenticate by username or email.

        Raises:
            Unauthenticated: With the same message for unknown identifiers and
                wrong passwords
        """
        user = await self.store.find_user_by_username_or_email(identifier or "")
        if user is None:
            # Spend comparable hashing work so timing does not reveal unknown users.
            await asyncio.to_thread(self._verify_against_dummy, password or "")
            self.account_logger.log_login_failed(identifier)
            raise Unauthenticated(INVALID_CREDENTIALS)

        if not await self.store.verify_password(user, password or ""):
            self.account_logger.log_login_failed(identifier)
            raise Unauthenticated(INVALID_CREDENTIALS)

        self.account_logger.log_login(user.id)
        return AuthResult(token=self.tokens.issue(user.id, user.username), user=user)

    async def me(self, principal: Optional[Principal]) -> User:
        """Return the calling user with their saved books."""
        principal = require_principal(principal)
        user = await self.store.get_user(principal.user_id)
        if user is None:
            raise Unauthenticated(STALE_PRINCIPAL)
        return user

    async def save_book(self, principal: Optional[Principal], book) -> SavedBooksUpdate:
        """Save a book for the calling user; saving twice is a no-op."""
        principal = require_principal(principal)
        return await self.saved_books.save(principal.user_id, book)

    async def remove_book(self, principal: Optional[Principal], book_id: str) -> SavedBooksUpdate:
        """Remove a saved book; removing an unsaved book is a no-op."""
        principal = require_principal(principal)
        return await self.saved_books.remove(principal.user_id, book_id)

    async def list_saved_books(self, principal: Optional[Principal]) -> List[SavedBook]:
        principal = require_principal(principal)
        return await self.saved_books.list(principal.user_id)

    async def reconcile(
        self, principal: Optional[Principal], cached_book_ids: Iterable[str]
    ) -> CacheReconciliation:
        """Compare a client's cached saved ids with the authoritative list."""
        principal = require_principal(principal)
        return await self.saved_books.reconcile(principal.user_id, cached_book_ids)

    def _verify_against_dummy(self, password: str) -> bool:
        if self._dummy_hash is None:
            self._dummy_hash = dummy_hash(self.store.password_hash_iterations)
        return verify_password(password, self._dummy_hash)
