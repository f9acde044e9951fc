"""
Credential store: users and their embedded saved books.

``UserStore`` holds the validation and hashing shared by every backend;
subclasses provide the atomic storage primitives. ``MongoUserStore`` keeps one
document per user with an embedded ``saved_books`` array, so every saved-book
mutation is a single-document update and therefore atomic.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from accounts.errors import Conflict, Invalid
from accounts.models import (
    SavedBook, SavedBooksUpdate, User, UserCreate, describe_validation_error
)
from accounts.passwords import hash_password, verify_password as check_password_hash
from utilities.config import config

logger = structlog.get_logger(__name__)


def validate_new_user(username: str, email: str, password: str) -> UserCreate:
    """
    Validate registration fields.

    Raises:
        Invalid: If any field fails format validation
    """
    try:
        return UserCreate(username=username, email=email, password=password)
    except ValidationError as e:
        raise Invalid(describe_validation_error(e))


def validate_book(book) -> SavedBook:
    """Coerce a mapping or SavedBook into a validated SavedBook."""
    try:
        if isinstance(book, SavedBook):
            return SavedBook.model_validate(book.model_dump())
        return SavedBook.model_validate(book)
    except ValidationError as e:
        raise Invalid(describe_validation_error(e))


def normalize_book_id(book_id: Optional[str]) -> str:
    book_id = (book_id or "").strip()
    if not book_id:
        raise Invalid("book_id: must not be empty")
    return book_id


class UserStore(ABC):
    """Abstract keyed collection of users."""

    def __init__(self, password_hash_iterations: Optional[int] = None):
        self.password_hash_iterations = password_hash_iterations or config.password_hash_iterations

    async def create_user(self, username: str, email: str, password: str) -> User:
        """
        Register a new user.

        Raises:
            Invalid: If any field fails format validation
            Conflict: If the username or email is already taken
        """
        new_user = validate_new_user(username, email, password)
        # Hashing is CPU bound; keep it off the event loop.
        password_hash = await asyncio.to_thread(
            hash_password, new_user.password, self.password_hash_iterations
        )
        return await self._insert_user(new_user.username, new_user.email, password_hash)

    async def verify_password(self, user: User, candidate: str) -> bool:
        """Compare a candidate password against the user's salted hash."""
        return await asyncio.to_thread(check_password_hash, candidate, user.password_hash)

    async def add_saved_book(self, user_id: str, book) -> Optional[SavedBooksUpdate]:
        """
        Insert a saved book unless one with the same book_id already exists.

        Returns:
            SavedBooksUpdate, or None if the user does not exist
        """
        return await self._add_saved_book(user_id, validate_book(book))

    async def remove_saved_book(self, user_id: str, book_id: str) -> Optional[SavedBooksUpdate]:
        """
        Delete a saved book. Removing an unknown book_id is a no-op.

        Returns:
            SavedBooksUpdate, or None if the user does not exist
        """
        return await self._remove_saved_book(user_id, normalize_book_id(book_id))

    async def list_saved_books(self, user_id: str) -> Optional[List[SavedBook]]:
        """Return the user's saved books in save order, or None for unknown users."""
        user = await self.get_user(user_id)
        if user is None:
            return None
        return user.saved_books

    @abstractmethod
    async def _insert_user(self, username: str, email: str, password_hash: str) -> User:
        """Atomically insert a user, raising Conflict on duplicate identity."""

    @abstractmethod
    async def find_user_by_username_or_email(self, identifier: str) -> Optional[User]:
        """Look a user up by username or (case-insensitive) email."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Look a user up by id."""

    @abstractmethod
    async def _add_saved_book(self, user_id: str, book: SavedBook) -> Optional[SavedBooksUpdate]:
        """Atomic check-and-insert on (user_id, book_id)."""

    @abstractmethod
    async def _remove_saved_book(self, user_id: str, book_id: str) -> Optional[SavedBooksUpdate]:
        """Atomic delete on (user_id, book_id)."""

    @abstractmethod
    async def health_check(self) -> Dict:
        """Report storage health."""


class MongoUserStore(UserStore):
    """
    MongoDB-backed user store.

    Uniqueness of username and email is enforced by unique indexes, and
    saved-book dedup by a guarded ``$push`` on the user document.
    """

    def __init__(self, collection: AsyncIOMotorCollection, password_hash_iterations: Optional[int] = None):
        super().__init__(password_hash_iterations)
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """Create the unique indexes the store relies on."""
        try:
            await self.collection.create_index("username", unique=True)
            await self.collection.create_index("email", unique=True)
            await self.collection.create_index("saved_books.book_id")
            logger.info("Successfully created MongoDB indexes", collection=self.collection.name)
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    @staticmethod
    def _to_object_id(user_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(user_id)
        except (InvalidId, TypeError):
            return None

    @staticmethod
    def _to_user(document: Optional[Dict]) -> Optional[User]:
        if not document:
            return None
        document = dict(document)
        document["id"] = str(document.pop("_id"))
        return User.model_validate(document)

    @staticmethod
    def _to_saved_books(document: Dict) -> List[SavedBook]:
        return [SavedBook.model_validate(item) for item in document.get("saved_books", [])]

    async def _insert_user(self, username: str, email: str, password_hash: str) -> User:
        document = {
            "username": username,
            "email": email,
            "password_hash": password_hash,
            "saved_books": [],
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError:
            logger.info("Duplicate identity on registration")
            raise Conflict()

        document["_id"] = result.inserted_id
        logger.debug("Successfully inserted user", user_id=str(result.inserted_id))
        return self._to_user(document)

    async def find_user_by_username_or_email(self, identifier: str) -> Optional[User]:
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        document = await self.collection.find_one(
            {"$or": [{"username": identifier}, {"email": identifier.lower()}]}
        )
        return self._to_user(document)

    async def get_user(self, user_id: str) -> Optional[User]:
        object_id = self._to_object_id(user_id)
        if object_id is None:
            return None
        return self._to_user(await self.collection.find_one({"_id": object_id}))

    async def _add_saved_book(self, user_id: str, book: SavedBook) -> Optional[SavedBooksUpdate]:
        object_id = self._to_object_id(user_id)
        if object_id is None:
            return None

        # The $ne guard makes check-and-insert a single atomic document update.
        document = await self.collection.find_one_and_update(
            {"_id": object_id, "saved_books.book_id": {"$ne": book.book_id}},
            {"$push": {"saved_books": book.model_dump()}},
            projection={"saved_books": True},
            return_document=ReturnDocument.AFTER,
        )
        if document is not None:
            return SavedBooksUpdate(saved_books=self._to_saved_books(document), changed=True)

        # Either the book is already saved or the user does not exist.
        document = await self.collection.find_one({"_id": object_id}, {"saved_books": True})
        if document is None:
            return None
        return SavedBooksUpdate(saved_books=self._to_saved_books(document), changed=False)

    async def _remove_saved_book(self, user_id: str, book_id: str) -> Optional[SavedBooksUpdate]:
        object_id = self._to_object_id(user_id)
        if object_id is None:
            return None

        document = await self.collection.find_one_and_update(
            {"_id": object_id, "saved_books.book_id": book_id},
            {"$pull": {"saved_books": {"book_id": book_id}}},
            projection={"saved_books": True},
            return_document=ReturnDocument.AFTER,
        )
        if document is not None:
            return SavedBooksUpdate(saved_books=self._to_saved_books(document), changed=True)

        document = await self.collection.find_one({"_id": object_id}, {"saved_books": True})
        if document is None:
            return None
        return SavedBooksUpdate(saved_books=self._to_saved_books(document), changed=False)

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.collection.database.command("ping")
            users_count = await self.collection.count_documents({})
            return {
                "status": "healthy",
                "users_collection": "accessible",
                "users_count": users_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
