"""
Pydantic models for users, saved books, tokens and principals.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from utilities.config import config

# Used when the catalog returns no canonical volume link.
DEFAULT_BOOK_LINK = "https://books.google.com"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a single caller-facing message."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        messages.append(f"{field}: {message}" if field else message)
    return "; ".join(messages)


class SavedState(str, Enum):
    """Server-side state of a (user, book_id) pair."""
    ABSENT = "absent"
    SAVED = "saved"


class SavedBook(BaseModel):
    """A book saved by exactly one user. Never mutated once stored."""
    book_id: str = Field(..., min_length=1, description="External catalog identifier")
    title: str = Field("", description="Book title")
    authors: List[str] = Field(default_factory=list, description="Ordered author names")
    description: str = Field("", description="Book description")
    image: str = Field("", description="Cover image URI or empty")
    link: str = Field(DEFAULT_BOOK_LINK, description="Canonical catalog link")

    @field_validator('book_id')
    @classmethod
    def validate_book_id(cls, v):
        """Strip whitespace and reject blank identifiers."""
        v = v.strip()
        if not v:
            raise ValueError('book_id must not be empty')
        return v

    @field_validator('title', 'description', 'image', mode='before')
    @classmethod
    def default_empty_text(cls, v):
        return "" if v is None else v

    @field_validator('authors', mode='before')
    @classmethod
    def default_authors(cls, v):
        return [] if v is None else v

    @field_validator('link', mode='before')
    @classmethod
    def default_link(cls, v):
        """Fall back to the catalog home page when no link is supplied."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_BOOK_LINK
        return v


class UserCreate(BaseModel):
    """Registration payload, validated before anything is written."""
    username: str = Field(..., max_length=64, description="Unique display name")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., description="Plain text password, hashed before storage")

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        """Usernames never contain "@" so a login identifier matches one field only."""
        v = v.strip()
        if not v:
            raise ValueError('username must not be empty')
        if '@' in v:
            raise ValueError('username must not contain "@"')
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Emails are compared case-insensitively."""
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        """Enforce the configured minimum password length."""
        if len(v) < config.password_min_length:
            raise ValueError(
                f'password must be at least {config.password_min_length} characters'
            )
        return v


class User(BaseModel):
    """A registered user and their saved books."""
    id: str = Field(..., description="Opaque unique identifier")
    username: str = Field(..., description="Unique username")
    email: str = Field(..., description="Unique email address")
    password_hash: str = Field(..., repr=False, description="Salted one-way password hash")
    saved_books: List[SavedBook] = Field(default_factory=list, description="Saved books in save order")
    created_at: datetime = Field(default_factory=utcnow, description="Account creation time")

    @property
    def book_count(self) -> int:
        return len(self.saved_books)

    @property
    def saved_book_ids(self) -> List[str]:
        return [book.book_id for book in self.saved_books]


class Principal(BaseModel):
    """Identity resolved from a verified token, valid for one request only."""
    user_id: str

    model_config = {"frozen": True}


class AccessToken(BaseModel):
    """A signed bearer token and the claims it carries."""
    token: str = Field(..., description="Encoded bearer token")
    token_type: str = Field("bearer", description="Token type for the Authorization header")
    subject_id: str = Field(..., description="User the token was issued to")
    issued_at: datetime = Field(..., description="Issue time")
    expires_at: datetime = Field(..., description="Expiry time")


class AuthResult(BaseModel):
    """Outcome of a successful registration or login."""
    token: AccessToken
    user: User


class SavedBooksUpdate(BaseModel):
    """Authoritative saved-book list after a save or remove call."""
    saved_books: List[SavedBook] = Field(default_factory=list)
    changed: bool = Field(..., description="Whether the call inserted or deleted a record")

    @property
    def book_ids(self) -> List[str]:
        return [book.book_id for book in self.saved_books]


class CacheReconciliation(BaseModel):
    """
    Comparison of a client-held cache of saved book ids against the server list.

    The server list always wins: clients replace their cache with
    ``saved_book_ids``. ``stale`` are ids the client wrongly believes saved,
    ``missing`` are saved ids the client did not know about.
    """
    saved_book_ids: List[str] = Field(default_factory=list)
    stale: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.stale and not self.missing

