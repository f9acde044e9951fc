"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from accounts.models import AuthResult, SavedBook, SavedBooksUpdate, User
from catalog.models import CatalogBook


class RegisterRequest(BaseModel):
    """Registration request body."""
    username: str = Field(..., description="Unique username")
    email: str = Field(..., description="Unique email address")
    password: str = Field(..., description="Password")


class LoginRequest(BaseModel):
    """Login request body."""
    identifier: str = Field(..., description="Username or email")
    password: str = Field(..., description="Password")


class SaveBookRequest(BaseModel):
    """Book to save, usually copied from a search result."""
    book_id: str = Field(..., description="External catalog identifier")
    title: Optional[str] = Field(None, description="Book title")
    authors: Optional[List[str]] = Field(None, description="Author names")
    description: Optional[str] = Field(None, description="Book description")
    image: Optional[str] = Field(None, description="Cover image URI")
    link: Optional[str] = Field(None, description="Catalog link")


class SyncRequest(BaseModel):
    """Client-held cache of saved book ids."""
    book_ids: List[str] = Field(default_factory=list, description="Book ids the client believes are saved")


class UserResponse(BaseModel):
    """User response model; never carries the password hash."""
    id: str = Field(..., description="Unique user identifier")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    book_count: int = Field(..., description="Number of saved books")
    saved_books: List[SavedBook] = Field(default_factory=list, description="Saved books in save order")
    created_at: datetime = Field(..., description="Account creation time")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            book_count=user.book_count,
            saved_books=user.saved_books,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    """Token and user returned by register and login."""
    token: str = Field(..., description="Bearer token")
    token_type: str = Field("bearer", description="Token type")
    expires_at: datetime = Field(..., description="Token expiry time")
    user: UserResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            token=result.token.token,
            token_type=result.token.token_type,
            expires_at=result.token.expires_at,
            user=UserResponse.from_user(result.user),
        )


class SavedBooksResponse(BaseModel):
    """Authoritative saved-book list."""
    saved_books: List[SavedBook] = Field(..., description="Saved books in save order")
    book_count: int = Field(..., description="Number of saved books")
    changed: Optional[bool] = Field(None, description="Whether the last call inserted or removed a record")

    @classmethod
    def from_update(cls, update: SavedBooksUpdate) -> "SavedBooksResponse":
        return cls(
            saved_books=update.saved_books,
            book_count=len(update.saved_books),
            changed=update.changed,
        )


class SyncResponse(BaseModel):
    """Server list that replaces the client cache, plus what differed."""
    saved_book_ids: List[str] = Field(..., description="Authoritative saved book ids")
    stale: List[str] = Field(..., description="Cached ids that are not saved")
    missing: List[str] = Field(..., description="Saved ids missing from the cache")
    in_sync: bool = Field(..., description="Whether the cache matched")


class SearchResponse(BaseModel):
    """Catalog search results."""
    query: str = Field(..., description="Search terms")
    total: int = Field(..., description="Number of results returned")
    books: List[CatalogBook] = Field(..., description="Matching books")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
