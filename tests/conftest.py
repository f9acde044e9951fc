"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from accounts.memory import InMemoryUserStore
from accounts.service import AccountService
from accounts.tokens import TokenService

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"
TEST_ITERATIONS = 1000


class FrozenClock:
    """Callable clock that tests can move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock frozen at a fixed instant."""
    return FrozenClock(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def token_service():
    """Token service using the real clock."""
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def memory_store():
    """Empty in-memory user store with cheap password hashing."""
    return InMemoryUserStore(password_hash_iterations=TEST_ITERATIONS)


@pytest.fixture
def account_service(memory_store, token_service):
    """Account service over the in-memory store."""
    return AccountService(memory_store, token_service)


@pytest_asyncio.fixture
async def alice(account_service):
    """A registered user and their auth result."""
    return await account_service.register("alice", "alice@x.com", "pw123456")


@pytest.fixture
def sample_book():
    """Create sample saved book data for testing."""
    return {
        "book_id": "abc",
        "title": "A Light in the Attic",
        "authors": ["Shel Silverstein"],
        "description": "It's hard to imagine a world without A Light in the Attic...",
        "image": "http://books.google.com/books/content?id=abc&img=1",
        "link": "https://books.google.com/books/about/A_Light_in_the_Attic.html?id=abc",
    }


@pytest.fixture
def sample_volume():
    """Sample catalog volume as returned by the Google Books API."""
    return {
        "kind": "books#volume",
        "id": "zyTCAlFPjgYC",
        "volumeInfo": {
            "title": "The Google Story",
            "authors": ["David A. Vise", "Mark Malseed"],
            "description": "Here is the story behind one of the most remarkable Internet successes.",
            "imageLinks": {
                "smallThumbnail": "http://books.google.com/books/content?id=zyTCAlFPjgYC&zoom=5",
                "thumbnail": "http://books.google.com/books/content?id=zyTCAlFPjgYC&zoom=1",
            },
            "canonicalVolumeLink": "https://books.google.com/books/about/The_Google_Story.html?id=zyTCAlFPjgYC",
        },
    }
