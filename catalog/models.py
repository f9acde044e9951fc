"""
Catalog search result models.
"""

from typing import Optional

from pydantic import Field

from accounts.models import SavedBook


class CatalogBook(SavedBook):
    """A catalog search hit, shaped like a saved book so it can be saved as-is."""
    saved: Optional[bool] = Field(
        None, description="Whether the caller has saved this book (omitted for anonymous callers)"
    )
