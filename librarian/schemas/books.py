"""
Pydantic schemas for catalog books.

The catalog is owned by the book store (Supabase `book` table); the
recommendation pipeline only ever reads a snapshot of it.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CatalogItem(BaseModel):
    """
    A single book available in the library catalog.

    Read-only to the recommendation pipeline. Rendered into the prompt as
    `"<title>" by <author> (<genre>)`.
    """
    id: str = Field(
        ...,
        description="Book identifier in the catalog store",
        examples=["b7f3c1d2-0a1e-4c9b-9f0a-2d6c8e4b1a77"]
    )
    title: str = Field(
        ...,
        description="Book title",
        min_length=1,
        examples=["Gone Girl"]
    )
    author: str = Field(
        ...,
        description="Book author",
        min_length=1,
        examples=["Gillian Flynn"]
    )
    genre: str = Field(
        "Uncategorized",
        description="Catalog genre label",
        examples=["Mystery"]
    )
    description: Optional[str] = Field(
        None,
        description="Optional blurb (not rendered into the prompt)"
    )

    def prompt_line(self) -> str:
        """Render the catalog line used by the prompt builder."""
        return f'"{self.title}" by {self.author} ({self.genre})'
