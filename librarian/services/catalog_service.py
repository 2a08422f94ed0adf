"""
Catalog snapshot service.

Reads the set of available books the recommendation prompt is grounded in.

RULES:
1. Pure read: this module never writes to the catalog
2. The snapshot is re-read for every recommendation request (no cache)
3. Any storage/transport failure is raised as CatalogUnavailableError,
   never retried here
"""

import logging
from typing import Any, Dict, List, cast

from pydantic import ValidationError
from supabase import Client

from librarian.config import settings
from librarian.schemas.books import CatalogItem
from librarian.services.errors import CatalogUnavailableError

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = "id,title,author,genre,description"


def _to_catalog_item(row: Dict[str, Any]) -> CatalogItem:
    return CatalogItem(
        id=str(row.get("id") or ""),
        title=str(row.get("title") or "").strip(),
        author=str(row.get("author") or "").strip(),
        genre=str(row.get("genre") or "").strip() or "Uncategorized",
        description=row.get("description"),
    )


async def list_available_books(supabase_client: Client) -> List[CatalogItem]:
    """
    Fetch the current catalog snapshot.

    Args:
        supabase_client: Supabase client (publishable key; catalog is public)

    Returns:
        Books ordered by title. An empty list is a valid snapshot.

    Raises:
        CatalogUnavailableError: If the catalog store cannot be read
    """
    try:
        result = (
            supabase_client.table(settings.BOOKS_TABLE_NAME)
            .select(CATALOG_COLUMNS)
            .order("title")
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to read catalog table '{settings.BOOKS_TABLE_NAME}': {e}")
        raise CatalogUnavailableError(str(e)) from e

    rows = cast(List[Dict[str, Any]], result.data or [])

    books: List[CatalogItem] = []
    skipped = 0
    for row in rows:
        try:
            books.append(_to_catalog_item(row))
        except ValidationError:
            # Rows without a title or author cannot be rendered into the prompt
            skipped += 1

    if skipped:
        logger.warning(f"Skipped {skipped} catalog rows missing title or author")

    logger.info(f"Found {len(books)} books in library")
    return books
