"""
Recommendation Prompt Templates

Contains the prompt builder for the book recommendation pipeline.

The pipeline grounds Gemini in the library catalog: every available book is
listed in the prompt and the model is told to recommend only from that list.

Prompt Engineering Pattern:
- Uses XML tags for structured content
- Single user turn: role, query, catalog, task, output format
- No randomness: the prompt is a pure function of (query, catalog)
"""

from typing import Sequence

from librarian.schemas.books import CatalogItem

# Catalog lines rendered into the prompt. Keeps the prompt length-bounded
# for large catalogs; the query itself is capped upstream at 1000 chars.
DEFAULT_MAX_CATALOG_ITEMS = 500

EMPTY_CATALOG_LINE = "(the library currently has no available books)"


def render_catalog(catalog: Sequence[CatalogItem], max_items: int = DEFAULT_MAX_CATALOG_ITEMS) -> str:
    """Render one `"<title>" by <author> (<genre>)` line per catalog book."""
    lines = [item.prompt_line() for item in catalog[:max_items]]
    if not lines:
        return EMPTY_CATALOG_LINE
    return "\n".join(lines)


def build_recommendation_prompt(
    query_text: str,
    catalog: Sequence[CatalogItem],
    max_catalog_items: int = DEFAULT_MAX_CATALOG_ITEMS,
) -> str:
    """
    Build the grounded recommendation prompt.

    The prompt contains:
    - Librarian role framing
    - The literal user query
    - The catalog, one line per book
    - The JSON output contract ({"recommendations": [...]})
    - The instruction to only name catalog books, with an empty array
      when nothing is relevant

    Args:
        query_text: User's query (already validated: non-blank, length-bounded)
        catalog: Catalog snapshot for this request
        max_catalog_items: Maximum number of catalog lines rendered

    Returns:
        str: Prompt ready to be sent to Gemini. Same inputs always produce
        the same string.
    """
    books_list = render_catalog(catalog, max_catalog_items)

    return f"""You are a librarian AI helping a reader find their next book in our library.

<query>
{query_text}
</query>

<available_books>
{books_list}
</available_books>

<task>
Recommend ONLY books that exist in the available_books list above.
Pick at most 3 books that best match the query, best match first.
Copy each title and author exactly as written in the list.
If no relevant books exist, return an empty recommendations array.
</task>

<output_format>
Return a JSON object with this exact structure and nothing else:
{{
  "recommendations": [
    {{
      "title": "Exact title from library",
      "author": "Exact author from library",
      "reason": "Why this book matches the query (max 40 words)",
      "confidence": 0.95
    }}
  ]
}}

"confidence" is a number between 0 and 1.
</output_format>

IMPORTANT: Only recommend books that are actually in our library list above. If no relevant books exist, return {{"recommendations": []}}."""
