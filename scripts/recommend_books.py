#!/usr/bin/env python3
"""
Recommendation Pipeline Script

Runs the book recommendation pipeline locally against the real Gemini API,
without deploying the API or using the web app. The catalog comes from a
built-in sample, a JSON file, or the configured Supabase project.

Usage:
    python scripts/recommend_books.py
    python scripts/recommend_books.py --query "mystery with unreliable narrator"
    python scripts/recommend_books.py --query "space opera" --catalog books.json
    python scripts/recommend_books.py --query "cozy fantasy" --supabase
    python scripts/recommend_books.py --suite
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from librarian.db.client import get_supabase_client
from librarian.schemas.books import CatalogItem
from librarian.schemas.recommendations import RecommendationResponse
from librarian.services.catalog_service import list_available_books
from librarian.services.errors import RecommendationError
from librarian.services.model_invoker import get_model_invoker
from librarian.services.recommendation_service import RecommendationPipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


SAMPLE_CATALOG = [
    CatalogItem(id="1", title="Gone Girl", author="Gillian Flynn", genre="Mystery"),
    CatalogItem(id="2", title="The Silent Patient", author="Alex Michaelides", genre="Thriller"),
    CatalogItem(id="3", title="The Girl with the Dragon Tattoo", author="Stieg Larsson", genre="Mystery"),
    CatalogItem(id="4", title="Dune", author="Frank Herbert", genre="Science Fiction"),
    CatalogItem(id="5", title="Pride and Prejudice", author="Jane Austen", genre="Romance"),
    CatalogItem(id="6", title="The Hobbit", author="J.R.R. Tolkien", genre="Fantasy"),
    CatalogItem(id="7", title="Sapiens", author="Yuval Noah Harari", genre="History"),
]


def load_catalog_file(path: str) -> List[CatalogItem]:
    """Load a catalog from a JSON array of {id, title, author, genre} objects."""
    with open(path, encoding="utf-8") as f:
        rows = json.load(f)
    return [CatalogItem(**{**row, "id": str(row.get("id", index))}) for index, row in enumerate(rows, 1)]


def print_result(result: RecommendationResponse):
    """Pretty print the recommendation result."""
    print("\n" + "=" * 60)
    if not result.recommendations:
        print("NO MATCH")
        print("=" * 60)
        print(f"\n  {result.message}\n")
        return

    print(f"✅ {len(result.recommendations)} recommendation(s)")
    print("=" * 60)
    for i, rec in enumerate(result.recommendations, 1):
        print(f"\n--- Book #{i} ---")
        print(f"  Title:      {rec.title}")
        print(f"  Author:     {rec.author}")
        print(f"  Confidence: {rec.confidence:.2f}")
        print(f"  Reason:     {rec.reason}")
    print()


def print_error(error: RecommendationError):
    print("\n" + "=" * 60)
    print(f"❌ FAILED: {error.kind.value} (HTTP {error.status_code})")
    print("=" * 60)
    print(json.dumps(error.to_response_body(), indent=2, ensure_ascii=False))
    print()


async def run_query(
    query: str,
    catalog_path: Optional[str] = None,
    use_supabase: bool = False,
    require_catalog_match: bool = False,
) -> Optional[RecommendationResponse]:
    """Run a single query through the pipeline."""
    if not os.getenv("GOOGLE_API_KEY"):
        print("\n⚠️  ERROR: GOOGLE_API_KEY environment variable not set!")
        print("   Please set it in your .env file or export it:")
        print("   export GOOGLE_API_KEY=your-gemini-api-key")
        return None

    if use_supabase:
        supabase_client = get_supabase_client()

        async def fetch_catalog() -> List[CatalogItem]:
            return await list_available_books(supabase_client)
        source = "supabase"
    else:
        catalog = load_catalog_file(catalog_path) if catalog_path else SAMPLE_CATALOG

        async def fetch_catalog() -> List[CatalogItem]:
            return catalog
        source = catalog_path or "built-in sample"

    print("\n" + "=" * 60)
    print("BOOK RECOMMENDATION PIPELINE")
    print("=" * 60)
    print(f"\nQuery:   {query}")
    print(f"Catalog: {source}")

    pipeline = RecommendationPipeline(
        fetch_catalog=fetch_catalog,
        invoke_model=get_model_invoker(),
        require_catalog_match=require_catalog_match,
    )

    try:
        result = await pipeline.run(query, requestor_id="cli")
    except RecommendationError as e:
        print_error(e)
        return None

    print_result(result)
    return result


async def run_suite():
    """Run a few representative queries against the sample catalog."""
    queries = [
        "mystery with unreliable narrator",
        "epic desert planet politics",
        "a light regency romance",
        "quantum chromodynamics textbook",  # expect no match
    ]
    for query in queries:
        await run_query(query)
        # Delay between queries to avoid rate limits
        await asyncio.sleep(2)


def main():
    parser = argparse.ArgumentParser(
        description="Run the book recommendation pipeline locally",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--query", "-q", type=str, help="Reader query")
    parser.add_argument("--catalog", "-c", type=str, help="Path to a JSON catalog file")
    parser.add_argument("--supabase", action="store_true", help="Read the catalog from Supabase")
    parser.add_argument(
        "--require-catalog-match",
        action="store_true",
        help="Drop recommendations that are not in the catalog"
    )
    parser.add_argument("--suite", action="store_true", help="Run the sample query suite")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.suite:
        asyncio.run(run_suite())
        return

    asyncio.run(run_query(
        query=args.query or "mystery with unreliable narrator",
        catalog_path=args.catalog,
        use_supabase=args.supabase,
        require_catalog_match=args.require_catalog_match,
    ))


if __name__ == "__main__":
    main()
