"""
Pytest configuration for Librarian backend tests.

Sets up test environment and global fixtures.
"""
import os
import pytest
from unittest.mock import AsyncMock, MagicMock

# Disable config validation during tests
# This allows tests to run without requiring real environment variables
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_PUBLISHABLE_KEY", "test-publishable-key")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-api-key")

from librarian.schemas.books import CatalogItem  # noqa: E402


GONE_GIRL_FENCED_RESPONSE = """Here are my picks for you:

```json
{
  "recommendations": [
    {
      "title": "Gone Girl",
      "author": "Gillian Flynn",
      "reason": "Two narrators whose accounts of a marriage cannot both be true.",
      "confidence": 0.93
    }
  ]
}
```

Enjoy your reading!"""


@pytest.fixture
def sample_catalog():
    """Small catalog snapshot used across tests."""
    return [
        CatalogItem(id="1", title="Gone Girl", author="Gillian Flynn", genre="Mystery"),
        CatalogItem(id="2", title="Dune", author="Frank Herbert", genre="Science Fiction"),
        CatalogItem(id="3", title="Pride and Prejudice", author="Jane Austen", genre="Romance"),
    ]


@pytest.fixture
def catalog_fetcher(sample_catalog):
    """Async spy returning the sample catalog."""
    return AsyncMock(return_value=sample_catalog)


@pytest.fixture
def model_call():
    """Async spy standing in for the Gemini invoker."""
    return AsyncMock(return_value=GONE_GIRL_FENCED_RESPONSE)


@pytest.fixture
def supabase_client():
    """
    Mock Supabase client for testing catalog reads.
    Returns a MagicMock that simulates Supabase client behavior.
    """
    mock_client = MagicMock()
    return mock_client
