"""
Database access layer for the Librarian backend.

Only the catalog read used by the recommendation pipeline lives behind this
layer; book and reading-list persistence is owned by other services.
"""

from .client import get_supabase_client

__all__ = ["get_supabase_client"]
