"""
Logging utilities for the Librarian backend.

Provides standardized logger configuration following privacy rules.

CRITICAL PRIVACY RULES:
- NEVER log the full user query (preview at most 50 characters)
- NEVER log the full model output (excerpt at most 500 characters)
- NEVER log Supabase Auth tokens, API keys, or secrets

Acceptable logging:
- High-level pipeline events (e.g., "Catalog snapshot fetched", "Gemini invoked")
- Non-sensitive metadata (requestor id, query length, recommendation count)
- Failure kinds and sanitized error messages
"""

import logging
from typing import Optional

from librarian.config import settings

# Model output excerpts attached to errors and logs are cut to this length
RAW_EXCERPT_LIMIT = 500
QUERY_PREVIEW_LIMIT = 50


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a configured logger for the specified module.

    Args:
        name: Module name (typically __name__)
        level: Optional logging level (defaults to settings.LOG_LEVEL)

    Returns:
        Configured logger instance

    Usage:
        >>> from librarian.utils.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("High-level event occurred")
    """
    logger = logging.getLogger(name)

    if level is None:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)

    # Add handler if not already configured (avoid duplicate handlers)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def truncate_excerpt(text: Optional[str], limit: int = RAW_EXCERPT_LIMIT) -> str:
    """Cut text down to a diagnostic excerpt that is safe to log or return."""
    if not text:
        return ""
    return text[:limit]


def query_preview(query: str) -> str:
    """Short query preview for info-level log lines."""
    if len(query) <= QUERY_PREVIEW_LIMIT:
        return query
    return f"{query[:QUERY_PREVIEW_LIMIT]}..."
