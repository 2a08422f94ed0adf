"""
Recommendation System - Catalog-Grounded LLM

This module contains the prompt templates for the Gemini-based book
recommendation pipeline.

Architecture:
- Pattern: Grounded LLM (single API call, catalog embedded in the prompt)
- Model: Gemini Flash-Lite (configurable via RECOMMENDATION_MODEL)
- Output: JSON text, extracted and validated by the service layer

The service layer is in:
- librarian/services/recommendation_service.py

Prompt templates are in:
- librarian/agents/recommendation/prompts.py
"""

from librarian.agents.recommendation.prompts import (
    build_recommendation_prompt,
    render_catalog,
)

__all__ = [
    "build_recommendation_prompt",
    "render_catalog",
]
