"""
AI Components for the Librarian backend.

1. Recommendation System (Catalog-Grounded LLM)
   - Uses Gemini with the library catalog embedded in the prompt
   - NOT an ADK agent - uses the Google Gen AI SDK directly
   - Prompt builder: librarian/agents/recommendation/prompts.py
   - Orchestration: librarian/services/recommendation_service.py
"""

from librarian.agents.recommendation import build_recommendation_prompt, render_catalog

__all__ = [
    "build_recommendation_prompt",
    "render_catalog",
]
