"""
Pydantic schemas for API request and response validation.

All FastAPI endpoints use Pydantic models with explicit types.
"""
