"""
FastAPI routers for all API endpoints.

Routers are thin transport adapters; business logic lives in librarian.services.
"""
