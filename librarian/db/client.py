"""
Supabase client factory.

The catalog is readable with the publishable key, so the recommendation
pipeline can read a snapshot for anonymous callers too. When the caller
presented a verified JWT, the client is bound to it so Row Level Security
policies apply exactly as they would for the front end.

SECURITY RULES:
1. NEVER use the service_role key for user-initiated requests
2. The client MUST be created per-request (no shared session state)
"""

import logging
from typing import Optional

from librarian.config import settings
from supabase import Client, create_client

logger = logging.getLogger(__name__)


def get_supabase_client(access_token: Optional[str] = None) -> Client:
    """
    Create a Supabase client for a single request.

    Args:
        access_token: The caller's verified JWT, or None for anonymous reads.

    Returns:
        A Supabase client using the publishable key, bound to the caller's
        session when a token is given.

    Example:
        >>> client = get_supabase_client(requestor.access_token)
        >>> result = client.table("book").select("*").execute()
    """
    client: Client = create_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_PUBLISHABLE_KEY
    )

    if access_token:
        # Token carries the user id in 'sub'; RLS policies key on auth.uid()
        client.auth.set_session(access_token, access_token)
        logger.debug("Created Supabase client bound to caller token (RLS enforced)")
    else:
        logger.debug("Created anonymous Supabase client")

    return client
