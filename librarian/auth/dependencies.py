"""
FastAPI dependency functions for caller identity.

The recommendation endpoint accepts anonymous callers. When an Authorization
header is present it must carry a valid Supabase Auth token; its 'sub' claim
becomes the requestor id. The id is opaque to the pipeline and is used for
logging only, never for authorization decisions.

Uses Supabase's JWT Signing Keys system with ECC (P-256) public key verification.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Header, HTTPException, status
from jwt import PyJWKClient, decode
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError, PyJWKClientError

from librarian.config import settings

logger = logging.getLogger(__name__)

ANONYMOUS_REQUESTOR = "anonymous"

# JWKS client for fetching and caching Supabase's public keys
_jwks_client: PyJWKClient | None = None


@dataclass
class Requestor:
    """
    The caller of a request.

    Attributes:
        requestor_id: The 'sub' claim of the verified token, or "anonymous"
        access_token: The verified JWT, or None for anonymous callers
    """
    requestor_id: str
    access_token: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.access_token is None


def get_jwks_client() -> PyJWKClient:
    """
    Get or create the JWKS client instance.

    Raises:
        ValueError: If SUPABASE_URL is not configured
    """
    global _jwks_client

    if _jwks_client is None:
        jwks_url = settings.SUPABASE_JWKS_URL
        if not jwks_url:
            raise ValueError(
                "SUPABASE_URL is not configured. "
                "Cannot construct JWKS URL for JWT verification."
            )

        logger.info(f"Initializing JWKS client with URL: {jwks_url}")
        _jwks_client = PyJWKClient(
            jwks_url,
            cache_keys=True,  # default TTL is 300 seconds
            max_cached_keys=16,
        )

    return _jwks_client


def _unauthorized(error: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "details": details}
    )


def _parse_bearer(authorization: str) -> str:
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Invalid Authorization header format")
        raise _unauthorized("unauthorized", "Invalid Authorization header format")
    return parts[1]


def verify_access_token(token: str) -> str:
    """
    Verify a Supabase Auth JWT and return its 'sub' claim.

    Raises:
        HTTPException: 401 if the token is invalid, expired, or has no subject
    """
    try:
        jwks_client = get_jwks_client()
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        # Supabase tokens use an issuer that includes the /auth/v1 path
        issuer = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1"

        payload = decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience="authenticated",
            issuer=issuer,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_aud": True,
                "verify_iss": True,
            }
        )

    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise _unauthorized("token_expired", "Authentication token has expired")

    except PyJWKClientError as e:
        logger.error(f"JWKS client error: {str(e)}")
        raise _unauthorized("jwks_error", "Unable to verify token signature")

    except InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        raise _unauthorized("invalid_token", "Invalid authentication token")

    except Exception as e:
        logger.error(f"Unexpected error during token verification: {str(e)}")
        raise _unauthorized("unauthorized", "Token verification failed")

    subject = payload.get("sub")
    if not subject:
        logger.error("Token payload missing 'sub' claim")
        raise _unauthorized("unauthorized", "Invalid token: missing user ID")

    return str(subject)


async def get_requestor(
    authorization: Annotated[str | None, Header()] = None
) -> Requestor:
    """
    Resolve the caller of the current request.

    - No Authorization header: anonymous requestor
    - Bearer token: verified against Supabase JWKS; 'sub' is the requestor id

    Raises:
        HTTPException: 401 if a token is present but invalid

    Usage:
        @router.post("/recommendations")
        async def recommend(requestor: Requestor = Depends(get_requestor)):
            logger.info(f"called by {requestor.requestor_id}")
    """
    if not authorization:
        return Requestor(requestor_id=ANONYMOUS_REQUESTOR)

    token = _parse_bearer(authorization)
    requestor_id = verify_access_token(token)

    logger.info(f"Token verified successfully for requestor_id={requestor_id}")
    return Requestor(requestor_id=requestor_id, access_token=token)
