# FILE: memoire/auth.py
"""
Bearer-token authentication for the memoire API.

Tokens are configured statically through MEMOIRE_API_TOKENS as a comma
separated list of "token:user_id" pairs. The resolved user id is what the
services use for ownership checks.
"""

import logging
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def parse_token_map(raw: str) -> Dict[str, str]:
    """Parse "tok1:user1,tok2:user2" into {token: user_id}. Bad pairs are skipped."""
    tokens: Dict[str, str] = {}
    for pair in (raw or "").split(","):
        pair = pair.strip()
        if not pair:
            continue
        token, sep, user_id = pair.partition(":")
        if not sep or not token.strip() or not user_id.strip():
            logger.warning("[auth] Ignoring malformed MEMOIRE_API_TOKENS entry")
            continue
        tokens[token.strip()] = user_id.strip()
    return tokens


def resolve_token(token: str) -> Optional[str]:
    """Return the user id bound to a token, or None."""
    return parse_token_map(settings.API_TOKENS).get(token)


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency that requires a valid bearer token and returns the user id.

    Raises:
        HTTPException 503: If no tokens are configured
        HTTPException 401: If the token is missing or unknown
    """
    if not parse_token_map(settings.API_TOKENS):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication not configured. Set MEMOIRE_API_TOKENS.",
            headers={"X-Auth-Status": "not_configured"},
        )

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = resolve_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id

