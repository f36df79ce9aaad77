"""
Authentication dependencies for FastAPI
Accepts the Supabase session cookie or an Authorization bearer header
"""
from fastapi import Request
from typing import Optional
import logging

from app.core.exceptions import AuthenticationException
from app.services.supabase_auth_service import supabase_auth_service as auth_service
from app.models.auth import AuthenticatedUser

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIES = ("sb-access-token", "supabase-auth-token")


def extract_access_token(request: Request) -> Optional[str]:
    """Cookie first, then the Authorization header"""
    for cookie_name in ACCESS_TOKEN_COOKIES:
        token = request.cookies.get(cookie_name)
        if token:
            return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        return token or None
    return None


async def get_current_user(request: Request) -> AuthenticatedUser:
    """
    Dependency to get current authenticated user
    """
    token = extract_access_token(request)
    if not token:
        logger.warning(f"AUTH: missing access token on {request.url.path}")
        raise AuthenticationException()

    return await auth_service.get_user(token)

