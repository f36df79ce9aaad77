"""
Supabase authentication service
Resolves access tokens issued by Supabase Auth into users
"""
import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.core.exceptions import AuthenticationException, ConfigurationException
from app.models.auth import AuthenticatedUser

logger = logging.getLogger(__name__)


class SupabaseAuthService:
    """Token validation backed by supabase.auth.get_user"""

    def __init__(self):
        self.supabase = None
        self.initialized = False
        self.initialization_error: Optional[str] = None

    async def initialize(self) -> bool:
        """Create the Supabase client; the service role key is preferred over the anon key"""
        if self.initialized and self.supabase:
            return True

        if not settings.SUPABASE_URL:
            self.initialization_error = "SUPABASE_URL environment variable not set"
            logger.error(f"ERROR: {self.initialization_error}")
            return False

        supabase_key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY
        if not supabase_key:
            self.initialization_error = "SUPABASE_SERVICE_ROLE_KEY or SUPABASE_ANON_KEY must be set"
            logger.error(f"ERROR: {self.initialization_error}")
            return False

        try:
            from supabase import create_client
            self.supabase = create_client(settings.SUPABASE_URL, supabase_key)
        except Exception as e:
            self.initialization_error = f"Failed to create Supabase client: {e}"
            logger.error(f"ERROR: {self.initialization_error}")
            return False

        self.initialized = True
        self.initialization_error = None
        logger.info("SUCCESS: Supabase Auth Service initialized")
        return True

    async def ensure_initialized(self):
        if not self.initialized:
            success = await self.initialize()
            if not success:
                raise ConfigurationException(self.initialization_error or "Supabase auth unavailable")

    async def get_user(self, token: str) -> AuthenticatedUser:
        """Validate a token with Supabase; any failure is a 401"""
        await self.ensure_initialized()

        try:
            # supabase-py is synchronous; keep the event loop free
            user_response = await asyncio.to_thread(self.supabase.auth.get_user, token)
        except Exception as e:
            logger.warning(f"TOKEN: Supabase validation failed: {e}")
            raise AuthenticationException()

        user = getattr(user_response, "user", None) if user_response else None
        if not user or not getattr(user, "id", None):
            logger.warning("TOKEN: Supabase validation returned no user")
            raise AuthenticationException()

        return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None))


# Global service instance
supabase_auth_service = SupabaseAuthService()
