"""
Early access waitlist
"""
import logging

from sqlalchemy.exc import IntegrityError

from app.database.connection import get_session
from app.database.unified_models import EarlyAccessSignup

logger = logging.getLogger(__name__)


class EarlyAccessService:

    async def register(self, email: str) -> bool:
        """Store an email on the waitlist; returns False when it was already there"""
        async with get_session() as session:
            session.add(EarlyAccessSignup(email=email))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Early access email already registered")
                return False

        logger.info("Early access signup recorded")
        return True


# Global service instance
early_access_service = EarlyAccessService()
