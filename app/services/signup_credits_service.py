"""
Signup credit bookkeeping
Each normalized email receives the free signup grant at most once
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.database.connection import get_session
from app.database.unified_models import SignupEmail
from app.models.plans import FREE_SIGNUP_CREDITS, DEV_MODE_CREDITS

logger = logging.getLogger(__name__)

ALLOWED_EMAIL_PROVIDERS = frozenset([
    # Global providers
    "gmail.com", "googlemail.com", "outlook.com", "hotmail.com", "live.com", "msn.com",
    "yahoo.com", "icloud.com", "me.com", "mac.com", "proton.me", "protonmail.com",
    "zoho.com", "mail.com", "aol.com", "yandex.com", "yandex.ru", "mail.ru",
    # US ISPs
    "comcast.net", "verizon.net", "att.net", "bellsouth.net", "cox.net", "charter.net",
    # Germany
    "gmx.com", "gmx.de", "web.de", "t-online.de", "freenet.de", "posteo.de",
    "mailbox.org", "arcor.de", "o2online.de",
    # Rest of Europe
    "btinternet.com", "btopenworld.com", "virginmedia.com", "orange.fr", "wanadoo.fr",
    "laposte.net", "free.fr", "sfr.fr", "libero.it", "alice.it", "seznam.cz",
    "centrum.cz", "onet.pl", "wp.pl",
])

EMAIL_PROVIDER_ERROR_MESSAGE = "This email provider is not supported. Please use a standard provider."


class InvalidEmailError(ValueError):
    pass


def normalize_email(email: str) -> str:
    """
    Lower-case and trim an address, folding googlemail.com into gmail.com
    and dropping gmail "+tag" suffixes so aliases share one signup grant
    """
    if not isinstance(email, str):
        raise InvalidEmailError("Email must be provided for normalization.")

    trimmed = email.strip().lower()
    at_index = trimmed.rfind("@")
    if at_index <= 0 or at_index == len(trimmed) - 1:
        raise InvalidEmailError("Invalid email address.")

    local_part = trimmed[:at_index]
    domain = trimmed[at_index + 1:]

    if domain == "googlemail.com":
        domain = "gmail.com"
    if domain == "gmail.com":
        local_part = local_part.split("+", 1)[0]

    return f"{local_part}@{domain}"


def get_email_domain(normalized_email: str) -> Optional[str]:
    at_index = normalized_email.rfind("@")
    if at_index == -1:
        return None
    return normalized_email[at_index + 1:] or None


def validate_email_provider(normalized_email: str) -> bool:
    domain = get_email_domain(normalized_email)
    return bool(domain) and domain in ALLOWED_EMAIL_PROVIDERS


class SignupCreditsService:

    async def determine_starting_credits(self, normalized_email: str) -> int:
        """2 for an email never seen before, 0 for a returning one, 999 in dev mode"""
        if settings.dev_mode_active:
            return DEV_MODE_CREDITS

        async with get_session() as session:
            existing = await session.execute(
                select(SignupEmail.email).where(SignupEmail.email == normalized_email)
            )
            if existing.scalar_one_or_none():
                return 0

            session.add(SignupEmail(email=normalized_email))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Signup email recorded concurrently; no free credits granted")
                return 0

        logger.info("Recorded new signup email; granting free credits")
        return FREE_SIGNUP_CREDITS


# Global service instance
signup_credits_service = SignupCreditsService()
