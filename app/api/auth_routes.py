"""
Account bootstrap routes
Profile creation on first login and signup-credit sync
"""
from fastapi import APIRouter, HTTPException, Depends
import logging

from app.core.exceptions import ValidationException, ServerException
from app.middleware.auth_middleware import get_current_user
from app.models.auth import AuthenticatedUser, ProfileResponse, SyncProfileResponse
from app.models.plans import resolve_plan
from app.services.credit_wallet_service import credit_wallet_service
from app.services.signup_credits_service import (
    signup_credits_service, normalize_email, validate_email_provider,
    InvalidEmailError, EMAIL_PROVIDER_ERROR_MESSAGE
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _normalized_user_email(user: AuthenticatedUser) -> str:
    try:
        return normalize_email(user.email)
    except InvalidEmailError:
        raise ValidationException("INVALID_EMAIL", "A valid email address is required.")


@router.post("/create-profile", response_model=ProfileResponse)
async def create_profile(current_user: AuthenticatedUser = Depends(get_current_user)):
    """
    Ensure the current user has a profile row

    - Only standard email providers are accepted
    - New profiles start at 0 credits; signup credits come from sync-profile
    """
    normalized_email = _normalized_user_email(current_user)
    if not validate_email_provider(normalized_email):
        raise ValidationException("UNSUPPORTED_EMAIL_PROVIDER", EMAIL_PROVIDER_ERROR_MESSAGE)

    try:
        profile = await credit_wallet_service.get_or_create_profile(current_user.id, initial_credits=0)
        plan = resolve_plan(profile)

        return ProfileResponse(
            credits=profile.credits,
            plan=plan.value,
            isPro=bool(profile.is_pro),
            isStudio=bool(profile.is_studio),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Profile creation failed for user {current_user.id}: {e}")
        raise ServerException("PROFILE_CREATE_FAILED", "Failed to create profile")


@router.post("/sync-profile", response_model=SyncProfileResponse)
async def sync_profile(current_user: AuthenticatedUser = Depends(get_current_user)):
    """Grant signup credits once per normalized email"""
    normalized_email = _normalized_user_email(current_user)

    try:
        starting_credits = await signup_credits_service.determine_starting_credits(normalized_email)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signup credit lookup failed for user {current_user.id}: {e}")
        raise ServerException("EMAIL_CREDIT_LOOKUP_FAILED", "Failed to check signup credits")

    try:
        credits = await credit_wallet_service.sync_signup_credits(current_user.id, starting_credits)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Profile sync failed for user {current_user.id}: {e}")
        raise ServerException("PROFILE_SYNC_FAILED", "Failed to sync profile")

    logger.info(f"SUCCESS: Synced profile for user {current_user.id} ({credits} credits)")
    return SyncProfileResponse(credits=credits)
