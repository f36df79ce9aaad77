"""
Billing routes - checkout, confirmation and free-credit grants
"""
import logging
from fastapi import APIRouter, Depends, HTTPException

from app.core.exceptions import ServerException
from app.middleware.auth_middleware import get_current_user
from app.models.auth import AuthenticatedUser
from app.models.billing import (
    CheckoutRequest, CheckoutResponse, CreateSessionRequest, CreateSessionResponse,
    ConfirmRequest, ConfirmResponse, GrantFreeResponse
)
from app.models.plans import resolve_plan
from app.services.credit_wallet_service import credit_wallet_service
from app.services.stripe_billing_service import stripe_billing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["Billing"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Start a Stripe checkout for a plan id (pro or studio)"""
    try:
        url = await stripe_billing_service.create_checkout_for_plan_id(current_user, payload.planId)
        return CheckoutResponse(url=url)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Checkout failed for user {current_user.id}: {e}")
        raise ServerException("CHECKOUT_FAILED", "Unexpected error initiating checkout.")


@router.post("/create-session", response_model=CreateSessionResponse)
async def create_session(
    payload: CreateSessionRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Start a Stripe checkout for a configured price id"""
    try:
        url = await stripe_billing_service.create_checkout_for_price_id(current_user, payload.priceId)
        return CreateSessionResponse(url=url)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Create-session failed for user {current_user.id}: {e}")
        raise ServerException("CHECKOUT_FAILED", "Unexpected error initiating checkout.")


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm_checkout(
    payload: ConfirmRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Confirm a paid checkout on return from Stripe; safe to repeat"""
    try:
        return await stripe_billing_service.confirm_checkout(current_user, payload.sessionId, payload.planId)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Checkout confirmation failed for user {current_user.id}: {e}")
        raise ServerException("CONFIRMATION_FAILED", "Failed to activate plan.")


@router.post("/grant-free", response_model=GrantFreeResponse)
async def grant_free_credits(current_user: AuthenticatedUser = Depends(get_current_user)):
    """Restore the free allotment for free-tier users"""
    try:
        profile = await credit_wallet_service.grant_free_credits(current_user.id)
        return GrantFreeResponse(credits=profile.credits, plan=resolve_plan(profile).value)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Free credit grant failed for user {current_user.id}: {e}")
        raise ServerException("FAILED_TO_GRANT_CREDITS", "Failed to grant credits")
