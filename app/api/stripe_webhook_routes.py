"""
Stripe Webhook Handler - applies completed checkouts to profiles
"""
import logging
from typing import Optional
from fastapi import APIRouter, Request, HTTPException, Header

from app.core.exceptions import ServerException
from app.services.stripe_billing_service import stripe_billing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["Stripe Webhooks"])


@router.post("/webhook")
async def stripe_webhook_handler(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature")
):
    """
    Handle Stripe webhook events
    Duplicate and unrelated events are acknowledged with 200 so Stripe stops retrying
    """
    try:
        # Signature is computed over the raw body
        body = await request.body()
        return await stripe_billing_service.handle_webhook(body, stripe_signature)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing Stripe webhook: {e}")
        raise ServerException("WEBHOOK_FAILED", "Webhook processing failed")
