"""
Stripe Billing Service - one-off plan purchases
Checkout session creation, synchronous confirmation and webhook processing
"""
import stripe
import logging
from typing import Optional, Dict, Any

from app.core.config import settings
from app.core.exceptions import (
    ValidationException, ForbiddenException, ConflictException, UpstreamException,
    ServiceUnavailableException, ConfigurationException, ServerException
)
from app.models.auth import AuthenticatedUser
from app.models.billing import ConfirmResponse
from app.models.plans import PlanTier, PLAN_CREDIT_LIMITS, PURCHASABLE_PLANS, parse_plan
from app.services.credit_wallet_service import credit_wallet_service

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


def plan_credits(plan: PlanTier) -> int:
    return PLAN_CREDIT_LIMITS[plan]


def price_id_for_plan(plan: PlanTier) -> Optional[str]:
    prices = {
        PlanTier.PRO: settings.STRIPE_PRICE_PRO_ID,
        PlanTier.STUDIO: settings.STRIPE_PRICE_STUDIO_ID,
    }
    return prices.get(plan) or None


def plan_for_price(price_id: Optional[str]) -> Optional[PlanTier]:
    if not price_id:
        return None
    for plan in PURCHASABLE_PLANS:
        if price_id_for_plan(plan) == price_id:
            return plan
    return None


def _purchasable_plan(plan_id: Optional[str]) -> Optional[PlanTier]:
    plan = parse_plan(plan_id)
    return plan if plan in PURCHASABLE_PLANS else None


def _first_price_id(checkout_session: Dict[str, Any]) -> Optional[str]:
    line_items = checkout_session.get("line_items") or {}
    data = line_items.get("data") or []
    if not data:
        return None
    price = data[0].get("price") or {}
    if isinstance(price, str):
        return price
    return price.get("id")


def _metadata_user_id(*sources: Dict[str, Any]) -> Optional[str]:
    for source in sources:
        metadata = source.get("metadata") or {}
        user_id = metadata.get("user_id") or metadata.get("userId")
        if isinstance(user_id, str) and user_id:
            return user_id
    return None


class StripeBillingService:
    """Handle all Stripe billing operations"""

    def _require_secret_key(self) -> str:
        if not settings.STRIPE_SECRET_KEY:
            logger.error("Stripe secret key not configured")
            raise ServiceUnavailableException("BILLING_DISABLED", "Checkout unavailable. Contact support.")
        return settings.STRIPE_SECRET_KEY

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def create_checkout_session(self, user: AuthenticatedUser, plan: PlanTier) -> str:
        """Create a hosted payment-mode checkout session and return its URL"""
        api_key = self._require_secret_key()
        price_id = price_id_for_plan(plan)
        if plan not in PURCHASABLE_PLANS or not price_id:
            raise ValidationException("INVALID_PLAN", "Invalid plan selection.")

        site_url = settings.SITE_URL.rstrip("/")
        try:
            session = stripe.checkout.Session.create(
                api_key=api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{site_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}&plan={plan.value}",
                cancel_url=f"{site_url}/?checkout=cancelled",
                customer_email=user.email or None,
                allow_promotion_codes=True,
                metadata={
                    "user_id": user.id,
                    "plan_id": plan.value,
                    "credits": str(plan_credits(plan)),
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {e}")
            raise UpstreamException("CHECKOUT_FAILED", getattr(e, "user_message", None) or "Unable to initiate checkout.")

        logger.info(f"Created checkout session {session.get('id')} for user {user.id} ({plan.value})")
        return session.get("url")

    async def create_checkout_for_plan_id(self, user: AuthenticatedUser, plan_id: Optional[str]) -> str:
        plan = _purchasable_plan(plan_id)
        if plan is None:
            raise ValidationException("INVALID_PLAN", "Invalid plan selection.")
        return await self.create_checkout_session(user, plan)

    async def create_checkout_for_price_id(self, user: AuthenticatedUser, price_id: Optional[str]) -> str:
        plan = plan_for_price(price_id)
        if plan is None:
            raise ValidationException("UNSUPPORTED_PRICE", "Unknown price.")
        return await self.create_checkout_session(user, plan)

    def retrieve_checkout_session(self, session_id: str, expand_line_items: bool = False) -> Dict[str, Any]:
        params: Dict[str, Any] = {"api_key": self._require_secret_key()}
        if expand_line_items:
            params["expand"] = ["line_items.data.price"]
        return stripe.checkout.Session.retrieve(session_id, **params)

    # =========================================================================
    # CONFIRMATION
    # =========================================================================

    async def confirm_checkout(
        self, user: AuthenticatedUser, session_id: Optional[str], plan_id: Optional[str]
    ) -> ConfirmResponse:
        """Verify a returning checkout and grant it through the shared purchase path"""
        self._require_secret_key()

        session_id = (session_id or "").strip()
        plan_id = (plan_id or "").strip()
        if not session_id or not plan_id:
            raise ValidationException("MISSING_CHECKOUT_DETAILS", "Missing checkout details.")

        claimed_plan = _purchasable_plan(plan_id)
        if claimed_plan is None:
            raise ValidationException("UNSUPPORTED_PLAN", "Unsupported plan.")

        try:
            checkout_session = self.retrieve_checkout_session(session_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving checkout session {session_id}: {e}")
            raise UpstreamException("PAYMENT_VERIFICATION_FAILED", "Unable to verify payment.")

        if checkout_session.get("payment_status") != "paid":
            raise ConflictException("PAYMENT_INCOMPLETE", "Payment not completed yet.")

        metadata = checkout_session.get("metadata") or {}
        if metadata.get("user_id") != user.id:
            logger.error(f"Checkout owner mismatch on {session_id}: metadata user {metadata.get('user_id')}, caller {user.id}")
            raise ForbiddenException("CHECKOUT_OWNER_MISMATCH", "Unable to validate checkout owner.")

        purchased_plan = _purchasable_plan(metadata.get("plan_id"))
        if purchased_plan != claimed_plan:
            logger.warning(f"Checkout plan mismatch on {session_id}: metadata {metadata.get('plan_id')}, claimed {plan_id}")
        purchased_plan = purchased_plan or claimed_plan

        result = await credit_wallet_service.apply_purchase(
            user_id=user.id,
            plan=purchased_plan,
            credits=plan_credits(purchased_plan),
            event_id=f"confirm:{session_id}",
            session_id=session_id,
            source="confirm",
        )
        return ConfirmResponse(credits=result.credits, plan=result.plan, alreadyApplied=not result.applied)

    # =========================================================================
    # WEBHOOK
    # =========================================================================

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and process a Stripe webhook delivery"""
        if not settings.STRIPE_SECRET_KEY or not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("Webhook received without Stripe configuration")
            raise ConfigurationException("Stripe webhook is not configured", error_code="STRIPE_CONFIG_MISSING")

        if not signature:
            raise ValidationException("MISSING_SIGNATURE", "Missing stripe-signature header")

        try:
            event = stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.error(f"Invalid webhook signature: {e}")
            raise ValidationException("INVALID_SIGNATURE", "Invalid webhook signature")

        event_type = event.get("type")
        logger.info(f"Processing Stripe webhook: {event_type} ({event.get('id')})")

        if event_type != CHECKOUT_COMPLETED:
            return {"ok": True}

        return await self._handle_checkout_completed(event)

    async def _handle_checkout_completed(self, event: Dict[str, Any]) -> Dict[str, Any]:
        session_object = (event.get("data") or {}).get("object") or {}
        session_id = session_object.get("id")
        if not session_id:
            logger.error(f"Checkout session missing id in event {event.get('id')}")
            raise ValidationException("INVALID_SESSION", "Checkout session id missing")

        # Re-fetch so the purchased price comes from Stripe, not the event body
        try:
            checkout_session = self.retrieve_checkout_session(session_id, expand_line_items=True)
        except stripe.StripeError as e:
            logger.error(f"Failed to load checkout session {session_id}: {e}")
            raise ServerException("SESSION_LOOKUP_FAILED", "Failed to load checkout session")

        price_id = _first_price_id(checkout_session)
        plan = plan_for_price(price_id)
        if plan is None:
            logger.warning(f"Unrecognized price {price_id} for checkout {session_id}; ignoring")
            return {"ok": True}

        user_id = _metadata_user_id(checkout_session, session_object)
        if not user_id:
            logger.error(f"Missing user metadata on checkout session {session_id}")
            raise ValidationException("MISSING_USER", "Checkout session has no user metadata")

        try:
            result = await credit_wallet_service.apply_purchase(
                user_id=user_id,
                plan=plan,
                credits=plan_credits(plan),
                event_id=event["id"],
                session_id=session_id,
                source="webhook",
            )
        except Exception as e:
            logger.error(f"Failed to apply webhook purchase for session {session_id}: {e}")
            raise ServerException("PROFILE_UPDATE_FAILED", "Failed to apply credits")

        return {"ok": True, "applied": result.applied}


# Global service instance
stripe_billing_service = StripeBillingService()
