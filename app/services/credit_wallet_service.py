"""
Credit Wallet Service - profile balances and plan tiers
Handles profile bootstrap, per-generation consumption and purchase application
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundException, ValidationException, ServerException
from app.database.connection import get_session
from app.database.unified_models import Profile, CreditHistory
from app.models.billing import PurchaseResult
from app.models.plans import (
    PlanTier, FREE_SIGNUP_CREDITS, resolve_plan, higher_plan, plan_flags
)

logger = logging.getLogger(__name__)


class CreditWalletService:
    """
    Profile credit management
    Every balance mutation is a single statement or a single transaction
    """

    # =========================================================================
    # PROFILE BOOTSTRAP
    # =========================================================================

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        async with get_session() as session:
            return await session.get(Profile, user_id)

    async def get_or_create_profile(self, user_id: str, initial_credits: int = FREE_SIGNUP_CREDITS) -> Profile:
        """Return the profile, creating a free one if absent; a concurrent insert wins"""
        async with get_session() as session:
            profile = await session.get(Profile, user_id)
            if profile:
                return profile

            profile = Profile(id=user_id, credits=initial_credits, **plan_flags(PlanTier.FREE))
            session.add(profile)
            try:
                await session.commit()
                logger.info(f"Created profile for user {user_id} with {initial_credits} credits")
                return profile
            except IntegrityError:
                await session.rollback()
                logger.info(f"Profile for user {user_id} created concurrently, re-reading")

            profile = await session.get(Profile, user_id)
            if not profile:
                logger.error(f"Profile for user {user_id} vanished after conflict")
                raise ServerException("PROFILE_INIT_FAILED", "Failed to initialize profile")
            return profile

    async def sync_signup_credits(self, user_id: str, starting_credits: int) -> int:
        """
        Apply the signup grant to a profile, creating it if needed
        An existing balance is never lowered
        """
        async with get_session() as session:
            profile = await session.get(Profile, user_id)
            if profile is None:
                session.add(Profile(id=user_id, credits=starting_credits, **plan_flags(PlanTier.FREE)))
                try:
                    await session.commit()
                    return starting_credits
                except IntegrityError:
                    await session.rollback()
                    profile = await session.get(Profile, user_id)
                    if profile is None:
                        raise

            if starting_credits > (profile.credits or 0):
                profile.credits = starting_credits
                await session.commit()
            return profile.credits

    # =========================================================================
    # CONSUMPTION
    # =========================================================================

    async def consume_credit(self, user_id: str) -> Optional[int]:
        """
        Atomically take one credit
        Returns the new balance, or None when the balance was already zero
        """
        async with get_session() as session:
            result = await session.execute(
                update(Profile)
                .where(Profile.id == user_id, Profile.credits > 0)
                .values(credits=Profile.credits - 1)
                .returning(Profile.credits)
            )
            remaining = result.scalar_one_or_none()
            await session.commit()

        if remaining is None:
            logger.warning(f"Credit decrement for user {user_id} matched no row")
        return remaining

    # =========================================================================
    # PURCHASES
    # =========================================================================

    async def apply_purchase(
        self,
        user_id: str,
        plan: PlanTier,
        credits: int,
        event_id: str,
        session_id: Optional[str] = None,
        source: str = "webhook",
    ) -> PurchaseResult:
        """
        Record a purchase in the ledger and grant it, exactly once

        The ledger row and the profile change commit together. A unique violation
        on event_id or session_id means the purchase was already applied.
        """
        async with get_session() as session:
            session.add(CreditHistory(
                event_id=event_id,
                session_id=session_id,
                user_id=user_id,
                credits_added=credits,
                plan=plan.value,
                source=source,
            ))
            try:
                await session.flush()
            except IntegrityError:
                await session.rollback()
                logger.info(f"Purchase {event_id} (session {session_id}) already applied")
                profile = await session.get(Profile, user_id)
                return PurchaseResult(
                    applied=False,
                    credits=profile.credits if profile else 0,
                    plan=resolve_plan(profile).value,
                )

            try:
                result = await session.execute(
                    select(Profile).where(Profile.id == user_id).with_for_update()
                )
                profile = result.scalar_one_or_none()

                if profile is None:
                    next_plan = higher_plan(PlanTier.FREE, plan)
                    profile = Profile(id=user_id, credits=FREE_SIGNUP_CREDITS + credits, **plan_flags(next_plan))
                    session.add(profile)
                else:
                    next_plan = higher_plan(resolve_plan(profile), plan)
                    profile.credits = (profile.credits or 0) + credits
                    for key, value in plan_flags(next_plan).items():
                        setattr(profile, key, value)

                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Failed to apply purchase {event_id} for user {user_id}: {e}")
                raise

        logger.info(f"Applied {source} purchase {event_id}: +{credits} credits, plan {next_plan.value} for user {user_id}")
        return PurchaseResult(applied=True, credits=profile.credits, plan=next_plan.value)

    async def grant_free_credits(self, user_id: str) -> Profile:
        """Top a free profile back up to the signup allotment"""
        async with get_session() as session:
            profile = await session.get(Profile, user_id)
            if profile is None:
                raise NotFoundException("PROFILE_NOT_FOUND", "Profile not found")

            if resolve_plan(profile) != PlanTier.FREE:
                raise ValidationException(
                    "ALREADY_PRO", "Pro members already have unlimited access to HD generations."
                )

            if (profile.credits or 0) >= FREE_SIGNUP_CREDITS:
                return profile

            profile.credits = FREE_SIGNUP_CREDITS
            for key, value in plan_flags(PlanTier.FREE).items():
                setattr(profile, key, value)
            await session.commit()

        logger.info(f"Granted free credits to user {user_id}")
        return profile


# Global service instance
credit_wallet_service = CreditWalletService()
