"""
Generation orchestration
Validates a request, gates it on plan and credits, runs FASHN and settles the credit
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from app.core.config import settings
from app.core.exceptions import (
    ValidationException, ForbiddenException, PaymentRequiredException,
    UpstreamException, ServerException, ConfigurationException
)
from app.database.connection import get_session
from app.database.unified_models import Generation
from app.models.auth import AuthenticatedUser
from app.models.generation import (
    GenerateRequest, NormalizedGeneration, PromptOptions, FormSelections,
    GenerateResponse, GenerationRecord
)
from app.models.plans import PlanTier, PLAN_CREDIT_LIMITS, DEV_MODE_CREDITS, resolve_plan
from app.services.credit_wallet_service import credit_wallet_service
from app.services.fashn_client import FashnClient, FashnError, fashn_client
from app.services.fashn_inputs import FashnModel, build_fashn_inputs, get_model_candidates
from app.services.prompt_service import assemble_prompt
from app.services.watermark_service import apply_watermark

logger = logging.getLogger(__name__)

CLOUDINARY_PREFIX = "https://res.cloudinary.com/"
MOCK_OUTPUT_URL = "https://placehold.co/600x800/111111/9FFF57?text=Mock+ModelCast+Shot"
MOCK_CREDITS = 999
PREVIEW_WIDTH = 1024
GENERATION_MODES = ("basic", "advanced")

# =============================================================================
# PAYLOAD NORMALIZATION
# =============================================================================

STYLE_TYPE_MODEL_TYPES = {"street": "street", "studio": "fashion", "editorial": "fashion", "outdoor": "fashion"}
STYLE_TYPE_ENVIRONMENTS = {"outdoor": "outdoor", "street": "urban", "studio": "studio"}
STYLE_TYPE_STYLES = {"street": "streetwear", "editorial": "formal", "outdoor": "casual", "studio": "formal"}

ENVIRONMENT_ALIASES = {"street": "urban"}
MODEL_TYPE_ALIASES = {"studio": "portrait"}
AGE_GROUP_ALIASES = {
    "youth": "young", "teen": "young", "teenager": "young", "child": "young", "children": "young",
    "middle": "middle-aged", "adult": "middle-aged",
    "elderly": "senior", "older": "senior",
}
GENDER_ALIASES = {"woman": "female", "man": "male", "androgynous": "unisex", "neutral": "unisex"}


def sanitize(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip().lower()
    return trimmed or None


def _clean_url(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None:
            return value
    return None


def _alias(table: Dict[str, str], value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return table.get(value, value)


def normalize_options(payload: GenerateRequest) -> PromptOptions:
    """Merge options.*, top-level fields and styleType-derived defaults, in that order"""
    raw_options = payload.options or {}
    style_type = sanitize(payload.styleType)

    environment = _first(
        sanitize(raw_options.get("environment")),
        sanitize(payload.environment),
        STYLE_TYPE_ENVIRONMENTS.get(style_type),
    )
    model_type = _first(
        sanitize(raw_options.get("modelType")),
        sanitize(payload.modelType),
        STYLE_TYPE_MODEL_TYPES.get(style_type),
    )
    age_group = _first(
        sanitize(raw_options.get("ageGroup")),
        sanitize(_first(payload.ageGroup, payload.age)),
    )
    gender = _first(sanitize(raw_options.get("gender")), sanitize(payload.gender))
    style = _first(
        sanitize(raw_options.get("style")),
        sanitize(payload.style),
        STYLE_TYPE_STYLES.get(style_type),
    )
    skin_tone = sanitize(_first(payload.skinTone, payload.tone))

    return PromptOptions(
        environment=_alias(ENVIRONMENT_ALIASES, environment),
        model_type=_alias(MODEL_TYPE_ALIASES, model_type),
        age_group=_alias(AGE_GROUP_ALIASES, age_group),
        gender=_alias(GENDER_ALIASES, gender),
        style=style,
        skin_tone=skin_tone,
    )


def parse_generate_request(payload: GenerateRequest) -> NormalizedGeneration:
    """Resolve image aliases and validate them; raises ValidationException"""
    raw_options = payload.options or {}

    model_image_url = (
        _clean_url(payload.modelImageUrl)
        or _clean_url(payload.model_image)
        or _clean_url(payload.modelImage)
        or _clean_url(raw_options.get("modelImageUrl"))
    )
    garment_image_url = (
        _clean_url(payload.garmentImageUrl)
        or _clean_url(payload.garment_image)
        or _clean_url(payload.garmentImage)
        or _clean_url(payload.imageUrl)
        or _clean_url(payload.image)
    )

    if not garment_image_url:
        raise ValidationException("MISSING_GARMENT_IMAGE", "Garment image is required.")
    if not garment_image_url.startswith(CLOUDINARY_PREFIX):
        raise ValidationException("INVALID_IMAGE_URL", "Invalid image input")
    if model_image_url and not model_image_url.startswith(CLOUDINARY_PREFIX):
        raise ValidationException("INVALID_IMAGE_URL", "Invalid image input")

    mode = sanitize(payload.mode)
    if mode not in GENERATION_MODES:
        mode = None
    if mode == "advanced" and not model_image_url:
        raise ValidationException("MODEL_IMAGE_REQUIRED", "Model image required for advanced mode.")

    options = normalize_options(payload)
    form = FormSelections(
        style_type=payload.styleType,
        gender=payload.gender,
        age_group=payload.ageGroup,
        skin_tone=payload.skinTone,
        aspect_ratio=payload.aspectRatio,
    )
    options.style_type = form.style_type
    options.aspect_ratio = form.aspect_ratio

    return NormalizedGeneration(
        garment_image_url=garment_image_url,
        model_image_url=model_image_url,
        mode=mode,
        options=options,
        form=form,
    )


# =============================================================================
# ORCHESTRATION
# =============================================================================

class GenerationService:

    def __init__(self, client: Optional[FashnClient] = None):
        self.client = client or fashn_client

    async def generate(self, user: AuthenticatedUser, payload: GenerateRequest) -> GenerateResponse:
        if settings.is_production and settings.DEV_MODE:
            logger.error("DEV_MODE cannot be active in production")
            raise ConfigurationException("DEV_MODE cannot be active in production")

        request = parse_generate_request(payload)

        if not settings.FASHN_ENABLED:
            logger.info("Mock mode active - returning placeholder image")
            return GenerateResponse(outputUrl=MOCK_OUTPUT_URL, creditsRemaining=MOCK_CREDITS)

        dev_mode = settings.dev_mode_active
        profile = await credit_wallet_service.get_or_create_profile(user.id)

        plan = PlanTier.PRO if dev_mode else resolve_plan(profile)
        plan_limit = DEV_MODE_CREDITS if dev_mode else PLAN_CREDIT_LIMITS[plan]
        credits = DEV_MODE_CREDITS if dev_mode else max(profile.credits or 0, 0)
        is_pro_tier = plan != PlanTier.FREE

        if not is_pro_tier and (request.has_model_image or request.mode == "advanced"):
            raise ForbiddenException("PLAN_UPGRADE_REQUIRED", "Pro plan required for dual-image try-on.")
        if credits <= 0:
            raise PaymentRequiredException()

        prompt_details = assemble_prompt(request.options, request.form)
        logger.info(f"Final prompt for user {user.id}: {prompt_details.prompt}")
        if prompt_details.missing:
            logger.warning(f"Prompt attributes without mappings: {', '.join(prompt_details.missing)}")

        def build_inputs(model: FashnModel) -> Dict[str, Any]:
            # Try-on models work from the two images alone
            return build_fashn_inputs(
                model,
                garment_image_url=request.garment_image_url,
                model_image_url=request.model_image_url,
                prompt=prompt_details.prompt,
                include_prompt=not model.is_tryon,
            )

        try:
            result = await self.client.run_with_fallback(
                get_model_candidates(request.has_model_image), build_inputs
            )
        except FashnError as e:
            logger.error(f"FASHN request failed for user {user.id}: {e.message}")
            raise UpstreamException(e.message, "Image generation failed")

        if dev_mode:
            credits_remaining = plan_limit
        else:
            credits_remaining = await credit_wallet_service.consume_credit(user.id)
            if credits_remaining is None:
                # Generation already happened upstream
                raise ServerException("CREDIT_UPDATE_FAILED", "Unable to update credits")

        output_url = result.output_url
        if not is_pro_tier:
            output_url = apply_watermark(output_url, width=PREVIEW_WIDTH, cache_bust=True)

        metadata = {
            "options": request.options.model_dump(exclude_none=True),
            "form": request.form.model_dump(exclude_none=True),
            "modelImageProvided": request.has_model_image,
            "delivery": "hd" if is_pro_tier else "preview",
            "prompt": {
                "text": prompt_details.prompt,
                "resolved": prompt_details.resolved.model_dump(exclude_none=True),
                "missing": prompt_details.missing,
            },
            "api": {
                "model": result.model.value,
                "predictionId": result.prediction_id,
                "inputs": result.inputs,
                "failedCandidates": result.errors,
            },
        }
        generation = await self.record_generation(user.id, output_url, plan, metadata)

        logger.info(f"Generation completed for user {user.id} with {result.model.value} ({credits_remaining} credits left)")
        return GenerateResponse(
            outputUrl=output_url,
            creditsRemaining=credits_remaining,
            totalCredits=plan_limit,
            plan=plan.value,
            model=result.model.value,
            generation=generation,
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    async def record_generation(
        self, user_id: str, image_url: str, plan: PlanTier, metadata: Dict[str, Any]
    ) -> Optional[GenerationRecord]:
        """Persist a finished generation; failures are logged and swallowed"""
        try:
            async with get_session() as session:
                row = Generation(user_id=user_id, image_url=image_url, plan=plan.value, generation_metadata=metadata)
                session.add(row)
                await session.commit()
                await session.refresh(row)
                return self._to_record(row)
        except Exception as e:
            logger.error(f"Failed to persist generation for user {user_id}: {e}")
            return None

    async def list_generations(self, user_id: str, limit: int = 20) -> List[GenerationRecord]:
        async with get_session() as session:
            result = await session.execute(
                select(Generation)
                .where(Generation.user_id == user_id)
                .order_by(Generation.created_at.desc())
                .limit(limit)
            )
            return [self._to_record(row) for row in result.scalars().all()]

    @staticmethod
    def _to_record(row: Generation) -> GenerationRecord:
        return GenerationRecord(
            id=row.id,
            url=row.image_url,
            plan=row.plan,
            createdAt=row.created_at,
            metadata=row.generation_metadata,
        )


# Global service instance
generation_service = GenerationService()
