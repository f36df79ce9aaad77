"""
Generation routes
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.exceptions import ServerException
from app.middleware.auth_middleware import get_current_user
from app.models.auth import AuthenticatedUser
from app.models.generation import GenerateRequest, GenerateResponse, GenerationListResponse
from app.services.generation_service import generation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Generation"])


@router.post("/generate", response_model=GenerateResponse, response_model_exclude_none=True)
async def generate_model_shot(
    payload: GenerateRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """
    Generate a model shot from an uploaded garment image

    Costs one credit. Free-tier output is watermarked.
    """
    try:
        return await generation_service.generate(current_user, payload)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Generation failed for user {current_user.id}: {e}", exc_info=True)
        raise ServerException("GENERATION_FAILED", "Unexpected error during generation")


@router.get("/generations", response_model=GenerationListResponse)
async def list_generations(
    limit: int = Query(20, ge=1, le=100),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Most recent generations for the current user"""
    try:
        generations = await generation_service.list_generations(current_user.id, limit=limit)
        return GenerationListResponse(generations=generations)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list generations for user {current_user.id}: {e}")
        raise ServerException("GENERATIONS_LOOKUP_FAILED", "Unable to load generations")
