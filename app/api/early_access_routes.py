"""
Early access signup route
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException

from app.core.exceptions import ValidationException, ServerException
from app.services.early_access_service import early_access_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Early Access"])


@router.post("/early-access")
async def join_early_access(email: Optional[Any] = Body(None, embed=True)):
    if not isinstance(email, str) or "@" not in email:
        raise ValidationException("INVALID_EMAIL", "Invalid email")

    try:
        await early_access_service.register(email.strip())
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"EARLY_ACCESS_ERROR: {e}")
        raise ServerException("EARLY_ACCESS_FAILED", "Failed to save your email.")

    return {"success": True}
