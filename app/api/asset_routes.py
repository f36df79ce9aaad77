"""
Asset routes - signed uploads and the scheduled sweep of expired uploads
"""
import asyncio
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Request, HTTPException, Body

from app.core.config import settings
from app.core.exceptions import AuthenticationException, ServerException
from app.services.cloudinary_service import cloudinary_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Assets"])


def _is_authorized_cron(request: Request) -> bool:
    if not settings.CRON_SECRET:
        return False
    expected = f"Bearer {settings.CRON_SECRET}"
    provided = request.headers.get("authorization") or ""
    return hmac.compare_digest(provided.encode(), expected.encode())


@router.post("/upload")
async def create_signed_upload(folder: Optional[str] = Body(None, embed=True)):
    """Signed parameters for a direct browser upload to Cloudinary"""
    try:
        return cloudinary_service.create_signed_upload(folder)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to sign upload: {e}")
        raise ServerException("UPLOAD_SIGNATURE_FAILED", "Unable to prepare upload.")


@router.get("/cleanup")
async def cleanup_expired_assets(request: Request):
    """Delete ephemeral uploads past the retention window (cron only)"""
    if not _is_authorized_cron(request):
        raise AuthenticationException("Unauthorized")

    # Admin API calls are blocking
    return await asyncio.to_thread(cloudinary_service.cleanup_expired_assets)
