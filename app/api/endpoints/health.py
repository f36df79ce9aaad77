from fastapi import APIRouter
import time
from typing import Dict, Any

from app.core.config import settings
from app.database.connection import check_database_health
from app.middleware.frontend_headers import API_VERSION
from app.services.cloudinary_service import cloudinary_service

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=Dict[str, Any])
async def health_check():
    """
    System health check
    Reports database reachability and which integrations are configured
    """
    start_time = time.time()
    health_data = {
        "status": "healthy",
        "timestamp": int(time.time()),
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "components": {},
    }

    if await check_database_health():
        health_data["components"]["database"] = {"status": "healthy"}
    else:
        health_data["status"] = "degraded"
        health_data["components"]["database"] = {
            "status": "unhealthy",
            "message": "Database connection failed",
        }

    health_data["components"]["integrations"] = {
        "supabase": bool(settings.SUPABASE_URL and (settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY)),
        "stripe": bool(settings.STRIPE_SECRET_KEY),
        "stripe_webhook": bool(settings.STRIPE_WEBHOOK_SECRET),
        "cloudinary": cloudinary_service.is_configured(),
        "fashn": bool(settings.FASHN_API_KEY) if settings.FASHN_ENABLED else "mock",
    }

    health_data["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
    return health_data
