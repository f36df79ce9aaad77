"""
Cloudinary asset service
Signed direct-upload parameters and the sweep of expired ephemeral uploads
"""
import time
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import cloudinary
import cloudinary.uploader
import cloudinary.search
import cloudinary.utils

from app.core.config import settings
from app.core.exceptions import ConfigurationException, ServerException

logger = logging.getLogger(__name__)

EPHEMERAL_TAG = "ephemeral"
CLEANUP_BATCH_SIZE = 50
DELETED_RESULTS = ("ok", "not found", "not_found")


def normalize_folder(raw_folder: Optional[str]) -> str:
    """Drop empty path segments; fall back to the configured upload folder"""
    default_folder = settings.CLOUDINARY_UPLOAD_FOLDER or "modelcast/uploads"
    if not isinstance(raw_folder, str):
        return default_folder
    cleaned = "/".join(segment.strip() for segment in raw_folder.split("/") if segment.strip())
    return cleaned or default_folder


class CloudinaryService:

    def is_configured(self) -> bool:
        return bool(settings.CLOUDINARY_CLOUD_NAME and settings.CLOUDINARY_API_KEY and settings.CLOUDINARY_API_SECRET)

    def _configure(self):
        if not self.is_configured():
            logger.error("Missing Cloudinary environment variables")
            raise ConfigurationException("Cloudinary is not configured.")
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    def create_signed_upload(self, folder: Optional[str] = None) -> Dict[str, Any]:
        """Parameters the browser needs to upload straight to Cloudinary"""
        self._configure()

        timestamp = int(time.time())
        params_to_sign = {
            "timestamp": timestamp,
            "folder": normalize_folder(folder),
            "upload_preset": settings.CLOUDINARY_UPLOAD_PRESET,
            "tags": EPHEMERAL_TAG,
            "return_delete_token": "1",
        }
        signature = cloudinary.utils.api_sign_request(params_to_sign, settings.CLOUDINARY_API_SECRET)

        return {
            "cloudName": settings.CLOUDINARY_CLOUD_NAME,
            "apiKey": settings.CLOUDINARY_API_KEY,
            "timestamp": timestamp,
            "signature": signature,
            "folder": params_to_sign["folder"],
            "uploadPreset": params_to_sign["upload_preset"],
            "tags": EPHEMERAL_TAG,
            "returnDeleteToken": True,
            "uploadUrl": f"https://api.cloudinary.com/v1_1/{settings.CLOUDINARY_CLOUD_NAME}/auto/upload",
        }

    def cleanup_expired_assets(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Delete ephemeral uploads older than the retention window"""
        self._configure()

        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(minutes=settings.ASSET_RETENTION_MINUTES)).strftime("%Y-%m-%dT%H:%M:%S.000Z")

        try:
            search_result = (
                cloudinary.search.Search()
                .expression(f"tags={EPHEMERAL_TAG} AND uploaded_at<{cutoff}")
                .max_results(CLEANUP_BATCH_SIZE)
                .execute()
            )
            resources = search_result.get("resources", [])

            deleted = 0
            for resource in resources:
                public_id = resource.get("public_id")
                if not public_id:
                    continue
                result = cloudinary.uploader.destroy(
                    public_id,
                    resource_type=resource.get("resource_type", "image"),
                    invalidate=True,
                )
                if result.get("result") in DELETED_RESULTS:
                    deleted += 1
                else:
                    logger.warning(f"CLEANUP: could not delete {public_id}: {result}")
        except Exception as e:
            logger.error(f"CLEANUP: Cloudinary sweep failed: {e}")
            raise ServerException("CLEANUP_FAILED", "Internal Server Error")

        logger.info(f"CLEANUP: checked {len(resources)} assets, deleted {deleted}")
        return {"checked": len(resources), "deleted": deleted}


# Global service instance
cloudinary_service = CloudinaryService()
