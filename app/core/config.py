from pydantic_settings import BaseSettings
from typing import List
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


class Settings(BaseSettings):
    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("PORT", os.getenv("API_PORT", "8080")))
    DEBUG: bool = _env_flag("DEBUG")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEV_MODE: bool = _env_flag("DEV_MODE")
    SITE_URL: str = os.getenv("SITE_URL", os.getenv("NEXT_PUBLIC_SITE_URL", "http://localhost:3000"))
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Stripe
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_PRICE_PRO_ID: str = os.getenv("STRIPE_PRICE_PRO_ID", os.getenv("STRIPE_PRICE_PRO", ""))
    STRIPE_PRICE_STUDIO_ID: str = os.getenv("STRIPE_PRICE_STUDIO_ID", os.getenv("STRIPE_PRICE_STUDIO", ""))

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_API_KEY: str = os.getenv("CLOUDINARY_API_KEY", "")
    CLOUDINARY_API_SECRET: str = os.getenv("CLOUDINARY_API_SECRET", "")
    CLOUDINARY_UPLOAD_PRESET: str = os.getenv("CLOUDINARY_SIGNED_UPLOAD_PRESET", "modelcast_signed_upload")
    CLOUDINARY_UPLOAD_FOLDER: str = os.getenv("CLOUDINARY_UPLOAD_FOLDER", "modelcast/uploads")
    ASSET_RETENTION_MINUTES: int = int(os.getenv("ASSET_RETENTION_MINUTES", "30"))
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")

    # FASHN generation API
    FASHN_ENABLED: bool = _env_flag("FASHN_ENABLED", "true")
    FASHN_API_KEY: str = os.getenv("FASHN_API_KEY", "")
    FASHN_API_BASE: str = os.getenv("FASHN_API_BASE", "https://api.fashn.ai/v1")
    FASHN_SUBMIT_TIMEOUT_SECONDS: float = float(os.getenv("FASHN_SUBMIT_TIMEOUT_SECONDS", "60"))
    FASHN_POLL_INTERVAL_SECONDS: float = float(os.getenv("FASHN_POLL_INTERVAL_SECONDS", "2"))
    FASHN_STATUS_TIMEOUT_SECONDS: float = float(os.getenv("FASHN_STATUS_TIMEOUT_SECONDS", "60"))

    class Config:
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def dev_mode_active(self) -> bool:
        """Dev overrides never apply in production"""
        return self.DEV_MODE and not self.is_production

    @property
    def fashn_base_url(self) -> str:
        return (self.FASHN_API_BASE or "https://api.fashn.ai/v1").rstrip("/")

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()
