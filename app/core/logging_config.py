import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.core.config import settings

# Client libraries behind FASHN, Supabase, Stripe, Cloudinary and the database
QUIET_LOGGERS = ("httpx", "httpcore", "stripe", "urllib3", "sqlalchemy.engine")


def setup_logging(logs_dir: Path = Path("logs")):
    """Configure logging for the application"""

    logs_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG and not settings.is_production else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            RotatingFileHandler(
                logs_dir / "app.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
        ]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("app").setLevel(logging.INFO)

    # Generation client logs prompts and inputs at debug level
    fashn_level = logging.INFO if settings.is_production else logging.DEBUG
    logging.getLogger("app.services.fashn_client").setLevel(fashn_level)
