from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from http import HTTPStatus
import logging
import uvicorn

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.api.auth_routes import router as auth_router
from app.api.generate_routes import router as generate_router
from app.api.billing_routes import router as billing_router
from app.api.stripe_webhook_routes import router as stripe_webhook_router
from app.api.asset_routes import router as asset_router
from app.api.early_access_routes import router as early_access_router
from app.api.endpoints.health import router as health_router
from app.middleware.frontend_headers import FrontendHeadersMiddleware
from app.database import init_database, close_database, create_tables
from app.services.supabase_auth_service import supabase_auth_service as auth_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    print("Starting ModelCast Backend...")

    if settings.is_production and settings.DEV_MODE:
        logger.error("DEV_MODE is set in production; generation requests will be refused")

    try:
        print("Initializing database connection...")
        await init_database()
        await create_tables()
        print("Database ready")
    except Exception as e:
        print(f"WARNING: Database initialization failed: {e}")
        print("Starting in fallback mode - database-backed endpoints will return 503")

    # Auth is independent of the database
    try:
        auth_init_success = await auth_service.initialize()
        print(f"Auth service initialized: {auth_init_success}")
    except Exception as e:
        print(f"Auth service failed: {e}")

    if not settings.FASHN_ENABLED:
        print("FASHN disabled - /api/generate returns mock output")

    yield

    # Shutdown
    print("Shutting down ModelCast Backend...")
    try:
        await close_database()
    except Exception as e:
        print(f"Cleanup failed: {e}")


app = FastAPI(
    title="ModelCast Backend",
    description="AI model-shot generation API",
    version="1.0.0",
    lifespan=lifespan
)


def _error_body(error_code: str, message: str) -> dict:
    return {"success": False, "error": error_code, "message": message}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_code = getattr(exc, "error_code", None)
    if not error_code:
        try:
            error_code = HTTPStatus(exc.status_code).phrase.upper().replace(" ", "_")
        except ValueError:
            error_code = "HTTP_ERROR"
    message = exc.detail if isinstance(exc.detail, str) else error_code
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(error_code, message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"VALIDATION ERROR on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content=_error_body("INVALID_INPUT", "Invalid request payload"),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"UNEXPECTED ERROR on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("UNEXPECTED_ERROR", "Unexpected server error"),
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(FrontendHeadersMiddleware)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(generate_router)
app.include_router(billing_router)
app.include_router(stripe_webhook_router)
app.include_router(asset_router)
app.include_router(early_access_router)


@app.get("/")
async def root():
    return {
        "message": "ModelCast Backend",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG
    )
