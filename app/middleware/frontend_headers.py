from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import time
import logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class FrontendHeadersMiddleware(BaseHTTPMiddleware):
    """
    Request logging plus the headers every API response carries
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"GLOBAL: {request.method} {request.url.path} from {client_ip}")

        auth_header = request.headers.get("authorization")
        if auth_header and not auth_header.startswith("Bearer "):
            logger.warning("   AUTH WARNING: Authorization header doesn't start with 'Bearer '")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"UNHANDLED EXCEPTION in {request.url.path}: {type(e).__name__}: {e}")
            raise

        process_time = time.time() - start_time

        if response.status_code >= 500:
            logger.error(f"   ERROR Response: {response.status_code} in {process_time:.3f}s")
        elif response.status_code >= 400:
            logger.warning(f"   WARNING Response: {response.status_code} in {process_time:.3f}s")
        else:
            logger.info(f"   SUCCESS Response: {response.status_code} in {process_time:.3f}s")

        # Credit balances and signed URLs must never be cached
        response.headers["Cache-Control"] = "no-store"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-API-Version"] = API_VERSION
        response.headers["X-Process-Time"] = str(round(process_time, 3))

        return response
