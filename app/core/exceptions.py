from fastapi import HTTPException
from typing import Dict, Any, Optional


class APIException(HTTPException):
    """HTTP error carrying a machine-readable code next to the human message"""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        detail: Optional[str] = None,
        headers: Dict[str, Any] = None,
    ):
        super().__init__(status_code=status_code, detail=detail or error_code, headers=headers)
        self.error_code = error_code


class ValidationException(APIException):
    def __init__(self, error_code: str = "INVALID_INPUT", detail: Optional[str] = None):
        super().__init__(status_code=400, error_code=error_code, detail=detail)


class AuthenticationException(APIException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=401,
            error_code="UNAUTHORIZED",
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(APIException):
    def __init__(self, error_code: str = "FORBIDDEN", detail: Optional[str] = None):
        super().__init__(status_code=403, error_code=error_code, detail=detail)


class NotFoundException(APIException):
    def __init__(self, error_code: str = "NOT_FOUND", detail: Optional[str] = None):
        super().__init__(status_code=404, error_code=error_code, detail=detail)


class PaymentRequiredException(APIException):
    def __init__(self, detail: str = "Out of credits"):
        super().__init__(status_code=402, error_code="OUT_OF_CREDITS", detail=detail)


class ConflictException(APIException):
    def __init__(self, error_code: str = "CONFLICT", detail: Optional[str] = None):
        super().__init__(status_code=409, error_code=error_code, detail=detail)


class UpstreamException(APIException):
    def __init__(self, error_code: str = "UPSTREAM_ERROR", detail: Optional[str] = None):
        super().__init__(status_code=502, error_code=error_code, detail=detail)


class ServiceUnavailableException(APIException):
    def __init__(self, error_code: str = "SERVICE_UNAVAILABLE", detail: Optional[str] = None):
        super().__init__(status_code=503, error_code=error_code, detail=detail)


class ConfigurationException(APIException):
    def __init__(self, detail: str, error_code: str = "SERVER_CONFIGURATION_ERROR"):
        super().__init__(status_code=500, error_code=error_code, detail=f"Configuration Error: {detail}")


class ServerException(APIException):
    def __init__(self, error_code: str = "SERVER_ERROR", detail: Optional[str] = None):
        super().__init__(status_code=500, error_code=error_code, detail=detail)
