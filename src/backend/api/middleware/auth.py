from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.middleware.exception_handlers import AuthenticationError
from api.services.auth_service import AuthService, MissingSubjectError
from core.constants import get_settings
from models.api_models import UserInfo
from models.error_models import ErrorCode
from utils.logger import logger

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> UserInfo:
    """Authenticate incoming REST requests."""
    settings = get_settings()

    if credentials is None:
        if settings.allow_localhost_noauth and _is_localhost(request):
            return UserInfo(id=settings.local_user_sub, name="Local user")
        raise AuthenticationError(code=ErrorCode.AUTH_REQUIRED)

    auth = AuthService(settings)
    try:
        return auth.user_from_token(credentials.credentials)
    except MissingSubjectError as exc:
        raise AuthenticationError(code=ErrorCode.AUTH_MISSING_SUBJECT) from exc
    except ValueError as exc:
        logger.debug(f"Rejected bearer token: {exc}")
        raise AuthenticationError(code=ErrorCode.AUTH_INVALID_TOKEN) from exc


def _is_localhost(request: Request) -> bool:
    """Check if the request originates from localhost."""
    host = request.client.host if request.client else ""
    return host in {"127.0.0.1", "localhost", "::1"}


CurrentUser = Annotated[UserInfo, Depends(get_current_user)]
