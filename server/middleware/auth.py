"""Bearer token middleware for route protection."""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from constants import AUTH_HEADER, AUTH_SCHEME, PUBLIC_PATHS, PUBLIC_PREFIXES
from core.container import container
from services.token import TokenService

logger = logging.getLogger(__name__)

UNAUTHORIZED_DETAIL = "Authentication required"


def unauthorized_response() -> JSONResponse:
    """The single rejection shape for missing, malformed, forged, or expired tokens."""
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": UNAUTHORIZED_DETAIL},
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Return the credential from ``Bearer <token>``, or None if malformed."""
    if not header_value:
        return None
    parts = header_value.split(" ")
    if len(parts) != 2 or parts[0].lower() != AUTH_SCHEME or not parts[1]:
        return None
    return parts[1]


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware to protect routes requiring authentication.

    On success binds ``request.state.user_id`` for downstream handlers.
    """

    def __init__(self, app: ASGIApp, tokens: Optional[TokenService] = None):
        super().__init__(app)
        self._tokens = tokens

    @property
    def tokens(self) -> TokenService:
        return self._tokens or container.token_service()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # Allow public paths and CORS preflight
        if request.method == "OPTIONS" or self._is_public_path(path):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get(AUTH_HEADER))
        if token is None:
            return unauthorized_response()

        user_id = self.tokens.validate(token)
        if user_id is None:
            logger.debug(f"Rejected token on {path}")
            return unauthorized_response()

        request.state.user_id = user_id
        return await call_next(request)

    def _is_public_path(self, path: str) -> bool:
        """Check if path is public (no auth required)."""
        if path in PUBLIC_PATHS:
            return True

        for prefix in PUBLIC_PREFIXES:
            if path.startswith(prefix):
                return True

        return False


def current_user_id(request: Request) -> str:
    """FastAPI dependency returning the user bound by AuthMiddleware."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHORIZED_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
