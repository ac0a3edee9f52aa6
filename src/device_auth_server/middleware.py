import logging
from typing import Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from .core.errors import UnauthorizedError
from .core.exception_handler import device_auth_error_response

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_PATHS = [
    "/authresponse",
    "/device/register",
    "/device/regcode",
    "/device/accesstoken",
    "/favicon.ico",
    "/public",
    "/health",
]


class PublicPathMiddleware(BaseHTTPMiddleware):
    """
    Lets the device flow paths through and rejects everything else.

    Pages that need their own user authentication before the device flow
    starts would authenticate here instead of being rejected.
    """

    def __init__(self, app, public_paths: Optional[list] = None):
        super().__init__(app)
        self.public_paths = public_paths or DEFAULT_PUBLIC_PATHS

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)
        logger.info(f"Rejected non-public path {request.url.path}: no authentication")
        return device_auth_error_response(UnauthorizedError())

    def _is_public_path(self, path: str) -> bool:
        for public_path in self.public_paths:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False


def add_public_path_middleware(app: FastAPI, public_paths: Optional[list] = None) -> None:
    app.add_middleware(PublicPathMiddleware, public_paths=public_paths)
