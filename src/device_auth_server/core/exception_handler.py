import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import DeviceAuthError

logger = logging.getLogger(__name__)


def device_auth_error_response(exc: DeviceAuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DeviceAuthError)
    async def device_auth_exception_handler(request: Request, exc: DeviceAuthError):
        logger.info(f"Failure: {request.url.path}: {exc.error} ({exc.status_code})")
        return device_auth_error_response(exc)
