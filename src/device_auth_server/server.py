"""
Device auth server.

Issues registration codes to devices, sends users through the identity
provider login on the device's behalf, and hands devices their access tokens.
"""

import argparse
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import __version__
from .core.config import settings
from .core.exception_handler import register_exception_handlers
from .middleware import add_public_path_middleware
from .routes.device_flow import router as device_flow_router
from .services.device_flow import DeviceAuthFlow

logger = logging.getLogger(__name__)


def create_app(flow: DeviceAuthFlow | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        flow: Device flow to serve; built from settings at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        device_auth_flow = flow or DeviceAuthFlow.from_settings(settings)
        app.state.device_auth_flow = device_auth_flow
        logger.info(f"Device auth server started with products: {device_auth_flow.validator.products}")
        try:
            yield
        finally:
            await device_auth_flow.aclose()
            logger.info("Device auth server stopped")

    app = FastAPI(
        title="Device Auth Server",
        description="Device registration and token service for the OAuth device authorization pattern",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    register_exception_handlers(app)
    add_public_path_middleware(app)
    app.include_router(device_flow_router)
    return app


app = create_app()


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Device Auth Server")

    parser.add_argument(
        "--host",
        type=str,
        default=settings.host,
        help=f"Host for the server to listen on (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port for the server to listen on (default: {settings.port})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    return parser.parse_args()


def main():
    """Run the server"""
    args = parse_arguments()

    if args.log_level:
        settings.log_level = args.log_level
    settings.configure_logging()

    ssl_options = {}
    if settings.ssl_keyfile and settings.ssl_certfile:
        ssl_options = {
            "ssl_keyfile": settings.ssl_keyfile,
            "ssl_certfile": settings.ssl_certfile,
            "ssl_keyfile_password": settings.ssl_keyfile_password,
        }
    else:
        logger.warning("No TLS key/certificate configured, serving plain HTTP")

    logger.info(f"Starting device auth server on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, **ssl_options)


if __name__ == "__main__":
    main()
