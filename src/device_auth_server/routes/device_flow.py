"""
Device registration routes.

1. GET /device/regcode/{product}/{dsn}: device asks for a registration code
2. GET /device/register/{regcode}: user's browser is redirected to the identity provider
3. GET /authresponse: identity provider redirects back with code and state
4. GET /device/accesstoken/{product}/{dsn}/{device_secret}: device polls for its token
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from ..models.api import (
    AccessTokenResponse,
    ErrorResponse,
    PollStatusResponse,
    RegistrationCodeResponse,
)
from ..services.device_flow import DeviceAuthFlow

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_device_auth_flow(request: Request) -> DeviceAuthFlow:
    return request.app.state.device_auth_flow


@router.get(
    "/device/regcode/{product}/{dsn}",
    response_model=RegistrationCodeResponse,
    responses=ERROR_RESPONSES,
)
async def get_registration_code(product: str, dsn: str, flow: DeviceAuthFlow = Depends(get_device_auth_flow)):
    """
    Start registration by creating a registration code.

    The code is shown to the user, who opens /device/register/{regcode}. The
    device secret stays on the device and is presented on every token poll.
    `expires` is the absolute expiry of both, in epoch milliseconds.
    """
    logger.info("entering get regcode")
    issued = flow.issue_registration_code(product, dsn)
    return RegistrationCodeResponse(
        regCode=issued.reg_code,
        deviceSecret=issued.device_secret,
        expires=issued.expires_ms,
    )


@router.get("/device/register/{regcode}", responses=ERROR_RESPONSES)
async def register_device(regcode: str, flow: DeviceAuthFlow = Depends(get_device_auth_flow)):
    """Redirect the user's browser to the identity provider login and consent page."""
    logger.info("entering register")
    auth_url = flow.begin_browser_authentication(regcode)
    return RedirectResponse(url=auth_url, status_code=302)


@router.get("/authresponse", response_class=PlainTextResponse, responses=ERROR_RESPONSES)
async def auth_response(
    code: str | None = None,
    state: str | None = None,
    flow: DeviceAuthFlow = Depends(get_device_auth_flow),
):
    """Exchange the authorization code and associate the tokens with the device."""
    logger.info("entering authresponse")
    await flow.complete_browser_authentication(code, state)
    return PlainTextResponse("device tokens ready")


@router.get(
    "/device/accesstoken/{product}/{dsn}/{device_secret}",
    response_model=PollStatusResponse | AccessTokenResponse,
    responses=ERROR_RESPONSES,
)
async def get_access_token(
    product: str,
    dsn: str,
    device_secret: str,
    flow: DeviceAuthFlow = Depends(get_device_auth_flow),
):
    """
    Poll for an access token.

    Until the user finishes the browser login this returns {"poll_status": ...}
    with "waiting", or "slowdown" when the device polls too often. Afterwards
    it returns {"access": ..., "expires": ...} with a freshly refreshed token.
    """
    logger.info("entering accesstoken")
    return await flow.poll_or_refresh_access_token(product, dsn, device_secret)


@router.get("/health")
async def health(flow: DeviceAuthFlow = Depends(get_device_auth_flow)):
    return {"status": "healthy", "pending_registrations": len(flow.store)}
