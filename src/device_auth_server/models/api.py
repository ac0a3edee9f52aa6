"""
Pydantic models for the device registration HTTP surface.

Field names follow the wire format devices already parse (camelCase where the
device protocol uses it).
"""

from typing import Literal

from pydantic import BaseModel


class RegistrationCodeResponse(BaseModel):
    """Response for a newly issued registration code"""

    regCode: str
    deviceSecret: str
    expires: int  # epoch milliseconds


class PollStatusResponse(BaseModel):
    """Response while the registration is still pending"""

    poll_status: Literal["waiting", "slowdown"]


class AccessTokenResponse(BaseModel):
    """Response carrying a fresh access token"""

    access: str
    expires: int


class ErrorResponse(BaseModel):
    """Error body for every classified failure"""

    error: str
    message: str
