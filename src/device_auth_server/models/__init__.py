"""
Models for the device auth server.
"""

from .api import (
    AccessTokenResponse,
    ErrorResponse,
    PollStatusResponse,
    RegistrationCodeResponse,
)
from .registration import (
    DeviceRecord,
    DeviceTokens,
    PendingRegistration,
    device_key,
)
from .tokens import TokenResponse

__all__ = [
    "AccessTokenResponse",
    "ErrorResponse",
    "PollStatusResponse",
    "RegistrationCodeResponse",
    "DeviceRecord",
    "DeviceTokens",
    "PendingRegistration",
    "device_key",
    "TokenResponse",
]
