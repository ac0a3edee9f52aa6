from .device_flow import DeviceAuthFlow, IssuedRegistration
from .token_client import OAuthTokenClient

__all__ = ["DeviceAuthFlow", "IssuedRegistration", "OAuthTokenClient"]
