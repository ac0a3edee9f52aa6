"""
Device registration and token service.

Devices obtain a registration code and secret, a human completes the identity
provider login on the device's behalf, and the device then polls for its
access token.
"""

__version__ = "0.1.0"
