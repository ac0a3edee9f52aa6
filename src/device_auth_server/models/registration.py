"""
State held for devices between code issuance and token retrieval.
"""

from dataclasses import dataclass, field


def device_key(product: str, dsn: str) -> str:
    """Key identifying one physical device (product:dsn)."""
    return f"{product}:{dsn}"


@dataclass
class PendingRegistration:
    """A device registration waiting for the browser leg to complete.

    Times are epoch seconds.
    """

    product: str
    dsn: str
    device_secret: str
    expires_at: float
    last_poll_at: float | None = None

    @property
    def key(self) -> str:
        return device_key(self.product, self.dsn)

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


@dataclass
class DeviceTokens:
    access: str
    refresh: str | None
    expires_in: int


@dataclass
class DeviceRecord:
    """Tokens owned by a registered device.

    The device secret is kept so later polls can be correlated with the
    registration that produced the tokens.
    """

    product: str
    dsn: str
    device_secret: str
    tokens: DeviceTokens
    registered_at: float = 0.0
    refreshed_at: float | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def key(self) -> str:
        return device_key(self.product, self.dsn)
