import logging
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


class DeviceValidator:
    """Checks a (product, serial number) pair against the configured whitelist."""

    def __init__(
        self,
        products: Mapping[str, Sequence[str]],
        product_min_length: int = 1,
        product_max_length: int = 384,
        dsn_min_length: int = 1,
    ):
        self._products = {product: frozenset(serials) for product, serials in products.items()}
        self.product_min_length = product_min_length
        self.product_max_length = product_max_length
        self.dsn_min_length = dsn_min_length

    def is_valid_device(self, product: str, dsn: str) -> bool:
        if not (self.product_min_length <= len(product) <= self.product_max_length):
            return False
        if len(dsn) < self.dsn_min_length:
            return False

        allowed = self._products.get(product)
        if allowed is None:
            return False
        return dsn in allowed

    @property
    def products(self) -> list[str]:
        return sorted(self._products)
