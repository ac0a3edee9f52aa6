import logging
import os
import re
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ProductsConfigLoader:
    """Singleton product whitelist loader with environment variable substitution.

    The whitelist maps a product id to the serial numbers allowed to register
    under it. Each file is loaded once and cached for subsequent access.
    Values support bash-style defaults (e.g., ${VAR_NAME:-default_value}).
    """

    _instance: Optional["ProductsConfigLoader"] = None
    _lock: Lock = Lock()

    def __new__(cls) -> "ProductsConfigLoader":
        """Create or return the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    instance = super(ProductsConfigLoader, cls).__new__(cls)
                    instance._configs = {}
                    cls._instance = instance
        return cls._instance

    def _load_config(self, path: Path) -> Dict[str, List[str]]:
        """Load the product whitelist from a YAML file.

        Returns:
            Dict mapping product id to allowed serial numbers. Empty when the
            file is missing or invalid, which rejects every device.
        """
        try:
            logger.info(f"Loading product configuration from: {path}")

            with open(path, "r") as f:
                raw = yaml.safe_load(f) or {}

            processed = self._substitute_env_vars(raw)
            products = self._normalize_products(processed.get("products") or {})

            logger.info(f"Loaded {len(products)} products from {path}")
            return products
        except FileNotFoundError:
            logger.error(f"Product configuration file not found: {path}")
            return {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse product configuration YAML: {e}")
            return {}
        except (OSError, AttributeError, TypeError) as e:
            logger.error(f"Failed to load product configuration: {e}")
            return {}

    @staticmethod
    def _normalize_products(products: Dict[Any, Any]) -> Dict[str, List[str]]:
        normalized: Dict[str, List[str]] = {}
        for product, serials in products.items():
            if serials is None:
                serials = []
            elif not isinstance(serials, list):
                serials = [serials]
            normalized[str(product)] = [str(dsn) for dsn in serials]
        return normalized

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute environment variables in configuration.

        Supports bash-style default values: ${VAR_NAME:-default_value}
        """
        if isinstance(config, dict):
            return {k: self._substitute_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str) and "${" in config:

            def replace_var(match):
                var_expr = match.group(1)
                if ":-" in var_expr:
                    var_name, default_value = var_expr.split(":-", 1)
                    return os.environ.get(var_name.strip(), default_value.strip())
                var_name = var_expr.strip()
                if var_name in os.environ:
                    return os.environ[var_name]
                logger.warning(f"Environment variable not found: {var_name}")
                return match.group(0)  # Return original if not found

            return _ENV_VAR_PATTERN.sub(replace_var, config)
        return config

    def get(self, path: Path, reload: bool = False) -> Dict[str, List[str]]:
        """Get the whitelist for a file, loading it on first access."""
        key = str(path)
        with self._lock:
            if reload or key not in self._configs:
                self._configs[key] = self._load_config(path)
            return self._configs[key]


def get_products_config(path: Path, reload: bool = False) -> Dict[str, List[str]]:
    """Get the product whitelist stored at `path`.

    Example:
        >>> products = get_products_config(Path("products.yml"))
        >>> products.get("speaker")
        ['DSN1', 'DSN2']
    """
    return ProductsConfigLoader().get(path, reload=reload)
