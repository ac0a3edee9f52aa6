"""Unit tests for settings and the product whitelist loader."""

import logging
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from device_auth_server.core.config import DeviceAuthSettings
from device_auth_server.utils.config_loader import ProductsConfigLoader, get_products_config


@pytest.fixture
def products_file(tmp_path):
    path = tmp_path / "products.yml"
    path.write_text(
        "products:\n"
        "  speaker:\n"
        "    - DSN1\n"
        "    - ${TEST_EXTRA_DSN:-DSN9}\n"
        "  lamp: 42\n"
        "  empty:\n"
    )
    return path


@pytest.mark.unit
class TestDeviceAuthSettings:
    def test_defaults(self):
        settings = DeviceAuthSettings(_env_file=None)

        assert settings.registration_ttl_seconds == 900
        assert settings.min_poll_interval_ms == 1000
        assert settings.max_pending_registrations == 50000
        assert settings.expiry_check_interval_seconds == 5.0
        assert settings.regcode_num_bytes == 12
        assert settings.state_num_bytes == 32
        assert settings.validate_cert_chain is True
        assert settings.products_file_path.name == "products.yml"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("REGISTRATION_TTL_SECONDS", "60")
        monkeypatch.setenv("VALIDATE_CERT_CHAIN", "false")
        monkeypatch.setenv("CLIENT_ID", "amzn-client")

        settings = DeviceAuthSettings(_env_file=None)

        assert settings.registration_ttl_seconds == 60
        assert settings.validate_cert_chain is False
        assert settings.client_id == "amzn-client"

    @pytest.mark.parametrize(
        "field", ["registration_ttl_seconds", "max_pending_registrations", "regcode_num_bytes"]
    )
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValidationError):
            DeviceAuthSettings(_env_file=None, **{field: 0})

    def test_rejects_inverted_product_lengths(self):
        with pytest.raises(ValidationError):
            DeviceAuthSettings(_env_file=None, product_min_length=10, product_max_length=5)

    def test_products_from_configured_path(self, products_file):
        settings = DeviceAuthSettings(_env_file=None, products_config_path=str(products_file))

        assert settings.products["speaker"] == ["DSN1", "DSN9"]

    def test_configure_logging(self):
        settings = DeviceAuthSettings(_env_file=None, log_level="debug")

        with patch("device_auth_server.core.config.logging.basicConfig") as basic_config:
            settings.configure_logging()

        basic_config.assert_called_once_with(level=logging.DEBUG, format=settings.log_format, force=True)


@pytest.mark.unit
class TestProductsConfigLoader:
    def test_singleton(self):
        assert ProductsConfigLoader() is ProductsConfigLoader()

    def test_env_substitution_and_normalization(self, products_file, monkeypatch):
        monkeypatch.setenv("TEST_EXTRA_DSN", "DSN-ENV")

        products = get_products_config(products_file, reload=True)

        assert products == {"speaker": ["DSN1", "DSN-ENV"], "lamp": ["42"], "empty": []}

    def test_cached_until_reload(self, products_file):
        first = get_products_config(products_file, reload=True)
        products_file.write_text("products:\n  other:\n    - X\n")

        assert get_products_config(products_file) == first
        assert get_products_config(products_file, reload=True) == {"other": ["X"]}

    def test_missing_file(self, tmp_path):
        assert get_products_config(tmp_path / "missing.yml") == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("products: [unclosed\n")

        assert get_products_config(path) == {}

    def test_packaged_products(self):
        products = DeviceAuthSettings(_env_file=None).products

        assert "DSN1" in products["speaker"]
