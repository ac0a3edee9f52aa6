"""
OpenTelemetry counters for the device registration flow.

Recording never raises: failures are logged as warnings so telemetry cannot
break a registration. Without an SDK configured the API's no-op meter is used.
"""

import functools
import logging

from opentelemetry import metrics as otel_metrics
from opentelemetry.metrics import Counter

logger = logging.getLogger(__name__)


def safe_telemetry(func):
    """Swallow and log telemetry exceptions."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Telemetry error in {func.__name__}: {e}")

    return wrapper


class DeviceFlowMetrics:
    """Counters for registrations, token exchanges and device polls."""

    def __init__(self, service_name: str = "device_auth_server"):
        self.service_name = service_name
        self.meter = otel_metrics.get_meter(f"device.{service_name}")
        self._counters: dict[str, Counter] = {}

        self._create_counter(
            "device_registrations_total", "Registration code requests by outcome"
        )
        self._create_counter(
            "device_registrations_expired_total", "Pending registrations removed by the expiry sweep"
        )
        self._create_counter(
            "device_token_exchanges_total", "Identity provider token calls by grant type and outcome"
        )
        self._create_counter("device_token_polls_total", "Device access token polls by status")

    @safe_telemetry
    def _create_counter(self, name: str, description: str, unit: str = "1") -> None:
        self._counters[name] = self.meter.create_counter(name=name, description=description, unit=unit)

    @safe_telemetry
    def _add(self, name: str, value: int = 1, attributes: dict | None = None) -> None:
        counter = self._counters.get(name)
        if counter is None:
            return
        counter.add(value, attributes=attributes or {})

    def record_registration(self, outcome: str) -> None:
        self._add("device_registrations_total", attributes={"outcome": outcome})

    def record_registrations_expired(self, count: int) -> None:
        self._add("device_registrations_expired_total", value=count)

    def record_token_exchange(self, grant_type: str, outcome: str) -> None:
        self._add("device_token_exchanges_total", attributes={"grant_type": grant_type, "outcome": outcome})

    def record_poll(self, status: str) -> None:
        self._add("device_token_polls_total", attributes={"status": status})


metrics = DeviceFlowMetrics()
