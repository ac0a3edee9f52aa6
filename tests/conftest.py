"""
Pytest configuration and shared fixtures for device_auth_server tests.
"""

import json
import urllib.parse
from collections.abc import Callable

import httpx
import pytest

from device_auth_server.core.device_store import InMemoryDeviceRecordStore
from device_auth_server.core.store import PendingRegistrationStore
from device_auth_server.core.validator import DeviceValidator
from device_auth_server.services.device_flow import DeviceAuthFlow
from device_auth_server.services.token_client import OAuthTokenClient

TOKEN_URL = "https://idp.example.com/auth/o2/token"
AUTHORIZE_URL = "https://idp.example.com/ap/oa"
REDIRECT_URL = "https://device.example.com/authresponse"
CLIENT_ID = "test-client-id"
CLIENT_SECRET = "test-client-secret"

PRODUCTS = {
    "speaker": ["DSN1", "DSN2"],
    "thermostat": ["T-100"],
}


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TokenEndpoint:
    """
    Stub identity provider token endpoint for httpx.MockTransport.

    Queue responses with `respond`; every request's form body is kept in `requests`.
    """

    def __init__(self):
        self.requests: list[dict[str, str]] = []
        self._responses: list[Callable[[httpx.Request], httpx.Response] | httpx.Response] = []

    def respond(self, status_code: int = 200, json_body: dict | None = None, text: str | None = None) -> None:
        if text is not None:
            self._responses.append(httpx.Response(status_code, text=text))
        else:
            self._responses.append(httpx.Response(status_code, json=json_body or {}))

    def respond_with(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._responses.append(handler)

    def fail_with(self, exc: Exception) -> None:
        def raise_exc(request: httpx.Request) -> httpx.Response:
            raise exc

        self.respond_with(raise_exc)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(dict(urllib.parse.parse_qsl(request.content.decode())))
        if not self._responses:
            return httpx.Response(500, text="no stubbed response")
        response = self._responses.pop(0)
        if isinstance(response, httpx.Response):
            return response
        return response(request)

    @property
    def last_request(self) -> dict[str, str]:
        return self.requests[-1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def validator() -> DeviceValidator:
    return DeviceValidator(PRODUCTS)


@pytest.fixture
def store(clock):
    pending_store = PendingRegistrationStore(ttl_seconds=900, max_pending=50000, clock=clock, start_sweeper=False)
    yield pending_store
    pending_store.shutdown()


@pytest.fixture
def device_store() -> InMemoryDeviceRecordStore:
    return InMemoryDeviceRecordStore()


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
def token_client(token_endpoint) -> OAuthTokenClient:
    return OAuthTokenClient(
        token_url=TOKEN_URL,
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        transport=httpx.MockTransport(token_endpoint),
    )


@pytest.fixture
def flow(validator, store, device_store, token_client, clock) -> DeviceAuthFlow:
    return DeviceAuthFlow(
        validator=validator,
        store=store,
        device_store=device_store,
        token_client=token_client,
        authorize_url=AUTHORIZE_URL,
        client_id=CLIENT_ID,
        redirect_url=REDIRECT_URL,
        clock=clock,
    )


def state_from_redirect(url: str) -> str:
    query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
    return query["state"][0]


def scope_data_from_redirect(url: str) -> dict:
    query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
    return json.loads(query["scope_data"][0])
