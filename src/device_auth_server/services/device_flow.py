"""
Device registration flow.

Sequences device validation, code generation, the pending registration store
and the identity provider token calls for the four device flow operations:

1. issue a registration code and device secret to a device
2. send the user's browser to the identity provider with an anti-CSRF state
3. exchange the returned authorization code and promote the registration
4. answer device polls with backoff status, then with refreshed access tokens

No store lock is held across an identity provider call.
"""

import json
import logging
import time
import urllib.parse
from dataclasses import dataclass
from typing import Callable

from ..core.codes import code_length, generate_code, secrets_match
from ..core.config import DeviceAuthSettings
from ..core.device_store import DeviceRecordStore, InMemoryDeviceRecordStore
from ..core.errors import (
    BadRequestError,
    DeviceAuthError,
    ExpiredDeviceSecretError,
    ExpiredRegistrationCodeError,
    InvalidDeviceSecretError,
    InvalidProductInformationError,
    InvalidRegistrationCodeError,
    InvalidStateError,
    TokenRetrievalError,
)
from ..core.store import PendingRegistrationStore
from ..core.validator import DeviceValidator
from ..models.api import AccessTokenResponse, PollStatusResponse
from ..models.registration import DeviceRecord, DeviceTokens, PendingRegistration, device_key
from ..utils.otel_metrics import metrics
from ..utils.security_mask import mask_sensitive_id
from .token_client import OAuthTokenClient

logger = logging.getLogger(__name__)

POLL_STATUS_WAITING = "waiting"
POLL_STATUS_SLOWDOWN = "slowdown"


@dataclass
class IssuedRegistration:
    reg_code: str
    device_secret: str
    expires_at: float  # epoch seconds

    @property
    def expires_ms(self) -> int:
        return int(self.expires_at * 1000)


class DeviceAuthFlow:
    """Device registration and token service."""

    def __init__(
        self,
        validator: DeviceValidator,
        store: PendingRegistrationStore,
        device_store: DeviceRecordStore,
        token_client: OAuthTokenClient,
        authorize_url: str,
        client_id: str,
        redirect_url: str,
        oauth_scope: str = "alexa:all",
        regcode_num_bytes: int = 12,
        state_num_bytes: int = 32,
        min_poll_interval_ms: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.validator = validator
        self.store = store
        self.device_store = device_store
        self.token_client = token_client
        self.authorize_url = authorize_url
        self.client_id = client_id
        self.redirect_url = redirect_url
        self.oauth_scope = oauth_scope
        self.regcode_num_bytes = regcode_num_bytes
        self.state_num_bytes = state_num_bytes
        self.min_poll_interval_ms = min_poll_interval_ms
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: DeviceAuthSettings,
        token_client: OAuthTokenClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "DeviceAuthFlow":
        validator = DeviceValidator(
            settings.products,
            product_min_length=settings.product_min_length,
            product_max_length=settings.product_max_length,
            dsn_min_length=settings.dsn_min_length,
        )
        store = PendingRegistrationStore(
            ttl_seconds=settings.registration_ttl_seconds,
            max_pending=settings.max_pending_registrations,
            sweep_interval_seconds=settings.expiry_check_interval_seconds,
            clock=clock,
        )
        if token_client is None:
            token_client = OAuthTokenClient(
                token_url=settings.token_url,
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                verify=settings.validate_cert_chain,
                timeout=settings.token_request_timeout_seconds,
            )
        return cls(
            validator=validator,
            store=store,
            device_store=InMemoryDeviceRecordStore(),
            token_client=token_client,
            authorize_url=settings.authorize_url,
            client_id=settings.client_id,
            redirect_url=settings.redirect_url,
            oauth_scope=settings.oauth_scope,
            regcode_num_bytes=settings.regcode_num_bytes,
            state_num_bytes=settings.state_num_bytes,
            min_poll_interval_ms=settings.min_poll_interval_ms,
            clock=clock,
        )

    def issue_registration_code(self, product: str, dsn: str) -> IssuedRegistration:
        """
        Start a registration for a whitelisted device.

        Raises:
            BadRequestError: Unknown product or serial number
            TooManyPendingError: Pending registrations at capacity
            AlreadyPendingError: The device already has a pending registration
            InternalError: The random source failed
        """
        if not self.validator.is_valid_device(product, dsn):
            logger.info("Invalid product and dsn combination")
            metrics.record_registration("bad_request")
            raise BadRequestError()

        reg_code = generate_code(self.regcode_num_bytes)
        device_secret = generate_code(self.regcode_num_bytes)

        try:
            registration = self.store.create(reg_code, product, dsn, device_secret)
        except DeviceAuthError as e:
            metrics.record_registration(e.error)
            raise

        logger.info(f"Issued registration code {mask_sensitive_id(reg_code)} for {device_key(product, dsn)}")
        metrics.record_registration("issued")
        return IssuedRegistration(reg_code=reg_code, device_secret=device_secret, expires_at=registration.expires_at)

    def begin_browser_authentication(self, reg_code: str) -> str:
        """
        Bind a fresh state token to the registration and build the identity
        provider authorization URL to redirect the user's browser to.

        Raises:
            InvalidRegistrationCodeError: Wrong shape or unknown code
            ExpiredRegistrationCodeError: The registration expired (it is removed)
        """
        registration = None
        if len(reg_code) == code_length(self.regcode_num_bytes):
            registration = self.store.lookup_by_code(reg_code)
        if registration is None:
            logger.info("regCode not found")
            raise InvalidRegistrationCodeError()

        if registration.is_expired(self._clock()):
            logger.info("regCode was expired")
            self.store.remove(reg_code)
            raise ExpiredRegistrationCodeError()

        state = generate_code(self.state_num_bytes)
        if not self.store.bind_state(state, reg_code):
            # Swept or promoted since the lookup
            raise ExpiredRegistrationCodeError()

        return self._build_authorize_url(registration, state)

    def _build_authorize_url(self, registration: PendingRegistration, state: str) -> str:
        scope_data = {
            self.oauth_scope: {
                "productID": registration.product,
                "productInstanceAttributes": {"deviceSerialNumber": registration.dsn},
            }
        }
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_url,
            "scope": self.oauth_scope,
            "state": state,
            "scope_data": json.dumps(scope_data, separators=(",", ":")),
        }
        return f"{self.authorize_url}?{urllib.parse.urlencode(params)}"

    async def complete_browser_authentication(
        self, authorization_code: str | None, state: str | None
    ) -> DeviceRecord:
        """
        Exchange the authorization code and promote the registration into a
        device record. The state token is consumed whatever the outcome.

        Raises:
            InvalidStateError: Unknown, replayed or missing state, or missing code
            ExpiredRegistrationCodeError: The registration expired (it is removed)
            TokenRetrievalError: The identity provider call failed
        """
        reg_code = self.store.pop_state(state) if state else None
        if reg_code is None:
            logger.info(f"State not found: {mask_sensitive_id(state)}")
            raise InvalidStateError()
        if not authorization_code:
            logger.info("Authorization response carried no code")
            raise InvalidStateError()

        registration = self.store.lookup_by_code(reg_code)
        if registration is None or registration.is_expired(self._clock()):
            self.store.remove(reg_code)
            logger.warning("Registration code expired when token retrieved")
            raise ExpiredRegistrationCodeError()

        tokens = await self.token_client.exchange_authorization_code(authorization_code, self.redirect_url)

        now = self._clock()
        record = DeviceRecord(
            product=registration.product,
            dsn=registration.dsn,
            device_secret=registration.device_secret,
            tokens=DeviceTokens(
                access=tokens.access_token,
                refresh=tokens.refresh_token,
                expires_in=tokens.expires_in,
            ),
            registered_at=now,
        )

        if self.store.promote(reg_code, now, lambda _: self.device_store.put(record)) is None:
            logger.warning(f"Registration for {record.key} expired while tokens were retrieved")
            raise ExpiredRegistrationCodeError()

        logger.info(f"Device tokens ready for {record.key}")
        return record

    async def poll_or_refresh_access_token(
        self, product: str, dsn: str, device_secret: str
    ) -> PollStatusResponse | AccessTokenResponse:
        """
        Answer a device poll.

        While the registration is pending the device gets `waiting`, or
        `slowdown` when it polls faster than the minimum interval. Once the
        registration is promoted, a new access token is fetched with the stored
        refresh token.

        Raises:
            BadRequestError: Unknown product or serial number
            ExpiredDeviceSecretError: The pending registration expired (it is removed)
            InvalidProductInformationError: The registration belongs to another device
            InvalidDeviceSecretError: Secret mismatch, or no registered device
            TokenRetrievalError: The refresh call failed
        """
        if not self.validator.is_valid_device(product, dsn):
            logger.info("Invalid product and dsn combination")
            raise BadRequestError()

        pending = self.store.lookup_by_device(product, dsn)
        if pending is not None:
            status = self._poll_pending(pending[0], pending[1], product, dsn, device_secret)
            if status is not None:
                metrics.record_poll(status)
                return PollStatusResponse(poll_status=status)

        return await self._refresh_access_token(product, dsn, device_secret)

    def _poll_pending(
        self,
        reg_code: str,
        registration: PendingRegistration,
        product: str,
        dsn: str,
        device_secret: str,
    ) -> str | None:
        now = self._clock()
        if registration.is_expired(now):
            self.store.remove(reg_code)
            raise ExpiredDeviceSecretError()

        if registration.product != product or registration.dsn != dsn:
            raise InvalidProductInformationError()

        if not secrets_match(registration.device_secret, device_secret):
            raise InvalidDeviceSecretError()

        try:
            previous = self.store.record_poll(reg_code, now)
        except KeyError:
            # Promoted since the lookup
            return None

        if previous is None:
            return POLL_STATUS_WAITING

        interval_ms = (now - previous) * 1000
        if interval_ms < self.min_poll_interval_ms:
            return POLL_STATUS_SLOWDOWN
        return POLL_STATUS_WAITING

    async def _refresh_access_token(self, product: str, dsn: str, device_secret: str) -> AccessTokenResponse:
        key = device_key(product, dsn)
        record = self.device_store.get(key)

        if (
            record is None
            or len(device_secret) != code_length(self.regcode_num_bytes)
            or not secrets_match(record.device_secret, device_secret)
        ):
            raise InvalidDeviceSecretError()

        if self.device_store.is_revoked(key):
            logger.warning(f"Refresh refused for revoked device {key}")
            raise InvalidDeviceSecretError()

        if not record.tokens.refresh:
            logger.error(f"No refresh token stored for {key}")
            raise TokenRetrievalError()

        tokens = await self.token_client.exchange_refresh_token(record.tokens.refresh)

        self.device_store.update_tokens(
            key,
            access=tokens.access_token,
            expires_in=tokens.expires_in,
            refresh=tokens.refresh_token,
            refreshed_at=self._clock(),
        )
        logger.info(f"Refreshed access token for {key}")
        return AccessTokenResponse(access=tokens.access_token, expires=tokens.expires_in)

    async def aclose(self) -> None:
        self.store.shutdown()
        await self.token_client.aclose()
