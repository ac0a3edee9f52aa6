"""Identity provider token endpoint client."""

import logging

import httpx
from pydantic import ValidationError

from ..core.errors import TokenRetrievalError
from ..models.tokens import TokenResponse
from ..utils.otel_metrics import metrics
from ..utils.security_mask import mask_token

logger = logging.getLogger(__name__)


class OAuthTokenClient:
    """
    Performs the authorization-code and refresh-token grants.

    Each call is a single form-encoded POST to the token endpoint. Failures are
    not retried here; they surface as TokenRetrievalError.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        verify: bool = True,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self._client = httpx.AsyncClient(verify=verify, timeout=timeout, transport=transport)

        if not verify:
            logger.warning("Certificate chain validation is disabled for the token endpoint")

    async def exchange_authorization_code(self, code: str, redirect_uri: str) -> TokenResponse:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            TokenRetrievalError: On transport failure, non-200 status or malformed body
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        return await self._request_token("authorization_code", data)

    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        """
        Obtain a new access token from a refresh token.

        Raises:
            TokenRetrievalError: On transport failure, non-200 status or malformed body
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        return await self._request_token("refresh_token", data)

    async def _request_token(self, grant_type: str, data: dict[str, str]) -> TokenResponse:
        headers = {"Accept": "application/json"}
        try:
            response = await self._client.post(self.token_url, data=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failure posting {grant_type} request to token endpoint: {e}")
            metrics.record_token_exchange(grant_type, "transport_error")
            raise TokenRetrievalError() from e

        if response.status_code != 200:
            logger.error(
                f"Failure retrieving tokens, status code: {response.status_code} data: {response.text[:200]}"
            )
            metrics.record_token_exchange(grant_type, "http_error")
            raise TokenRetrievalError(status_code=response.status_code)

        try:
            token = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed token response for {grant_type} grant: {e}")
            metrics.record_token_exchange(grant_type, "malformed_response")
            raise TokenRetrievalError() from e

        logger.info(f"Token endpoint returned {grant_type} tokens, access: {mask_token(token.access_token)}")
        metrics.record_token_exchange(grant_type, "success")
        return token

    async def aclose(self) -> None:
        await self._client.aclose()
