"""
Pydantic models for identity provider token responses.
"""

from pydantic import BaseModel, ConfigDict


class TokenResponse(BaseModel):
    """Token endpoint response (authorization_code or refresh_token grant)"""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    token_type: str | None = None
