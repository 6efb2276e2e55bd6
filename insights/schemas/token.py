"""Response body of the Cal.com OAuth token endpoint."""

from pydantic import BaseModel, Field, NonNegativeFloat, NonNegativeInt


class TokenResponse(BaseModel):
    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_in: NonNegativeInt | NonNegativeFloat | None = None
    token_type: str | None = None
