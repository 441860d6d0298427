"""Authentication and secret encryption configuration models."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """Bearer token verification settings."""

    jwt_secret: str = Field(
        default="change-me",
        description="Key used to verify bearer tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    audience: str | None = Field(default=None, description="Expected aud claim")
    issuer: str | None = Field(default=None, description="Expected iss claim")
    default_tier: str = Field(default="free", description="Tier when the token has none")


class SecretsConfig(BaseModel):
    """Encryption of per-caller secrets at rest."""

    encryption_key: str | None = Field(
        default=None,
        description="Key material for AES-GCM; falls back to auth.jwt_secret",
    )
