"""Backend API configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr

from decision_surface.shared.constants import NetworkConfig


class APISettings(BaseModel):
    """Backend connection settings.

    The access token is optional; token management lives outside the core,
    this is only a static fallback for local runs.
    """

    base_url: str = Field(
        default=NetworkConfig.DEFAULT_BASE_URL,
        description="Backend base URL",
    )
    timeout: float = Field(
        default=NetworkConfig.REQUEST_TIMEOUT,
        gt=0,
        description="Total request timeout in seconds",
    )
    connect_timeout: float = Field(
        default=NetworkConfig.CONNECT_TIMEOUT,
        gt=0,
        description="Connection timeout in seconds",
    )
    timezone: str = Field(default="UTC", description="IANA timezone sent to the backend")
    access_token: SecretStr | None = Field(
        default=None,
        description="Static bearer token",
    )
