"""
Call provider configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported call provider types."""

    BOLNA = "bolna"
    MOCK = "mock"


class CallProviderConfig(BaseSettings):
    """Call provider configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="CALL_PROVIDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider selection
    provider_type: ProviderType = Field(default=ProviderType.BOLNA)

    # Provider API
    api_base_url: str = Field(default="https://api.bolna.dev/v2")
    api_key: str = Field(default="")

    # One attempt per invocation; the timeout bounds how long it may block the batch
    timeout_seconds: float = Field(default=30.0, ge=1, le=300)

    def get_make_call_url(self, external_agent_id: str) -> str:
        base = self.api_base_url.rstrip("/")
        return f"{base}/agent/{external_agent_id}/make_call"


def get_call_provider_config() -> CallProviderConfig:
    return CallProviderConfig()
