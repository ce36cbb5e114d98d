"""
Call provider factory.

Single source of truth for configuration: CallProviderConfig (Pydantic
Settings), never raw os.getenv lookups.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from callqueue.telephony.adapters.mock import MockCallProvider
from callqueue.telephony.bolna_adapter import BolnaAdapter
from callqueue.telephony.config import CallProviderConfig, ProviderType
from callqueue.telephony.config import get_call_provider_config as _load_call_provider_config
from callqueue.telephony.interface import CallProvider

logger = logging.getLogger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


@lru_cache(maxsize=1)
def get_call_provider_config() -> CallProviderConfig:
    """Return the cached CallProviderConfig loaded from OS env + .env."""
    return _load_call_provider_config()


def build_call_provider(cfg: CallProviderConfig) -> CallProvider:
    """Instantiate the provider adapter selected by ``cfg.provider_type``."""
    if cfg.provider_type == ProviderType.BOLNA:
        return BolnaAdapter(cfg)

    if cfg.provider_type == ProviderType.MOCK:
        return MockCallProvider()

    raise ValueError(f"Unsupported call provider_type: {cfg.provider_type}")


@lru_cache(maxsize=1)
def get_call_provider() -> CallProvider:
    """Create and cache the call provider."""
    cfg = get_call_provider_config()

    logger.info(
        "Call provider config resolved",
        extra={
            "provider_type": getattr(cfg.provider_type, "value", str(cfg.provider_type)),
            "api_base_url": cfg.api_base_url,
            "api_key": _mask(cfg.api_key),
            "timeout_seconds": cfg.timeout_seconds,
        },
    )

    return build_call_provider(cfg)
