"""
Call provider integration.
"""

from callqueue.telephony.interface import (
    CallInitiationError,
    CallProvider,
    CallProviderError,
    CallUserData,
    MakeCallRequest,
    MakeCallResponse,
)

__all__ = [
    "CallInitiationError",
    "CallProvider",
    "CallProviderError",
    "CallUserData",
    "MakeCallRequest",
    "MakeCallResponse",
]
