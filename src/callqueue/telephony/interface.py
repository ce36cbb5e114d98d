"""
Call provider interface definition.

The dispatcher only needs one operation from the voice-calling provider:
place an outbound call for a given agent and return the provider's
execution identifier.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class CallUserData:
    """Correlation data echoed back by the provider in its webhooks."""

    lead_id: UUID
    lead_name: str
    call_id: UUID
    queue_item_id: UUID

    def to_payload(self) -> dict[str, str]:
        return {
            "lead_id": str(self.lead_id),
            "lead_name": self.lead_name,
            "call_id": str(self.call_id),
            "queue_item_id": str(self.queue_item_id),
        }


@dataclass(frozen=True)
class MakeCallRequest:
    """Request to place an outbound call."""

    external_agent_id: str
    recipient_phone_number: str
    user_data: CallUserData


@dataclass(frozen=True)
class MakeCallResponse:
    """Provider acknowledgement of a placed call.

    ``execution_id`` is None when a 2xx reply carried neither
    ``execution_id`` nor ``id``; the call is still placed.
    """

    execution_id: str | None
    raw_response: dict[str, Any] = field(default_factory=dict)


class CallProviderError(Exception):
    """Base exception for call provider errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.provider_response = provider_response or {}


class CallInitiationError(CallProviderError):
    """The provider did not accept the call."""


def extract_execution_id(data: dict[str, Any]) -> str | None:
    """Read the execution handle from a provider response.

    ``execution_id`` wins over ``id`` when both are present.
    """
    for key in ("execution_id", "id"):
        value = data.get(key)
        if value:
            return str(value)
    return None


class CallProvider(ABC):
    """Abstract interface for voice-calling providers."""

    @abstractmethod
    async def make_call(self, request: MakeCallRequest) -> MakeCallResponse:
        """Place an outbound call.

        Raises:
            CallProviderError: If the provider rejects the call or is unreachable.
        """
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
