"""
Bolna voice-agent call provider adapter.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from callqueue.telephony.config import CallProviderConfig, get_call_provider_config
from callqueue.telephony.interface import (
    CallInitiationError,
    CallProvider,
    MakeCallRequest,
    MakeCallResponse,
    extract_execution_id,
)

logger = logging.getLogger(__name__)


class BolnaAdapter(CallProvider):
    """Bolna call provider adapter.

    Single attempt per call, no retry; the configured timeout bounds each
    request so one slow provider response cannot stall a whole batch.
    """

    def __init__(
        self,
        config: CallProviderConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_call_provider_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
            )
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }

    async def make_call(self, request: MakeCallRequest) -> MakeCallResponse:
        """Place an outbound call via ``POST /agent/{id}/make_call``."""
        client = self._get_client()
        url = self._config.get_make_call_url(request.external_agent_id)
        payload = {
            "recipient_phone_number": request.recipient_phone_number,
            "user_data": request.user_data.to_payload(),
        }

        logger.info(
            "Initiating provider call",
            extra={
                "external_agent_id": request.external_agent_id,
                "call_id": str(request.user_data.call_id),
                "queue_item_id": str(request.user_data.queue_item_id),
            },
        )

        try:
            response = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(
                "HTTP error during provider call initiation",
                extra={"call_id": str(request.user_data.call_id), "error": str(e)},
            )
            raise CallInitiationError(
                message=f"Provider request failed: {e!s}",
                error_code="HTTP_ERROR",
            ) from e

        if not response.is_success:
            error_text = response.text
            logger.error(
                "Provider call initiation failed",
                extra={
                    "status_code": response.status_code,
                    "error": error_text,
                    "call_id": str(request.user_data.call_id),
                },
            )
            raise CallInitiationError(
                message=f"Provider API error: {response.status_code} - {error_text}",
                error_code=str(response.status_code),
                status_code=response.status_code,
                provider_response={"body": error_text},
            )

        try:
            data: Any = response.json()
        except ValueError as e:
            raise CallInitiationError(
                message=f"Provider returned a non-JSON body: {response.text}",
                error_code="INVALID_RESPONSE",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            data = {}

        execution_id = extract_execution_id(data)
        if execution_id is None:
            logger.warning(
                "Provider accepted the call without an execution id",
                extra={"call_id": str(request.user_data.call_id), "response": data},
            )

        return MakeCallResponse(execution_id=execution_id, raw_response=data)
