from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from uuid import uuid4

from callqueue.telephony.interface import CallProvider, MakeCallRequest, MakeCallResponse

# Only the most recent requests are kept for inspection.
MAX_RECORDED_REQUESTS = 100


@dataclass
class MockCallProvider(CallProvider):
    """
    Mock provider for local runs and demos.
    Never leaves the process; answers every call with a fresh execution id.
    """

    requests: deque[MakeCallRequest] = field(
        default_factory=lambda: deque(maxlen=MAX_RECORDED_REQUESTS)
    )

    async def make_call(self, request: MakeCallRequest) -> MakeCallResponse:
        self.requests.append(request)
        execution_id = f"mock-exec-{uuid4().hex[:12]}"
        return MakeCallResponse(
            execution_id=execution_id,
            raw_response={
                "mock": True,
                "execution_id": execution_id,
                "recipient_phone_number": request.recipient_phone_number,
                "user_data": request.user_data.to_payload(),
            },
        )
