from typing import Optional
import time

import httpx
import structlog

from taskpilot.domain.errors import TransportError
from taskpilot.infrastructure.observability.logging import task_logger

logger = structlog.get_logger(__name__)


class ChatBackendClient:
    """Client for the text-in/text-out chat backend"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: Optional[float] = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Backend root; requests go to ``<base_url>/api/chat``
            timeout: Request timeout in seconds, None to wait indefinitely
            transport: Optional httpx transport (used for testing)
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def complete(self, prompt: str) -> str:
        """Send a prompt and return the backend's reply text.

        Raises:
            TransportError: On network failures or non-success responses
        """

        started = time.perf_counter()
        try:
            response = await self.client.post("/api/chat", json={"message": prompt})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            task_logger.log_model_call(len(prompt), success=False, error=f"status {status}")
            raise TransportError(f"HTTP error! status: {status}", status_code=status) from e
        except httpx.HTTPError as e:
            task_logger.log_model_call(len(prompt), success=False, error=str(e))
            raise TransportError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            task_logger.log_model_call(len(prompt), success=False, error="invalid JSON")
            raise TransportError(f"Invalid response from chat backend: {e}") from e

        reply = ""
        if isinstance(data, dict):
            reply = str(data.get("response") or "")

        task_logger.log_model_call(
            len(prompt),
            duration_ms=(time.perf_counter() - started) * 1000,
            reply_chars=len(reply),
        )
        return reply

    async def close(self):
        await self.client.aclose()
