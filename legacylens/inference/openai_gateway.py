"""
OpenAI-compatible chat completions gateway (Azure OpenAI and compatible servers).
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from legacylens.core.config import InferenceSettings, settings
from legacylens.core.exceptions import RateLimitError, UpstreamError
from legacylens.core.logging import get_logger
from legacylens.inference.gateway import InferenceGateway

logger = get_logger(__name__)

SERVICE_NAME = "Inference service"


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "Retrying rate-limited inference call",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class OpenAIChatGateway(InferenceGateway):
    """
    Chat completions over HTTP.

    Rate-limited calls (HTTP 429, or an error body mentioning a rate limit)
    are retried up to ``max_retries`` times, waiting ``base_delay * attempt``
    seconds before each retry. Other failures raise immediately.
    """

    def __init__(
        self,
        config: Optional[InferenceSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            config: Inference settings (defaults to application settings)
            transport: Optional httpx transport, used by tests
        """
        self.config = config or settings.inference
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.endpoint.rstrip("/"),
                timeout=httpx.Timeout(self.config.timeout),
                headers={
                    "Content-Type": "application/json",
                    "api-key": self.config.api_key,
                    "Authorization": f"Bearer {self.config.api_key}",
                },
                params={"api-version": self.config.api_version},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimitError),
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=wait_incrementing(
                start=self.config.retry_base_delay,
                increment=self.config.retry_base_delay,
            ),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(self._chat, system_prompt, user_prompt)

    async def _chat(self, system_prompt: str, user_prompt: str) -> str:
        """Make one chat completions request."""
        client = await self._get_client()
        body: dict[str, Any] = {
            "model": self.config.deployment,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }

        try:
            response = await client.post(
                self.config.chat_path.format(deployment=self.config.deployment),
                json=body,
            )
        except httpx.RequestError as e:
            logger.error("Inference request error", error=str(e))
            raise UpstreamError(SERVICE_NAME, f"Request failed: {e}") from e

        if response.status_code == 429 or (
            response.is_error and "rate limit" in response.text.lower()
        ):
            retry_after = response.headers.get("retry-after")
            logger.warning("Inference rate limited", retry_after=retry_after)
            raise RateLimitError(
                SERVICE_NAME,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.is_error:
            logger.error(
                "Inference request failed",
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise UpstreamError(
                SERVICE_NAME,
                f"HTTP {response.status_code}: {response.text[:200]}",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(SERVICE_NAME, "Response body is not JSON") from e

        if not isinstance(data, dict):
            raise UpstreamError(
                SERVICE_NAME, f"Response body is a JSON {type(data).__name__}, expected an object"
            )

        choices = data.get("choices") or []
        if not choices:
            raise UpstreamError(SERVICE_NAME, "No response from inference service")
        if not isinstance(choices[0], dict):
            raise UpstreamError(SERVICE_NAME, "Malformed choice in response")

        message = choices[0].get("message")
        if not isinstance(message, dict):
            return ""
        return message.get("content") or ""
