"""
Completion client - the only door to the external text-completion service.

Built once per process (see main.lifespan) and handed to the workflows
through a FastAPI dependency; nothing here is a module-level singleton.
"""

from typing import AsyncIterator

import httpx
from anthropic import AsyncAnthropic

from architect.config import Settings
from architect.exceptions import CompletionServiceError
from architect.logging_config import get_logger

logger = get_logger(__name__)


class CompletionClient:
    """Single-shot and streaming completion calls over one AsyncAnthropic instance."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        stream_timeout: float = 60.0,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.stream_timeout = stream_timeout
        self.http_client = httpx.AsyncClient(default_encoding="utf-8")
        self.client = AsyncAnthropic(
            api_key=api_key,
            http_client=self.http_client,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.claude_model,
            max_tokens=settings.completion_max_tokens,
            timeout=settings.completion_timeout_seconds,
            stream_timeout=settings.stream_timeout_seconds,
        )

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        One request, one text reply.

        Raises:
            CompletionServiceError: On any SDK or transport failure
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except Exception as e:
            logger.error("completion_request_failed", error=str(e), error_type=type(e).__name__)
            raise CompletionServiceError(f"Completion request failed: {e}", e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug(
            "completion_received",
            chars=len(text),
            stop_reason=response.stop_reason,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return text

    async def stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[str]:
        """
        Yield text fragments as the service produces them.

        Finite and not restartable. Raises CompletionServiceError mid-iteration
        if the upstream call fails.
        """
        try:
            async with self.client.with_options(timeout=self.stream_timeout).messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except CompletionServiceError:
            raise
        except Exception as e:
            logger.error("completion_stream_failed", error=str(e), error_type=type(e).__name__)
            raise CompletionServiceError(f"Completion stream failed: {e}", e) from e

    async def aclose(self) -> None:
        await self.client.close()
        await self.http_client.aclose()
