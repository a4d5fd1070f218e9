"""Abstract base for text-completion models."""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from bedrock_llm.logging.audit import (
    InvocationTimer,
    generate_request_id,
    log_call_completed,
    log_call_failed,
    request_id_var,
)

# Receives each streamed text fragment; may be sync or async.
TokenCallback = Callable[[str], Awaitable[None] | None]


async def notify_token(callback: TokenCallback | None, token: str) -> None:
    """Deliver one fragment, waiting for async observers to finish."""
    if callback is None:
        return
    result = callback(token)
    if inspect.isawaitable(result):
        await result


class LLM(ABC):
    """Base class for prompt-in, text-out model implementations."""

    @property
    @abstractmethod
    def llm_type(self) -> str:
        """Short identifier for the model backend, used in logs."""
        ...

    @property
    def identifying_params(self) -> dict[str, Any]:
        return {}

    @abstractmethod
    async def _call(self, prompt: str, on_token: TokenCallback | None = None) -> str:
        """Run the model on ``prompt`` and return the generated text.

        Args:
            prompt: Raw prompt text.
            on_token: Optional observer for streamed fragments.

        Returns:
            The full generated text.
        """
        ...

    async def call(self, prompt: str, on_token: TokenCallback | None = None) -> str:
        """Run the model with request-id tagging and an audit log line."""
        if not isinstance(prompt, str):
            raise TypeError(f"prompt must be a str, got {type(prompt).__name__}")

        token = request_id_var.set(generate_request_id())
        try:
            with InvocationTimer() as timer:
                try:
                    text = await self._call(prompt, on_token)
                except Exception as e:
                    log_call_failed(self.llm_type, self.identifying_params, e)
                    raise

            log_call_completed(
                self.llm_type,
                self.identifying_params,
                prompt_length=len(prompt),
                response_length=len(text),
                latency_ms=timer.elapsed_ms,
            )
            return text
        finally:
            request_id_var.reset(token)

    async def close(self) -> None:
        """Cleanup resources. Override if the model holds connections."""
        pass
