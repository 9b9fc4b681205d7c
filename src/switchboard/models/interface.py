from __future__ import annotations

import abc
import asyncio
import inspect
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from ..items import ModelResponse, TResponseInputItem
from ..logger import logger
from ..util._types import MaybeAwaitable

if TYPE_CHECKING:
    from ..agent_output import AgentOutputSchema
    from ..handoffs import Handoff
    from ..model_settings import ModelSettings
    from ..tool import Tool


OnChunk = Callable[[str], MaybeAwaitable[None]]
"""Receives each piece of incremental text while a response streams in."""


@dataclass
class ModelRetrySettings:
    """Settings for retrying model calls on failure.

    This class helps manage backoff and retry logic when API calls fail.
    """

    max_retries: int = 3
    """Maximum number of retries to attempt."""

    initial_backoff_seconds: float = 1.0
    """Initial backoff time in seconds before the first retry."""

    max_backoff_seconds: float = 30.0
    """Maximum backoff time in seconds between retries."""

    backoff_multiplier: float = 2.0
    """Multiplier for backoff time after each retry."""

    retryable_status_codes: list[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])
    """HTTP status codes that should trigger a retry."""

    async def execute_with_retry(
        self,
        operation: Callable[[], Any],
        should_retry: Callable[[Exception], bool] | None = None,
    ) -> Any:
        """Execute an operation with retry logic.

        Args:
            operation: Async function to execute
            should_retry: Optional function to determine if an exception should trigger a retry

        Returns:
            The result of the operation if successful

        Raises:
            The last exception encountered if all retries fail
        """
        backoff = self.initial_backoff_seconds
        attempt = 0

        while True:
            try:
                return await operation()
            except Exception as e:
                if attempt >= self.max_retries:
                    raise
                if should_retry is not None and not should_retry(e):
                    raise

                attempt += 1
                logger.debug(
                    f"Model call failed ({e}); retry {attempt}/{self.max_retries} in {backoff}s"
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * self.backoff_multiplier, self.max_backoff_seconds)


class Model(abc.ABC):
    """The base interface for calling an LLM.

    Implementations translate the transcript into a vendor's wire format and back. A response that
    contains no tool calls may be returned as a plain string.
    """

    @abc.abstractmethod
    async def generate(
        self,
        messages: list[TResponseInputItem],
        settings: ModelSettings,
        *,
        tools: Sequence[Tool] = (),
        handoffs: Sequence[Handoff[Any]] = (),
        output_schema: AgentOutputSchema | None = None,
    ) -> str | ModelResponse:
        """Get a response from the model.

        Args:
            messages: The full transcript to send, starting with the system prompt (if any).
            settings: The model settings to use.
            tools: The tools available to the model. Their schemas are opaque to the runner.
            handoffs: The handoffs available to the model, to be exposed as tools.
            output_schema: The structured-output contract, if the agent has one.

        Returns:
            The response text, or a `ModelResponse` carrying text and tool calls.
        """
        pass

    async def generate_streaming(
        self,
        messages: list[TResponseInputItem],
        settings: ModelSettings,
        on_chunk: OnChunk,
        *,
        tools: Sequence[Tool] = (),
        handoffs: Sequence[Handoff[Any]] = (),
        output_schema: AgentOutputSchema | None = None,
    ) -> str | ModelResponse:
        """Stream a response from the model. `on_chunk` is called (and awaited, if it returns an
        awaitable) zero or more times with incremental text before the full response is returned.

        The default implementation does not stream: it calls `generate` and reports the whole
        text as a single chunk.
        """
        response = await self.generate(
            messages, settings, tools=tools, handoffs=handoffs, output_schema=output_schema
        )
        text = response if isinstance(response, str) else response.content
        if text:
            result = on_chunk(text)
            if inspect.isawaitable(result):
                await result
        return response


class ModelProvider(abc.ABC):
    """The base interface for a model provider.

    Model provider is responsible for looking up Models by name.
    """

    @abc.abstractmethod
    def get_model(self, model_name: str | None) -> Model:
        """Get a model by name.

        Args:
            model_name: The name of the model to get. None means the provider's default model.

        Returns:
            The model.
        """
