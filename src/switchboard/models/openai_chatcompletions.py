from __future__ import annotations

import inspect
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from openai import NOT_GIVEN, AsyncOpenAI, NotGiven

from ..exceptions import UserError
from ..handoffs import Handoff
from ..items import (
    ItemHelpers,
    ModelResponse,
    TextMessage,
    ToolCall,
    ToolResponse,
    TResponseInputItem,
)
from ..tool import FunctionTool, Tool
from ._openai_shared import is_retryable_openai_error
from .interface import Model, ModelRetrySettings, OnChunk

if TYPE_CHECKING:
    from ..agent_output import AgentOutputSchema
    from ..model_settings import ModelSettings

_logger = logging.getLogger(__name__)

# ModelSettings field name -> chat.completions.create() parameter name
_SETTINGS_PARAMS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "max_tokens": "max_tokens",
    "presence_penalty": "presence_penalty",
    "frequency_penalty": "frequency_penalty",
    "stop_sequences": "stop",
    "seed": "seed",
}


class OpenAIChatCompletionsModel(Model):
    """A model backed by the OpenAI chat completions API (or any server that speaks it)."""

    def __init__(
        self,
        model: str,
        openai_client: AsyncOpenAI,
        retry_settings: ModelRetrySettings | None = None,
    ) -> None:
        self.model = model
        self._client = openai_client
        self.retry_settings = retry_settings or ModelRetrySettings()

    async def generate(
        self,
        messages: list[TResponseInputItem],
        settings: ModelSettings,
        *,
        tools: Sequence[Tool] = (),
        handoffs: Sequence[Handoff[Any]] = (),
        output_schema: AgentOutputSchema | None = None,
    ) -> str | ModelResponse:
        kwargs = self._build_request(messages, settings, tools, handoffs, output_schema)
        _logger.debug(f"Calling chat completions for {self.model} with {len(messages)} messages")

        response = await self.retry_settings.execute_with_retry(
            lambda: self._client.chat.completions.create(**kwargs),
            should_retry=self._should_retry,
        )

        message = response.choices[0].message
        tool_calls = tuple(
            ToolCall(
                name=call.function.name,
                arguments=call.function.arguments or "",
                id=call.id or ItemHelpers.create_id(),
            )
            for call in (message.tool_calls or [])
        )
        content = message.content or ""
        if not tool_calls:
            return content
        return ModelResponse(content=content, tool_calls=tool_calls)

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
        kwargs = self._build_request(messages, settings, tools, handoffs, output_schema)
        kwargs["stream"] = True

        # Only opening the stream is retried; once chunks were delivered a retry would repeat them.
        stream = await self.retry_settings.execute_with_retry(
            lambda: self._client.chat.completions.create(**kwargs),
            should_retry=self._should_retry,
        )

        content_parts: list[str] = []
        # Tool call deltas arrive in pieces, keyed by their index in the response.
        partial_calls: dict[int, dict[str, str]] = {}

        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta

            if delta.content:
                content_parts.append(delta.content)
                result = on_chunk(delta.content)
                if inspect.isawaitable(result):
                    await result

            for call_delta in delta.tool_calls or []:
                call = partial_calls.setdefault(
                    call_delta.index, {"id": "", "name": "", "arguments": ""}
                )
                if call_delta.id:
                    call["id"] = call_delta.id
                if call_delta.function is not None:
                    if call_delta.function.name:
                        call["name"] += call_delta.function.name
                    if call_delta.function.arguments:
                        call["arguments"] += call_delta.function.arguments

        content = "".join(content_parts)
        if not partial_calls:
            return content

        tool_calls = tuple(
            ToolCall(
                name=partial_calls[index]["name"],
                arguments=partial_calls[index]["arguments"],
                id=partial_calls[index]["id"] or ItemHelpers.create_id(),
            )
            for index in sorted(partial_calls)
        )
        return ModelResponse(content=content, tool_calls=tool_calls)

    def _should_retry(self, error: Exception) -> bool:
        return is_retryable_openai_error(error, self.retry_settings)

    def _build_request(
        self,
        messages: list[TResponseInputItem],
        settings: ModelSettings,
        tools: Sequence[Tool],
        handoffs: Sequence[Handoff[Any]],
        output_schema: AgentOutputSchema | None,
    ) -> dict[str, Any]:
        converted_tools = [Converter.tool_to_openai(tool) for tool in tools]
        converted_tools.extend(Converter.convert_handoff_tool(handoff) for handoff in handoffs)

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": Converter.items_to_messages(messages),
        }
        for name, value in settings.to_json_dict().items():
            param = _SETTINGS_PARAMS.get(name)
            if param is not None:
                kwargs[param] = value

        if converted_tools:
            kwargs["tools"] = converted_tools
            if settings.tool_choice is not None:
                kwargs["tool_choice"] = Converter.convert_tool_choice(settings.tool_choice)
            if settings.parallel_tool_calls is not None:
                kwargs["parallel_tool_calls"] = settings.parallel_tool_calls

        response_format = Converter.convert_response_format(output_schema)
        if response_format is not NOT_GIVEN:
            kwargs["response_format"] = response_format
        return kwargs


class Converter:
    @classmethod
    def items_to_messages(cls, items: Sequence[TResponseInputItem]) -> list[dict[str, Any]]:
        """Convert transcript items to chat completions messages."""
        messages: list[dict[str, Any]] = []
        for item in items:
            if isinstance(item, TextMessage):
                messages.append({"role": item.role, "content": item.content})
            elif isinstance(item, ModelResponse):
                message: dict[str, Any] = {"role": "assistant", "content": item.content or None}
                if item.tool_calls:
                    message["tool_calls"] = [cls._tool_call_param(c) for c in item.tool_calls]
                messages.append(message)
            elif isinstance(item, ToolCall):
                messages.append(
                    {
                        "role": "assistant",
                        "content": None,
                        "tool_calls": [cls._tool_call_param(item)],
                    }
                )
            elif isinstance(item, ToolResponse):
                messages.append(
                    {"role": "tool", "tool_call_id": item.tool_call_id, "content": item.output}
                )
            else:
                raise UserError(f"Unhandled item type: {type(item).__name__}")
        return messages

    @classmethod
    def tool_to_openai(cls, tool: Tool) -> dict[str, Any]:
        if isinstance(tool, FunctionTool):
            return {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.params_json_schema,
                },
            }

        raise UserError(
            "Hosted tools are not supported with the ChatCompletions API, use "
            f"OpenAIResponsesModel instead. Got tool type: {type(tool)}, tool: {tool}"
        )

    @classmethod
    def convert_handoff_tool(cls, handoff: Handoff[Any]) -> dict[str, Any]:
        parameters = handoff.input_json_schema or {
            "type": "object",
            "properties": {},
            "additionalProperties": False,
        }
        return {
            "type": "function",
            "function": {
                "name": handoff.tool_name,
                "description": handoff.tool_description,
                "parameters": parameters,
            },
        }

    @classmethod
    def convert_tool_choice(cls, tool_choice: str) -> str | dict[str, Any]:
        if tool_choice in ("auto", "required", "none"):
            return tool_choice
        return {"type": "function", "function": {"name": tool_choice}}

    @classmethod
    def convert_response_format(
        cls, final_output_schema: AgentOutputSchema | None
    ) -> dict[str, Any] | NotGiven:
        if final_output_schema is None:
            return NOT_GIVEN

        return {
            "type": "json_schema",
            "json_schema": {
                "name": "final_output",
                "strict": False,
                "schema": final_output_schema.json_schema(),
            },
        }

    @classmethod
    def _tool_call_param(cls, call: ToolCall) -> dict[str, Any]:
        return {
            "id": call.id,
            "type": "function",
            "function": {"name": call.name, "arguments": call.arguments},
        }
