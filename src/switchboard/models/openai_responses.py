from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

from ..exceptions import ModelBehaviorError, UserError
from ..handoffs import Handoff
from ..items import (
    ItemHelpers,
    ModelResponse,
    TextMessage,
    ToolCall,
    ToolResponse,
    TResponseInputItem,
)
from ..tool import ComputerTool, FileSearchTool, FunctionTool, Tool, WebSearchTool
from ._openai_shared import is_retryable_openai_error
from .interface import Model, ModelRetrySettings, OnChunk

if TYPE_CHECKING:
    from ..agent_output import AgentOutputSchema
    from ..model_settings import ModelSettings

_logger = logging.getLogger(__name__)

# Calls of these tools are carried out by the provider or outside the run loop. They are never
# sent back as function calls.
HOSTED_TOOL_NAMES = frozenset({"file_search", "web_search_preview", "computer_use_preview"})

# ModelSettings field name -> responses.create() parameter name
_SETTINGS_PARAMS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "max_tokens": "max_output_tokens",
}


class OpenAIResponsesModel(Model):
    """A model backed by the OpenAI Responses API. Unlike chat completions, it accepts the hosted
    tools (file search, web search and computer use)."""

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
        _logger.debug(f"Calling responses for {self.model} with {len(messages)} input items")

        response = await self.retry_settings.execute_with_retry(
            lambda: self._client.responses.create(**kwargs),
            should_retry=self._should_retry,
        )
        return Converter.response_to_output(response)

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

        stream = await self.retry_settings.execute_with_retry(
            lambda: self._client.responses.create(**kwargs),
            should_retry=self._should_retry,
        )

        final_response = None
        async for event in stream:
            if event.type == "response.output_text.delta":
                result = on_chunk(event.delta)
                if inspect.isawaitable(result):
                    await result
            elif event.type == "response.completed":
                final_response = event.response
            elif event.type in ("response.failed", "error"):
                raise ModelBehaviorError(f"Responses stream failed: {event}")

        if final_response is None:
            raise ModelBehaviorError("Responses stream ended without a completed response")
        return Converter.response_to_output(final_response)

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
            "input": Converter.items_to_input(messages),
        }
        for name, value in settings.to_json_dict().items():
            if name in ("tool_choice", "parallel_tool_calls"):
                continue
            param = _SETTINGS_PARAMS.get(name)
            if param is None:
                _logger.debug(f"Model setting {name} is not supported by the Responses API")
                continue
            kwargs[param] = value

        if converted_tools:
            kwargs["tools"] = converted_tools
            if settings.tool_choice is not None:
                kwargs["tool_choice"] = Converter.convert_tool_choice(settings.tool_choice)
            if settings.parallel_tool_calls is not None:
                kwargs["parallel_tool_calls"] = settings.parallel_tool_calls

        if any(isinstance(t, FileSearchTool) and t.include_search_results for t in tools):
            kwargs["include"] = ["file_search_call.results"]

        if output_schema is not None:
            kwargs["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": "final_output",
                    "schema": output_schema.json_schema(),
                    "strict": False,
                }
            }
        return kwargs


class Converter:
    @classmethod
    def items_to_input(cls, items: Sequence[TResponseInputItem]) -> list[dict[str, Any]]:
        """Convert transcript items to Responses API input items."""
        input_items: list[dict[str, Any]] = []
        for item in items:
            if isinstance(item, TextMessage):
                input_items.append({"role": item.role, "content": item.content})
            elif isinstance(item, ModelResponse):
                if item.content:
                    input_items.append({"role": "assistant", "content": item.content})
                input_items.extend(
                    cls._function_call(call)
                    for call in item.tool_calls
                    if call.name not in HOSTED_TOOL_NAMES
                )
            elif isinstance(item, ToolCall):
                if item.name not in HOSTED_TOOL_NAMES:
                    input_items.append(cls._function_call(item))
            elif isinstance(item, ToolResponse):
                input_items.append(
                    {
                        "type": "function_call_output",
                        "call_id": item.tool_call_id,
                        "output": item.output,
                    }
                )
            else:
                raise UserError(f"Unhandled item type: {type(item).__name__}")
        return input_items

    @classmethod
    def tool_to_openai(cls, tool: Tool) -> dict[str, Any]:
        if isinstance(tool, FunctionTool):
            return {
                "type": "function",
                "name": tool.name,
                "description": tool.description or "",
                "parameters": tool.params_json_schema,
                "strict": False,
            }
        elif isinstance(tool, FileSearchTool):
            declaration: dict[str, Any] = {
                "type": "file_search",
                "vector_store_ids": tool.vector_store_ids,
            }
            if tool.max_num_results is not None:
                declaration["max_num_results"] = tool.max_num_results
            if tool.ranking_options is not None:
                declaration["ranking_options"] = tool.ranking_options
            if tool.filters is not None:
                declaration["filters"] = tool.filters
            return declaration
        elif isinstance(tool, WebSearchTool):
            return {
                "type": "web_search_preview",
                "user_location": tool.user_location,
                "search_context_size": tool.search_context_size,
            }
        elif isinstance(tool, ComputerTool):
            return tool.declaration()

        raise UserError(f"Unknown tool type: {type(tool)}, tool: {tool}")

    @classmethod
    def convert_handoff_tool(cls, handoff: Handoff[Any]) -> dict[str, Any]:
        return {
            "type": "function",
            "name": handoff.tool_name,
            "description": handoff.tool_description,
            "parameters": handoff.input_json_schema
            or {"type": "object", "properties": {}, "additionalProperties": False},
            "strict": False,
        }

    @classmethod
    def convert_tool_choice(cls, tool_choice: str) -> str | dict[str, Any]:
        if tool_choice in ("auto", "required", "none"):
            return tool_choice
        elif tool_choice in HOSTED_TOOL_NAMES:
            return {"type": tool_choice}
        return {"type": "function", "name": tool_choice}

    @classmethod
    def response_to_output(cls, response: Any) -> str | ModelResponse:
        """Collect the text and the calls from a Responses API response. Computer actions come
        back as calls of the `computer_use_preview` tool, with the action as arguments; calls the
        provider already carried out (file and web search) are only logged."""
        content_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for output_item in response.output or []:
            if output_item.type == "message":
                for part in output_item.content or []:
                    if part.type == "output_text":
                        content_parts.append(part.text)
            elif output_item.type == "function_call":
                tool_calls.append(
                    ToolCall(
                        name=output_item.name,
                        arguments=output_item.arguments or "",
                        id=output_item.call_id or ItemHelpers.create_id(),
                    )
                )
            elif output_item.type == "computer_call":
                tool_calls.append(
                    ToolCall(
                        name="computer_use_preview",
                        arguments=_action_to_json(output_item.action),
                        id=output_item.call_id or ItemHelpers.create_id(),
                    )
                )
            else:
                _logger.debug(f"Ignoring {output_item.type} output item")

        content = "".join(content_parts)
        if not tool_calls:
            return content
        return ModelResponse(content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def _function_call(cls, call: ToolCall) -> dict[str, Any]:
        return {
            "type": "function_call",
            "call_id": call.id,
            "name": call.name,
            "arguments": call.arguments,
        }


def _action_to_json(action: Any) -> str:
    if hasattr(action, "model_dump"):
        action = action.model_dump(exclude_none=True)
    return json.dumps(action)
