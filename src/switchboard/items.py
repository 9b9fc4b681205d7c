from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from typing_extensions import TypeAlias


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TextMessage:
    """A plain message in the conversation, e.g. the user's input or a system prompt."""

    role: str
    """The author of the message: "system", "user", "assistant" or "developer"."""

    content: str
    """The text of the message."""

    id: str = field(default_factory=_new_id)
    """Unique identifier of the item. Unrelated to its position in the conversation."""

    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolCall:
    """A request from the model to invoke a tool (or a handoff, which is exposed as a tool)."""

    name: str
    """The name of the tool to invoke."""

    arguments: str
    """The arguments for the tool, as the raw JSON string produced by the model."""

    id: str = field(default_factory=_new_id)
    """Unique identifier of the call. Tool responses point back at it."""

    type: Literal["tool_call"] = "tool_call"


@dataclass(frozen=True)
class ToolResponse:
    """The output of a tool call, fed back to the model on the next turn."""

    tool_call_id: str
    """The `id` of the `ToolCall` this is a response to."""

    output: str
    """The tool output. Failed tool calls carry the formatted error here."""

    id: str = field(default_factory=_new_id)

    type: Literal["tool_response"] = "tool_response"


@dataclass(frozen=True)
class ModelResponse:
    """One response from the model: its text plus any tool calls it requested."""

    content: str
    """The aggregated text of the response. May be empty if the model only called tools."""

    tool_calls: tuple[ToolCall, ...] = ()
    """Tool calls requested in this response, in the order the model produced them."""

    agent_name: str | None = None
    """Name of the agent that produced the response. Set by the runner."""

    id: str = field(default_factory=_new_id)

    type: Literal["model_response"] = "model_response"


RunItem: TypeAlias = Union[TextMessage, ToolCall, ToolResponse, ModelResponse]
"""An item in the conversation transcript."""

TResponseInputItem: TypeAlias = RunItem
"""An item that can be sent to the model. Every run item can."""


class ItemHelpers:
    @classmethod
    def create_id(cls) -> str:
        return _new_id()

    @classmethod
    def text_message(cls, role: str, content: str) -> TextMessage:
        return TextMessage(role=role, content=content)

    @classmethod
    def tool_call(cls, name: str, arguments: Any) -> ToolCall:
        """Build a tool call. Non-string arguments are JSON-encoded."""
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return ToolCall(name=name, arguments=arguments)

    @classmethod
    def tool_response(cls, tool_call: ToolCall | str, output: Any) -> ToolResponse:
        """Build the response to `tool_call` (a call or a call id). Non-string outputs are
        JSON-encoded."""
        call_id = tool_call.id if isinstance(tool_call, ToolCall) else tool_call
        if not isinstance(output, str):
            output = json.dumps(output, default=str)
        return ToolResponse(tool_call_id=call_id, output=output)

    @classmethod
    def model_response(
        cls, content: str, tool_calls: list[ToolCall] | tuple[ToolCall, ...] | None = None
    ) -> ModelResponse:
        return ModelResponse(content=content, tool_calls=tuple(tool_calls or ()))

    @classmethod
    def input_to_new_input_list(
        cls, input: str | list[TResponseInputItem] | tuple[TResponseInputItem, ...]
    ) -> list[TResponseInputItem]:
        """Converts a string or list of input items into a new list of input items. A string
        becomes a single user message."""
        if isinstance(input, str):
            return [cls.text_message("user", input)]
        return list(input)

    @classmethod
    def text_message_output(cls, item: RunItem) -> str | None:
        """The assistant-authored text of a single item, or None if it has none."""
        if isinstance(item, ModelResponse):
            # A response that only called tools has no text of its own.
            if not item.content and item.tool_calls:
                return None
            return item.content
        if isinstance(item, TextMessage) and item.role == "assistant":
            return item.content
        return None

    @classmethod
    def text_message_outputs(cls, items: list[RunItem] | tuple[RunItem, ...]) -> str:
        """The text of the last assistant-authored item, or an empty string if there is none."""
        for item in reversed(items):
            text = cls.text_message_output(item)
            if text is not None:
                return text
        return ""
