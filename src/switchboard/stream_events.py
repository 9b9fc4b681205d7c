from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Union

from typing_extensions import TypeAlias

from .items import RunItem

if TYPE_CHECKING:
    from .agent import Agent


@dataclass
class TextDeltaStreamEvent:
    """Incremental text from the model, delivered while a response is being generated."""

    delta: str
    """The new piece of text."""

    agent: Agent[Any]
    """The agent whose model produced the text."""

    type: Literal["text_delta_event"] = "text_delta_event"


@dataclass
class RunItemStreamEvent:
    """Streaming events that wrap a `RunItem`. As the agent processes the LLM response, it will
    generate these events for new model responses, tool outputs and handoffs.
    """

    name: Literal[
        "message_output_created",
        # This is misspelled, but kept for compatibility with existing consumers
        "handoff_occured",
        "tool_output",
    ]
    """The name of the event."""

    item: RunItem
    """The item that was created."""

    type: Literal["run_item_stream_event"] = "run_item_stream_event"


@dataclass
class AgentUpdatedStreamEvent:
    """Event that notifies that there is a new agent running."""

    new_agent: Agent[Any]
    """The new agent."""

    type: Literal["agent_updated_stream_event"] = "agent_updated_stream_event"


StreamEvent: TypeAlias = Union[TextDeltaStreamEvent, RunItemStreamEvent, AgentUpdatedStreamEvent]
"""A streaming event from an agent."""
