from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field, replace as dataclasses_replace
from typing import TYPE_CHECKING, Any, Callable, Generic

from pydantic import TypeAdapter, ValidationError
from typing_extensions import TypeAlias, TypeVar

from .exceptions import ModelBehaviorError, UserError
from .items import RunItem, TResponseInputItem
from .run_context import RunContextWrapper, TContext
from .util import _transforms
from .util._types import MaybeAwaitable

if TYPE_CHECKING:
    from .agent import Agent


# The handoff input type is the type of data passed when the agent is called via a handoff.
THandoffInput = TypeVar("THandoffInput", default=Any)

OnHandoffWithInput = Callable[[RunContextWrapper[Any], THandoffInput], Any]
OnHandoffWithoutInput = Callable[[RunContextWrapper[Any]], Any]


@dataclass(frozen=True)
class HandoffInputData:
    input_history: tuple[TResponseInputItem, ...]
    """
    The input history before `Runner.run()` was called (or, after an earlier handoff, the history
    the current agent started with).
    """

    pre_handoff_items: tuple[RunItem, ...]
    """
    The items generated before the agent turn where the handoff was invoked.
    """

    new_items: tuple[RunItem, ...]
    """
    The new items generated during the current agent turn, including the item that triggered the
    handoff and the tool response representing the handoff output.
    """

    run_context: RunContextWrapper[Any] | None = None
    """
    The run context at the time the handoff was invoked.
    """

    def clone(self, **kwargs: Any) -> HandoffInputData:
        """
        Make a copy of the handoff input data, with the given arguments changed. For example, you
        could do:
        ```
        new_handoff_input_data = handoff_input_data.clone(new_items=())
        ```
        """
        return dataclasses_replace(self, **kwargs)

    def all_items(self) -> list[RunItem]:
        """The transcript the next agent will see: history, then pre-handoff items, then new
        items."""
        return [*self.input_history, *self.pre_handoff_items, *self.new_items]


HandoffInputFilter: TypeAlias = Callable[[HandoffInputData], MaybeAwaitable[HandoffInputData]]
"""A function that filters the input data passed to the next agent."""


@dataclass
class Handoff(Generic[TContext]):
    """A handoff is when an agent delegates a task to another agent.
    For example, in a customer support scenario you might have a "triage agent" that determines
    which agent should handle the user's request, and sub-agents that specialize in different
    areas like billing, account management, etc.

    The model sees a handoff as a tool named `tool_name`. Calling it transfers the rest of the run
    to `agent`; the calling agent does not resume.
    """

    agent: Agent[Any]
    """The agent that is being handed off to."""

    tool_name: str
    """The name of the tool that represents the handoff."""

    tool_description: str
    """The description of the tool that represents the handoff."""

    input_json_schema: dict[str, Any] = field(default_factory=dict)
    """The JSON schema for the handoff input. Empty if the handoff does not take an input."""

    on_invoke_handoff: Callable[[RunContextWrapper[Any], str], MaybeAwaitable[None]] | None = None
    """Called when the handoff is invoked, with the run context and the raw JSON arguments from
    the LLM."""

    input_filter: HandoffInputFilter | None = None
    """A function that filters the inputs that are passed to the next agent. By default, the new
    agent sees the entire conversation history. In some cases, you may want to filter inputs e.g.
    to remove older inputs, or remove tools from existing inputs.

    The function will receive the entire conversation history so far, including the model response
    that triggered the handoff and the tool response representing the handoff output. It must
    return a new `HandoffInputData`; the run's own transcript is never modified. The next agent
    that runs will receive `handoff_input_data.all_items()`.

    IMPORTANT: in streaming mode, we will not stream anything as a result of this function. The
    items generated before will already have been streamed.
    """

    @property
    def agent_name(self) -> str:
        return self.agent.name

    def get_transfer_message(self) -> str:
        return json.dumps({"assistant": self.agent.name})

    async def invoke(self, context: RunContextWrapper[Any], arguments: str) -> Agent[Any]:
        """Run the `on_invoke_handoff` callback, if any, and return the target agent."""
        if self.on_invoke_handoff is not None:
            result = self.on_invoke_handoff(context, arguments)
            if inspect.isawaitable(result):
                await result
        return self.agent

    @classmethod
    def default_tool_name(cls, agent: Agent[Any]) -> str:
        return _transforms.transform_string_function_style(f"transfer_to_{agent.name}")

    @classmethod
    def default_tool_description(cls, agent: Agent[Any], description: str | None = None) -> str:
        return (
            f"Handoff to the {agent.name} agent to handle the request. "
            f"{description or agent.handoff_description or ''}"
        ).strip()


def handoff(
    agent: Agent[TContext],
    tool_name_override: str | None = None,
    tool_description_override: str | None = None,
    on_handoff: OnHandoffWithInput[THandoffInput] | OnHandoffWithoutInput | None = None,
    input_type: type[THandoffInput] | None = None,
    input_filter: HandoffInputFilter | None = None,
) -> Handoff[TContext]:
    """Create a handoff from an agent.

    Args:
        agent: The agent to handoff to.
        tool_name_override: Optional override for the name of the tool that represents the handoff.
        tool_description_override: Optional override for the description of the tool that
            represents the handoff.
        on_handoff: A function that runs when the handoff is invoked.
        input_type: the type of the input to the handoff. If provided, the input will be validated
            against this type. Only relevant if you pass a function that takes an input.
        input_filter: a function that filters the inputs that are passed to the next agent.
    """
    type_adapter: TypeAdapter[Any] | None
    if input_type is not None:
        if not callable(on_handoff):
            raise UserError("input_type requires a callable on_handoff")
        sig = inspect.signature(on_handoff)
        if len(sig.parameters) != 2:
            raise UserError("on_handoff must take two arguments: context and input")

        type_adapter = TypeAdapter(input_type)
        input_json_schema = type_adapter.json_schema()
    else:
        type_adapter = None
        input_json_schema = {}
        if on_handoff is not None:
            sig = inspect.signature(on_handoff)
            if len(sig.parameters) != 1:
                raise UserError("on_handoff must take one argument: context")

    async def _invoke_handoff(ctx: RunContextWrapper[Any], input_json: str | None = None) -> None:
        if input_type is not None and type_adapter is not None:
            if input_json is None:
                raise ModelBehaviorError(
                    f"Handoff function expected non-null input, but got None for {agent.name}"
                )
            try:
                validated_input = type_adapter.validate_json(input_json)
            except ValidationError as e:
                raise ModelBehaviorError(f"Invalid JSON input for handoff {agent.name}: {e}") from e

            input_func = on_handoff
            result = input_func(ctx, validated_input)  # type: ignore[call-arg]
            if inspect.isawaitable(result):
                await result
        elif on_handoff is not None:
            no_input_func = on_handoff
            result = no_input_func(ctx)  # type: ignore[call-arg]
            if inspect.isawaitable(result):
                await result

    tool_name = tool_name_override or Handoff.default_tool_name(agent)
    tool_description = tool_description_override or Handoff.default_tool_description(agent)
    return Handoff(
        agent=agent,
        tool_name=tool_name,
        tool_description=tool_description,
        input_json_schema=input_json_schema,
        on_invoke_handoff=_invoke_handoff,
        input_filter=input_filter,
    )
