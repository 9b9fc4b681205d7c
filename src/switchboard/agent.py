from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, Union, cast

from typing_extensions import TypeAlias

from .agent_output import AgentOutputSchema
from .agent_tool import AgentTool
from .exceptions import ConfigurationError, UserError
from .guardrail import InputGuardrail, OutputGuardrail
from .handoffs import Handoff, handoff
from .model_settings import ModelSettings
from .models.interface import Model
from .run_context import RunContextWrapper, TContext
from .tool import FunctionTool, Tool
from .util import _transforms
from .util._types import MaybeAwaitable

if TYPE_CHECKING:
    from .lifecycle import AgentHooks
    from .result import RunResult
    from .run import RunConfig


InstructionsFunction: TypeAlias = Callable[
    [RunContextWrapper[Any], "Agent[Any]"], MaybeAwaitable[str]
]
"""Computes an agent's instructions from the run context and the agent itself."""

Instructions: TypeAlias = Union[str, InstructionsFunction, None]


@dataclass(frozen=True, eq=False)
class Agent(Generic[TContext]):
    """An agent is an AI model configured with instructions, tools, guardrails, handoffs and more.

    We strongly recommend passing `instructions`, which is the "system prompt" for the agent. In
    addition, you can pass `handoff_description`, which is a human-readable description of the
    agent, used when the agent is used inside tools/handoffs.

    Agents are generic on the context type. The context is a (mutable) object you create. It is
    passed to tool functions, handoffs, guardrails, etc.

    Agents are immutable. Use `clone()` to derive a variant with some fields changed; the clone
    shares every field you don't override.
    """

    name: str
    """The name of the agent. Used in handoff tool names and logs, so keep it unique within one
    agent graph."""

    instructions: Instructions = None
    """The instructions for the agent. Will be used as the "system prompt" when this agent is
    invoked. Describes what the agent should do, and how it responds.

    Can either be a string, or a function that dynamically generates instructions for the agent. If
    you provide a function, it will be called with the context and the agent instance. It must
    return a string, and may be async.
    """

    handoff_description: str | None = None
    """A description of the agent. This is used when the agent is used as a handoff, so that an
    LLM knows what it does and when to invoke it.
    """

    tools: Sequence[Tool] = ()
    """A list of tools that the agent can use. Tool names must be unique within the agent."""

    handoffs: Sequence[Agent[Any] | Handoff[TContext]] = ()
    """Handoffs are sub-agents that the agent can delegate to. You can provide a list of handoffs,
    and the agent can choose to delegate to them if relevant. Allows for separation of concerns and
    modularity. A bare `Agent` is the same as `handoff(agent)`.
    """

    model: str | Model | None = None
    """The model implementation to use when invoking the LLM.

    By default, if not set, the run's model provider picks its default model (for
    `OpenAIProvider`, `OpenAIProviderConfig.default_model`, "gpt-4o" unless configured).
    """

    model_settings: ModelSettings = field(default_factory=ModelSettings)
    """Configures model-specific tuning parameters (e.g. temperature, top_p). The run config's
    settings are merged over these field by field.
    """

    input_guardrails: Sequence[InputGuardrail[TContext]] = ()
    """A list of checks that run before the first model call. Runs only if the agent is the first
    agent in the chain.
    """

    output_guardrails: Sequence[OutputGuardrail[TContext]] = ()
    """A list of checks that run on the final output of the agent, after generating a response.
    Runs only if the agent produces a final output.
    """

    output_type: type[Any] | None = None
    """The type of the output object. If not provided, the output will be `str`. Otherwise the
    final text of the agent is parsed as JSON and validated into this type (e.g. a dataclass,
    Pydantic model, TypedDict, etc).
    """

    hooks: AgentHooks[TContext] | None = None
    """A class that receives callbacks on various lifecycle events for this agent.
    """

    _resolved_handoffs: tuple[Handoff[Any], ...] = field(init=False, repr=False, default=())

    def __post_init__(self) -> None:
        try:
            _transforms.validate_agent_name(self.name)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        for attr in ("tools", "handoffs", "input_guardrails", "output_guardrails"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))

        tool_names: set[str] = set()
        for tool in self.tools:
            if tool.name in tool_names:
                raise ConfigurationError(
                    f"Agent {self.name!r} has more than one tool named {tool.name!r}"
                )
            tool_names.add(tool.name)

        object.__setattr__(self, "_resolved_handoffs", self._build_handoffs())
        handoff_names: set[str] = set()
        for handoff_obj in self._resolved_handoffs:
            if handoff_obj.tool_name in tool_names:
                raise ConfigurationError(
                    f"Handoff {handoff_obj.tool_name!r} of agent {self.name!r} has the same name "
                    "as one of its tools"
                )
            if handoff_obj.tool_name in handoff_names:
                raise ConfigurationError(
                    f"Agent {self.name!r} has more than one handoff named {handoff_obj.tool_name!r}"
                )
            handoff_names.add(handoff_obj.tool_name)

    def clone(self, **kwargs: Any) -> Agent[TContext]:
        """Make a copy of the agent, with the given arguments changed. For example, you could do:
        ```
        new_agent = agent.clone(instructions="New instructions")
        ```
        """
        return dataclasses.replace(self, **kwargs)

    def as_tool(
        self,
        tool_name: str | None = None,
        tool_description: str | None = None,
        custom_output_extractor: Callable[[RunResult], MaybeAwaitable[str]] | None = None,
        *,
        run_config: RunConfig | None = None,
        max_turns: int | None = None,
    ) -> FunctionTool:
        """Transform this agent into a tool, callable by other agents.

        This is different from handoffs in two ways:
        1. In handoffs, the new agent receives the conversation history. In this tool, the new agent
           receives generated input.
        2. In handoffs, the new agent takes over the conversation. In this tool, the new agent is
           called as a tool, and the conversation is continued by the original agent.

        The nested run shares the caller's context object but has its own transcript. A failed
        nested run makes the tool call fail, which the calling run reports back to its model.

        Args:
            tool_name: The name of the tool. If not provided, the agent's name will be used.
            tool_description: The description of the tool, which should indicate what it does and
                when to use it.
            custom_output_extractor: A function that extracts the output from the agent. If not
                provided, the last message from the agent will be used.
            run_config: The run config for the nested run. If not provided, the nested run uses
                the model provider of the calling run and default settings otherwise.
            max_turns: The turn limit for the nested run.
        """
        agent_tool = AgentTool(
            agent=self,
            custom_output_extractor=custom_output_extractor,
            run_config=run_config,
            max_turns=max_turns,
        )
        return agent_tool.to_function_tool(
            tool_name=tool_name or _transforms.transform_string_function_style(self.name),
            tool_description=tool_description or self.handoff_description or "",
        )

    async def get_system_prompt(self, run_context: RunContextWrapper[TContext]) -> str | None:
        """Get the system prompt for the agent."""
        if isinstance(self.instructions, str):
            return self.instructions
        elif callable(self.instructions):
            result = self.instructions(run_context, self)
            if inspect.isawaitable(result):
                return await cast(Awaitable[str], result)
            return cast(str, result)
        elif self.instructions is not None:
            raise UserError(f"Instructions must be a string or a function, got {self.instructions}")

        return None

    def get_handoffs(self) -> list[Handoff[Any]]:
        """The agent's handoffs, with bare agents turned into default handoffs. Built once, when
        the agent is created."""
        return list(self._resolved_handoffs)

    def _build_handoffs(self) -> tuple[Handoff[Any], ...]:
        handoffs: list[Handoff[Any]] = []
        for handoff_item in self.handoffs:
            if isinstance(handoff_item, Handoff):
                handoffs.append(handoff_item)
            elif isinstance(handoff_item, Agent):
                handoffs.append(handoff(handoff_item))
            else:
                raise ConfigurationError(
                    f"Handoffs of agent {self.name!r} must be Agents or Handoffs, got "
                    f"{type(handoff_item).__name__}"
                )
        return tuple(handoffs)

    def get_output_schema(self) -> AgentOutputSchema | None:
        if self.output_type is None or self.output_type is str:
            return None
        return AgentOutputSchema(self.output_type)

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r})"

