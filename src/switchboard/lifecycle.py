from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic

from .items import TResponseInputItem
from .run_context import RunContextWrapper, TContext

if TYPE_CHECKING:
    from .agent import Agent
    from .tool import Tool


class RunHooks(Generic[TContext]):
    """A class that receives callbacks on various lifecycle events in an agent run. Subclass and
    override the methods you need.

    Hooks are observational: they cannot change the course of the run, and an exception raised by
    a hook is logged and otherwise ignored.
    """

    async def on_run_start(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        input: list[TResponseInputItem],
    ) -> None:
        """Called once, before the input guardrails and the first turn."""
        pass

    async def on_run_end(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        input: list[TResponseInputItem],
        output: Any,
    ) -> None:
        """Called once when the run ends, successfully or not. `agent` is the last agent that
        ran and `output` the final output (None if the run failed)."""
        pass

    async def on_agent_start(
        self, context: RunContextWrapper[TContext], agent: Agent[TContext]
    ) -> None:
        """Called before the first turn of each agent, i.e. at the start of the run and after
        every handoff."""
        pass

    async def on_handoff(
        self,
        context: RunContextWrapper[TContext],
        from_agent: Agent[TContext],
        to_agent: Agent[TContext],
    ) -> None:
        """Called when a handoff occurs."""
        pass

    async def on_tool_start(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        tool: Tool,
        tool_input: str,
    ) -> None:
        """Called before a tool is invoked."""
        pass

    async def on_tool_end(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        tool: Tool,
        tool_input: str,
        result: str,
    ) -> None:
        """Called after a tool is invoked. `result` is the tool output, or the formatted error if
        the tool failed."""
        pass


class AgentHooks(Generic[TContext]):
    """A class that receives callbacks on various lifecycle events for a specific agent. You can
    set this on `agent.hooks` to receive events for that specific agent.

    Subclass and override the methods you need.
    """

    async def on_start(self, context: RunContextWrapper[TContext], agent: Agent[TContext]) -> None:
        """Called before the agent is invoked. Called every time the running agent is changed to
        this agent."""
        pass

    async def on_end(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        output: Any,
    ) -> None:
        """Called when the agent produces a final output."""
        pass

    async def on_handoff(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        source: Agent[TContext],
    ) -> None:
        """Called when the agent is being handed off to. The `source` is the agent that is handing
        off to this agent."""
        pass

    async def on_tool_start(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        tool: Tool,
        tool_input: str,
    ) -> None:
        """Called before a tool is invoked."""
        pass

    async def on_tool_end(
        self,
        context: RunContextWrapper[TContext],
        agent: Agent[TContext],
        tool: Tool,
        tool_input: str,
        result: str,
    ) -> None:
        """Called after a tool is invoked."""
        pass
