from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic

from typing_extensions import TypeVar

if TYPE_CHECKING:
    from .models.interface import ModelProvider

TContext = TypeVar("TContext", default=Any)


@dataclass(frozen=True)
class RunContextWrapper(Generic[TContext]):
    """Holds the context object you passed to `Runner.run()`.

    One wrapper is built per run and the same instance is handed to every guardrail, tool, hook
    and handoff filter for the whole run. The wrapper itself is immutable; the wrapped `context`
    is your own object, and any mutation of it (including from concurrently running nested agent
    tools) is yours to coordinate.

    NOTE: Contexts are not passed to the LLM. They're a way to pass dependencies and data to code
    you implement, like tool functions, callbacks, hooks, etc.
    """

    context: TContext
    """The context object (or None), passed by you to `Runner.run()`"""

    depth: int = 0
    """How deeply this run is nested inside agent-as-tool invocations. The top-level run is 0."""

    max_depth: int | None = None
    """The deepest nesting allowed for runs sharing this context, or None for no limit. Set from
    `RunConfig.max_agent_depth` of the top-level run."""

    model_provider: ModelProvider | None = field(default=None, repr=False, compare=False)
    """The model provider of the top-level run. Nested agent-as-tool runs without a run config of
    their own resolve model names with it."""

    def nested(self) -> RunContextWrapper[TContext]:
        """A wrapper for a nested run: same context object, depth increased by one."""
        return RunContextWrapper(
            context=self.context,
            depth=self.depth + 1,
            max_depth=self.max_depth,
            model_provider=self.model_provider,
        )
