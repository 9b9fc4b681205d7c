from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from .exceptions import ModelBehaviorError
from .items import ItemHelpers
from .logger import logger
from .run import RunConfig, Runner
from .run_context import RunContextWrapper
from .tool import FunctionTool
from .util._coro import resolve
from .util._types import MaybeAwaitable

if TYPE_CHECKING:
    from .agent import Agent
    from .result import RunResult


AGENT_TOOL_PARAMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "input": {"type": "string", "description": "The input to send to the agent"},
    },
    "required": ["input"],
    "additionalProperties": False,
}


@dataclass
class AgentTool:
    """Runs a whole agent as a tool of another agent.

    Each invocation starts a nested run of `agent` on the tool's `input` argument. The nested run
    gets its own transcript but shares the caller's context object, one nesting level deeper.
    Without a `run_config`, the nested run resolves model names with the model provider of the
    top-level run.
    """

    agent: Agent[Any]
    custom_output_extractor: Callable[[RunResult], MaybeAwaitable[str]] | None = None
    run_config: RunConfig | None = None
    max_turns: int | None = None

    async def invoke(self, context: RunContextWrapper[Any], arguments: str) -> str:
        try:
            payload = json.loads(arguments or "{}")
        except json.JSONDecodeError as e:
            raise ModelBehaviorError(
                f"Invalid JSON input for agent tool {self.agent.name}: {arguments!r}"
            ) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("input"), str):
            raise ModelBehaviorError(
                f"Agent tool {self.agent.name} expects an object with a string 'input' field, "
                f"got {arguments!r}"
            )

        run_config = self.run_config
        if run_config is None and context.model_provider is not None:
            run_config = RunConfig(model_provider=context.model_provider)

        logger.debug(f"Running agent {self.agent.name} as a tool at depth {context.depth + 1}")
        result = await Runner.run(
            self.agent,
            payload["input"],
            max_turns=self.max_turns,
            run_config=run_config,
            parent_context=context,
        )
        if result.error is not None:
            raise result.error

        if self.custom_output_extractor is not None:
            return await resolve(self.custom_output_extractor(result))
        return ItemHelpers.text_message_outputs(result.new_items)

    def to_function_tool(self, tool_name: str, tool_description: str) -> FunctionTool:
        return FunctionTool(
            name=tool_name,
            description=tool_description,
            params_json_schema=AGENT_TOOL_PARAMS_SCHEMA,
            on_invoke_tool=self.invoke,
        )
