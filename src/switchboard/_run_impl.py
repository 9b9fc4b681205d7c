from __future__ import annotations

import asyncio
import dataclasses
import inspect
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Literal, Union

from typing_extensions import TypeAlias

from .exceptions import (
    AgentsException,
    InputGuardrailTripwireTriggered,
    ModelBehaviorError,
    ModelProviderError,
    OutputGuardrailTripwireTriggered,
    ToolInvocationError,
    UserError,
)
from .guardrail import InputGuardrail, InputGuardrailResult, OutputGuardrail, OutputGuardrailResult
from .handoffs import Handoff, HandoffInputData
from .items import ItemHelpers, ModelResponse, RunItem, TextMessage, ToolCall, TResponseInputItem
from .lifecycle import RunHooks
from .logger import logger
from .model_settings import ModelSettings
from .models.interface import Model
from .run_context import RunContextWrapper, TContext
from .stream_events import RunItemStreamEvent, StreamEvent, TextDeltaStreamEvent
from .tool import FunctionTool, FunctionToolResult, default_tool_error_function
from .util import _coro

if TYPE_CHECKING:
    from .agent import Agent
    from .agent_output import AgentOutputSchema
    from .run import RunConfig


class QueueCompleteSentinel:
    pass


QUEUE_COMPLETE_SENTINEL = QueueCompleteSentinel()

MULTIPLE_HANDOFFS_MESSAGE = "Multiple handoffs detected, ignoring this one."

EventSink: TypeAlias = Callable[[StreamEvent], Awaitable[None]]
"""Receives stream events. Only set for streaming runs."""

RunItemEventName: TypeAlias = Literal["message_output_created", "handoff_occured", "tool_output"]


@dataclass
class ToolRunHandoff:
    handoff: Handoff[Any]
    tool_call: ToolCall


@dataclass
class ToolRunFunction:
    tool_call: ToolCall
    function_tool: FunctionTool


@dataclass
class ToolRunMissing:
    """A call to a tool the agent does not have."""

    tool_call: ToolCall


@dataclass
class ProcessedResponse:
    tool_runs: list[Union[ToolRunFunction, ToolRunMissing]]
    """Calls the runner answers with a tool response, in the order the model made them."""

    handoffs: list[ToolRunHandoff]
    hosted_calls: list[ToolCall]
    """Calls to hosted tools. They run on the provider's side, so there's nothing to do."""

    def has_tools_to_run(self) -> bool:
        return bool(self.tool_runs)


@dataclass
class NextStepHandoff:
    new_agent: Agent[Any]


@dataclass
class NextStepFinalOutput:
    output: Any


@dataclass
class NextStepRunAgain:
    pass


@dataclass
class SingleStepResult:
    model_response: ModelResponse
    """The model response for the current step."""

    agent_history: list[TResponseInputItem]
    """The history the agent of the next step starts from. Replaced (and possibly filtered) by a
    handoff, otherwise unchanged."""

    pre_step_items: list[RunItem]
    """Items the current agent generated before the current step."""

    new_step_items: list[RunItem]
    """Items generated during this current step."""

    next_step: NextStepHandoff | NextStepFinalOutput | NextStepRunAgain
    """The next step to take."""


@dataclass
class StepItemRecorder:
    """Collects the items produced during one step. Every item is also appended to the run's
    `generated_items` and, for streaming runs, sent to the event sink right away."""

    generated_items: list[RunItem]
    event_sink: EventSink | None = None
    step_items: list[RunItem] = field(default_factory=list)

    async def add(self, item: RunItem, event_name: RunItemEventName) -> None:
        self.step_items.append(item)
        self.generated_items.append(item)
        if self.event_sink is not None:
            await self.event_sink(RunItemStreamEvent(name=event_name, item=item))


async def run_hook_safely(hook_call: Awaitable[Any]) -> None:
    """Await a lifecycle hook. Hooks are observational, so failures are logged and ignored."""
    try:
        await hook_call
    except Exception:
        logger.exception("Error in lifecycle hook")


class RunImpl:
    @classmethod
    async def get_new_response(
        cls,
        *,
        agent: Agent[Any],
        model: Model,
        messages: list[TResponseInputItem],
        settings: ModelSettings,
        handoffs: Sequence[Handoff[Any]],
        output_schema: AgentOutputSchema | None,
        event_sink: EventSink | None,
    ) -> ModelResponse:
        try:
            if event_sink is None:
                response = await model.generate(
                    messages,
                    settings,
                    tools=agent.tools,
                    handoffs=handoffs,
                    output_schema=output_schema,
                )
            else:

                async def on_chunk(delta: str) -> None:
                    await event_sink(TextDeltaStreamEvent(delta=delta, agent=agent))

                response = await model.generate_streaming(
                    messages,
                    settings,
                    on_chunk,
                    tools=agent.tools,
                    handoffs=handoffs,
                    output_schema=output_schema,
                )
        except AgentsException:
            raise
        except Exception as e:
            raise ModelProviderError(f"Model call failed for agent {agent.name}: {e}", e) from e

        if isinstance(response, str):
            response = ModelResponse(content=response)
        elif not isinstance(response, ModelResponse):
            raise ModelBehaviorError(
                f"Model returned {type(response).__name__}, expected str or ModelResponse"
            )
        return dataclasses.replace(response, agent_name=agent.name)

    @classmethod
    def process_model_response(
        cls,
        *,
        agent: Agent[Any],
        response: ModelResponse,
        handoffs: Sequence[Handoff[Any]],
    ) -> ProcessedResponse:
        handoff_map = {handoff.tool_name: handoff for handoff in handoffs}
        tool_map = {tool.name: tool for tool in agent.tools}

        tool_runs: list[ToolRunFunction | ToolRunMissing] = []
        run_handoffs: list[ToolRunHandoff] = []
        hosted_calls: list[ToolCall] = []

        for tool_call in response.tool_calls:
            if tool_call.name in handoff_map:
                run_handoffs.append(ToolRunHandoff(handoff_map[tool_call.name], tool_call))
            elif tool_call.name in tool_map:
                tool = tool_map[tool_call.name]
                if isinstance(tool, FunctionTool):
                    tool_runs.append(ToolRunFunction(tool_call=tool_call, function_tool=tool))
                else:
                    logger.debug(f"Skipping hosted tool call {tool_call.name}")
                    hosted_calls.append(tool_call)
            else:
                logger.warning(f"Agent {agent.name} requested unknown tool {tool_call.name!r}")
                tool_runs.append(ToolRunMissing(tool_call=tool_call))

        return ProcessedResponse(
            tool_runs=tool_runs, handoffs=run_handoffs, hosted_calls=hosted_calls
        )

    @classmethod
    async def execute_tools_and_side_effects(
        cls,
        *,
        agent: Agent[TContext],
        new_response: ModelResponse,
        processed_response: ProcessedResponse,
        output_schema: AgentOutputSchema | None,
        agent_history: list[TResponseInputItem],
        pre_step_items: list[RunItem],
        recorder: StepItemRecorder,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
    ) -> SingleStepResult:
        # Tool calls are answered before any handoff in the same response is executed.
        if processed_response.has_tools_to_run():
            await cls.execute_function_tool_calls(
                agent=agent,
                tool_runs=processed_response.tool_runs,
                recorder=recorder,
                hooks=hooks,
                context_wrapper=context_wrapper,
                config=run_config,
            )

        if processed_response.handoffs:
            return await cls.execute_handoffs(
                agent=agent,
                agent_history=agent_history,
                pre_step_items=pre_step_items,
                new_response=new_response,
                run_handoffs=processed_response.handoffs,
                recorder=recorder,
                hooks=hooks,
                context_wrapper=context_wrapper,
                run_config=run_config,
            )

        if processed_response.has_tools_to_run():
            return SingleStepResult(
                model_response=new_response,
                agent_history=agent_history,
                pre_step_items=pre_step_items,
                new_step_items=recorder.step_items,
                next_step=NextStepRunAgain(),
            )

        if output_schema is not None:
            final_output = output_schema.validate_json(new_response.content)
        else:
            final_output = new_response.content

        return SingleStepResult(
            model_response=new_response,
            agent_history=agent_history,
            pre_step_items=pre_step_items,
            new_step_items=recorder.step_items,
            next_step=NextStepFinalOutput(final_output),
        )

    @classmethod
    async def execute_function_tool_calls(
        cls,
        *,
        agent: Agent[TContext],
        tool_runs: list[ToolRunFunction | ToolRunMissing],
        recorder: StepItemRecorder,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> None:
        async def run_single(tool_run: ToolRunFunction | ToolRunMissing) -> RunItem:
            if isinstance(tool_run, ToolRunMissing):
                return ItemHelpers.tool_response(
                    tool_run.tool_call, f"Error: Tool '{tool_run.tool_call.name}' not found"
                )
            result = await cls._execute_tool_with_hooks(
                agent=agent,
                func_tool=tool_run.function_tool,
                tool_call=tool_run.tool_call,
                hooks=hooks,
                context_wrapper=context_wrapper,
                config=config,
            )
            return result.run_item

        if config.parallel_tool_calls:
            # Outputs are still recorded in call order.
            items = await asyncio.gather(*(run_single(tool_run) for tool_run in tool_runs))
            for item in items:
                await recorder.add(item, "tool_output")
        else:
            for tool_run in tool_runs:
                await recorder.add(await run_single(tool_run), "tool_output")

    @classmethod
    async def _execute_tool_with_hooks(
        cls,
        *,
        agent: Agent[TContext],
        func_tool: FunctionTool,
        tool_call: ToolCall,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        config: RunConfig,
    ) -> FunctionToolResult:
        await asyncio.gather(
            run_hook_safely(
                hooks.on_tool_start(context_wrapper, agent, func_tool, tool_call.arguments)
            ),
            (
                run_hook_safely(
                    agent.hooks.on_tool_start(
                        context_wrapper, agent, func_tool, tool_call.arguments
                    )
                )
                if agent.hooks
                else _coro.noop_coroutine()
            ),
        )

        error: ToolInvocationError | None = None
        logger.debug(f"Invoking tool {func_tool.name} with arguments {tool_call.arguments}")
        try:
            output = await _coro.resolve(
                func_tool.on_invoke_tool(context_wrapper, tool_call.arguments)
            )
            if not isinstance(output, str):
                output = str(output)
        except Exception as e:
            error = ToolInvocationError(func_tool.name, e)
            error.__cause__ = e
            # If the error function itself raises, the run fails with that error.
            error_function = (
                func_tool.failure_error_function
                or config.tool_error_function
                or default_tool_error_function
            )
            output = await _coro.resolve(error_function(context_wrapper, e))
            logger.warning(f"Tool {func_tool.name} failed: {output}")
        else:
            logger.debug(f"Tool {func_tool.name} completed")

        await asyncio.gather(
            run_hook_safely(
                hooks.on_tool_end(context_wrapper, agent, func_tool, tool_call.arguments, output)
            ),
            (
                run_hook_safely(
                    agent.hooks.on_tool_end(
                        context_wrapper, agent, func_tool, tool_call.arguments, output
                    )
                )
                if agent.hooks
                else _coro.noop_coroutine()
            ),
        )

        return FunctionToolResult(
            tool=func_tool,
            output=output,
            run_item=ItemHelpers.tool_response(tool_call, output),
            error=error,
        )

    @classmethod
    async def execute_handoffs(
        cls,
        *,
        agent: Agent[TContext],
        agent_history: list[TResponseInputItem],
        pre_step_items: list[RunItem],
        new_response: ModelResponse,
        run_handoffs: list[ToolRunHandoff],
        recorder: StepItemRecorder,
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
    ) -> SingleStepResult:
        actual_handoff = run_handoffs[0]
        handoff = actual_handoff.handoff
        new_agent: Agent[Any] = await handoff.invoke(
            context_wrapper, actual_handoff.tool_call.arguments
        )
        logger.debug(f"Handing off from {agent.name} to {new_agent.name}")

        # Answer every handoff call in order: the first one transfers, the rest are rejected.
        for run_handoff in run_handoffs:
            if run_handoff is actual_handoff:
                await recorder.add(
                    ItemHelpers.tool_response(
                        run_handoff.tool_call, handoff.get_transfer_message()
                    ),
                    "handoff_occured",
                )
            else:
                await recorder.add(
                    ItemHelpers.tool_response(run_handoff.tool_call, MULTIPLE_HANDOFFS_MESSAGE),
                    "tool_output",
                )

        await asyncio.gather(
            run_hook_safely(
                hooks.on_handoff(context=context_wrapper, from_agent=agent, to_agent=new_agent)
            ),
            (
                run_hook_safely(
                    new_agent.hooks.on_handoff(context_wrapper, agent=new_agent, source=agent)
                )
                if new_agent.hooks
                else _coro.noop_coroutine()
            ),
        )

        handoff_input_data = HandoffInputData(
            input_history=tuple(agent_history),
            pre_handoff_items=tuple(pre_step_items),
            new_items=tuple(recorder.step_items),
            run_context=context_wrapper,
        )

        # If there's an input filter, filter the input for the next agent
        input_filter = handoff.input_filter or (
            run_config.handoff_input_filter if run_config else None
        )
        if input_filter:
            filter_name = getattr(input_filter, "__qualname__", repr(input_filter))
            logger.debug(
                f"Filtering handoff inputs with {filter_name} for {agent.name} -> {new_agent.name}"
            )
            if not callable(input_filter):
                raise UserError(f"Invalid input filter: {input_filter}")
            filtered = input_filter(handoff_input_data)
            if inspect.isawaitable(filtered):
                filtered = await filtered
            if not isinstance(filtered, HandoffInputData):
                raise UserError(f"Invalid input filter result: {filtered}")
            handoff_input_data = filtered

        return SingleStepResult(
            model_response=new_response,
            agent_history=handoff_input_data.all_items(),
            pre_step_items=pre_step_items,
            new_step_items=recorder.step_items,
            next_step=NextStepHandoff(new_agent),
        )

    @classmethod
    async def run_input_guardrails(
        cls,
        agent: Agent[Any],
        guardrails: Sequence[InputGuardrail[TContext]],
        input: list[TResponseInputItem],
        context: RunContextWrapper[TContext],
    ) -> list[InputGuardrailResult]:
        if not guardrails:
            return []

        return list(
            await asyncio.gather(
                *(
                    cls.run_single_input_guardrail(agent, guardrail, input, context)
                    for guardrail in guardrails
                )
            )
        )

    @classmethod
    async def run_output_guardrails(
        cls,
        guardrails: Sequence[OutputGuardrail[TContext]],
        agent: Agent[TContext],
        agent_output: Any,
        context: RunContextWrapper[TContext],
    ) -> list[OutputGuardrailResult]:
        if not guardrails:
            return []

        return list(
            await asyncio.gather(
                *(
                    cls.run_single_output_guardrail(guardrail, agent, agent_output, context)
                    for guardrail in guardrails
                )
            )
        )

    @classmethod
    async def run_single_input_guardrail(
        cls,
        agent: Agent[Any],
        guardrail: InputGuardrail[TContext],
        input: list[TResponseInputItem],
        context: RunContextWrapper[TContext],
    ) -> InputGuardrailResult:
        result = await guardrail.run(agent, input, context)
        if result.output.tripwire_triggered:
            logger.info(f"Input guardrail {guardrail.get_name()} tripped: {result.output.reason}")
        return result

    @classmethod
    async def run_single_output_guardrail(
        cls,
        guardrail: OutputGuardrail[TContext],
        agent: Agent[Any],
        agent_output: Any,
        context: RunContextWrapper[TContext],
    ) -> OutputGuardrailResult:
        result = await guardrail.run(agent=agent, agent_output=agent_output, context=context)
        if result.output.tripwire_triggered:
            logger.info(f"Output guardrail {guardrail.get_name()} tripped: {result.output.reason}")
        return result

    @classmethod
    def check_input_guardrail_results(cls, results: list[InputGuardrailResult]) -> None:
        """Raise for the first tripped guardrail, in declaration order."""
        for result in results:
            if result.output.tripwire_triggered:
                raise InputGuardrailTripwireTriggered(result)

    @classmethod
    def apply_output_guardrail_results(
        cls, results: list[OutputGuardrailResult], final_output: Any
    ) -> Any:
        """Raise for the first tripped guardrail. Otherwise return the final output, replaced by
        the first `modified_output` in declaration order, if any."""
        for result in results:
            if result.output.tripwire_triggered:
                raise OutputGuardrailTripwireTriggered(result)

        for result in results:
            if result.output.modified_output is not None:
                logger.debug(f"Output guardrail {result.guardrail.get_name()} modified the output")
                return result.output.modified_output
        return final_output

    @classmethod
    async def run_final_output_hooks(
        cls,
        agent: Agent[TContext],
        context_wrapper: RunContextWrapper[TContext],
        final_output: Any,
    ) -> None:
        if agent.hooks:
            await run_hook_safely(agent.hooks.on_end(context_wrapper, agent, final_output))

    @classmethod
    async def get_system_message(
        cls, agent: Agent[TContext], context_wrapper: RunContextWrapper[TContext]
    ) -> list[TResponseInputItem]:
        system_prompt = await agent.get_system_prompt(context_wrapper)
        if not system_prompt:
            return []
        return [TextMessage(role="system", content=system_prompt)]
