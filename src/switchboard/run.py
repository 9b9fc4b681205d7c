from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, cast

from ._run_impl import (
    QUEUE_COMPLETE_SENTINEL,
    EventSink,
    NextStepFinalOutput,
    NextStepHandoff,
    RunImpl,
    SingleStepResult,
    StepItemRecorder,
    run_hook_safely,
)
from .exceptions import (
    AgentsException,
    ConfigurationError,
    MaxTurnsExceeded,
    ModelProviderError,
    RunErrorDetails,
)
from .guardrail import InputGuardrail, InputGuardrailResult, OutputGuardrail, OutputGuardrailResult
from .handoffs import HandoffInputFilter
from .items import ItemHelpers, RunItem, TResponseInputItem
from .lifecycle import RunHooks
from .logger import logger
from .model_settings import ModelSettings
from .models.interface import Model, ModelProvider
from .models.openai_provider import OpenAIProvider
from .result import RunResult, RunResultStreaming
from .run_context import RunContextWrapper, TContext
from .stream_events import AgentUpdatedStreamEvent, StreamEvent
from .tool import ToolErrorFunction, default_tool_error_function
from .util import _coro

if TYPE_CHECKING:
    from .agent import Agent

DEFAULT_MAX_TURNS = 10


@dataclass
class RunConfig:
    """Configures settings for the entire agent run."""

    model: str | Model | None = None
    """The model to use for the entire agent run. If set, will override the model set on every
    agent. The model_provider passed in below must be able to resolve this model name.
    """

    model_provider: ModelProvider = field(default_factory=OpenAIProvider)
    """The model provider to use when looking up string model names. Defaults to OpenAI, configured
    from the environment."""

    model_settings: ModelSettings | None = None
    """Configure global model settings. Any non-null values will override the agent-specific model
    settings.
    """

    max_turns: int | None = None
    """The maximum number of turns for the run, if not passed to `Runner.run()` directly.
    Defaults to `DEFAULT_MAX_TURNS`."""

    handoff_input_filter: HandoffInputFilter | None = None
    """A global input filter to apply to all handoffs. If `Handoff.input_filter` is set, then that
    will take precedence. The input filter allows you to edit the inputs that are sent to the new
    agent. See the documentation in `Handoff.input_filter` for more details.
    """

    input_guardrails: Sequence[InputGuardrail[Any]] | None = None
    """A list of input guardrails to run on the initial run input."""

    output_guardrails: Sequence[OutputGuardrail[Any]] | None = None
    """A list of output guardrails to run on the final output of the run."""

    tool_error_function: ToolErrorFunction | None = default_tool_error_function
    """Turns a tool's exception into the output the model sees. Tools may override it with their
    own `failure_error_function`."""

    parallel_tool_calls: bool = False
    """If True, the tool calls of one model response are invoked concurrently. Their outputs are
    still added to the conversation in call order."""

    max_agent_depth: int | None = None
    """How deeply agents-as-tools may nest runs within this run. None means no limit."""

    stream_queue_maxsize: int = 0
    """The maximum number of undelivered stream events before the run waits for the consumer.
    0 means unbounded."""

    workflow_name: str = "Agent workflow"
    """The name of the run, used in logs."""


class Runner:
    @classmethod
    async def run(
        cls,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        *,
        context: TContext | None = None,
        max_turns: int | None = None,
        hooks: RunHooks[TContext] | None = None,
        run_config: RunConfig | None = None,
        parent_context: RunContextWrapper[TContext] | None = None,
    ) -> RunResult:
        """Run a workflow starting at the given agent. The agent will run in a loop until a final
        output is generated. The loop runs like so:
        1. The agent is invoked with the given input.
        2. If the model calls tools, they are run and the loop runs again with their outputs.
        3. If there's a handoff, we run the loop again, with the new agent.
        4. Else, the response is the final output and the loop terminates.

        The run never raises for a failed run. Instead the result has `success=False` and the
        failure in `error`:
        1. If the max_turns is exceeded, a MaxTurnsExceeded error.
        2. If a guardrail tripwire is triggered, a GuardrailTripwireTriggered error.
        3. If the model or provider fails, a ModelProviderError.

        Note that only the first agent's input guardrails are run.

        Args:
            starting_agent: The starting agent to run.
            input: The initial input to the agent. You can pass a single string for a user message,
                or a list of input items.
            context: The context to run the agent with.
            max_turns: The maximum number of turns to run the agent for. A turn is defined as one
                AI invocation (including any tool calls that might occur).
            hooks: An object that receives callbacks on various lifecycle events.
            run_config: Global settings for the entire agent run.
            parent_context: Set when the run is nested inside another run's tool call. The nested
                run shares the parent's context object, one level deeper.

        Returns:
            A run result containing all the inputs, guardrail results and the output of the last
            agent. Agents may perform handoffs, so we don't know the specific type of the output.
        """
        run_config = run_config or RunConfig()
        return await cls._run_loop(
            starting_agent=starting_agent,
            input=input,
            context_wrapper=cls._build_context_wrapper(context, parent_context, run_config),
            hooks=hooks or RunHooks[Any](),
            run_config=run_config,
            max_turns=cls._resolve_max_turns(max_turns, run_config),
            event_sink=None,
        )

    @classmethod
    def run_sync(
        cls,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        *,
        context: TContext | None = None,
        max_turns: int | None = None,
        hooks: RunHooks[TContext] | None = None,
        run_config: RunConfig | None = None,
    ) -> RunResult:
        """Run a workflow synchronously, starting at the given agent. Note that this just wraps the
        `run` method, so it will not work if there's already an event loop (e.g. inside an async
        function, or in a Jupyter notebook or async context like FastAPI). For those cases, use
        the `run` method instead.

        Args:
            starting_agent: The starting agent to run.
            input: The initial input to the agent. You can pass a single string for a user message,
                or a list of input items.
            context: The context to run the agent with.
            max_turns: The maximum number of turns to run the agent for.
            hooks: An object that receives callbacks on various lifecycle events.
            run_config: Global settings for the entire agent run.

        Returns:
            A run result containing all the inputs, guardrail results and the output of the last
            agent.
        """
        return asyncio.run(
            cls.run(
                starting_agent,
                input,
                context=context,
                max_turns=max_turns,
                hooks=hooks,
                run_config=run_config,
            )
        )

    @classmethod
    def run_streamed(
        cls,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        *,
        context: TContext | None = None,
        max_turns: int | None = None,
        hooks: RunHooks[TContext] | None = None,
        run_config: RunConfig | None = None,
    ) -> RunResultStreaming:
        """Run a workflow starting at the given agent in streaming mode. The returned result object
        contains a method you can use to stream semantic events as they are generated.

        The run happens in an `asyncio.Task`, so this must be called with an event loop running.
        Events are delivered through a queue: if `run_config.stream_queue_maxsize` is set, the run
        waits while that many events are undelivered. `result.completion` resolves once the run is
        over and its last event has been queued.

        Args:
            starting_agent: The starting agent to run.
            input: The initial input to the agent. You can pass a single string for a user message,
                or a list of input items.
            context: The context to run the agent with.
            max_turns: The maximum number of turns to run the agent for.
            hooks: An object that receives callbacks on various lifecycle events.
            run_config: Global settings for the entire agent run.

        Returns:
            A result object that contains data about the run, as well as a method to stream events.
        """
        run_config = run_config or RunConfig()
        context_wrapper = cls._build_context_wrapper(context, None, run_config)
        loop = asyncio.get_running_loop()

        streamed_result = RunResultStreaming(
            input=input,
            input_items=ItemHelpers.input_to_new_input_list(input),
            new_items=[],
            final_output=None,
            success=False,
            error=None,
            input_guardrail_results=[],
            output_guardrail_results=[],
            context_wrapper=context_wrapper,
            turns=0,
            current_agent=starting_agent,
            completion=loop.create_future(),
            _event_queue=asyncio.Queue(maxsize=run_config.stream_queue_maxsize),
        )

        streamed_result._run_impl_task = asyncio.create_task(
            cls._start_streaming(
                starting_agent=starting_agent,
                streamed_result=streamed_result,
                hooks=hooks or RunHooks[Any](),
                run_config=run_config,
                max_turns=cls._resolve_max_turns(max_turns, run_config),
            )
        )
        streamed_result._run_impl_task.add_done_callback(streamed_result._on_run_task_done)
        return streamed_result

    @classmethod
    async def _start_streaming(
        cls,
        *,
        starting_agent: Agent[TContext],
        streamed_result: RunResultStreaming,
        hooks: RunHooks[TContext],
        run_config: RunConfig,
        max_turns: int,
    ) -> None:
        queue = streamed_result._event_queue
        completion = cast("asyncio.Future[RunResultStreaming]", streamed_result.completion)

        async def event_sink(event: StreamEvent) -> None:
            if isinstance(event, AgentUpdatedStreamEvent):
                streamed_result.current_agent = event.new_agent
            await queue.put(event)

        # Cancellation is settled by `RunResultStreaming._on_run_task_done`.
        result = await cls._run_loop(
            starting_agent=starting_agent,
            input=streamed_result.input_items,
            context_wrapper=streamed_result.context_wrapper,
            hooks=hooks,
            run_config=run_config,
            max_turns=max_turns,
            event_sink=event_sink,
        )

        streamed_result._apply_final_result(result)
        streamed_result.is_complete = True
        await queue.put(QUEUE_COMPLETE_SENTINEL)
        completion.set_result(streamed_result)

    @classmethod
    async def _run_loop(
        cls,
        *,
        starting_agent: Agent[TContext],
        input: str | list[TResponseInputItem],
        context_wrapper: RunContextWrapper[TContext],
        hooks: RunHooks[TContext],
        run_config: RunConfig,
        max_turns: int,
        event_sink: EventSink | None,
    ) -> RunResult:
        input_items = ItemHelpers.input_to_new_input_list(input)
        current_agent = starting_agent
        current_turn = 0
        # Everything the run produced, unfiltered. Becomes `new_items` of the result.
        generated_items: list[RunItem] = []
        # What the current agent starts from: the input, or the (filtered) view after a handoff.
        agent_history: list[TResponseInputItem] = list(input_items)
        # Items the current agent produced so far.
        agent_items: list[RunItem] = []
        input_guardrail_results: list[InputGuardrailResult] = []
        output_guardrail_results: list[OutputGuardrailResult] = []
        final_output: Any = None
        error: Exception | None = None
        model: Model | None = None
        should_run_agent_start_hooks = True

        logger.debug(
            f"{run_config.workflow_name}: running agent {starting_agent.name} "
            f"(depth {context_wrapper.depth})"
        )
        await run_hook_safely(hooks.on_run_start(context_wrapper, starting_agent, input_items))

        try:
            cls._check_depth(context_wrapper, run_config)
            # Resolve the model before anything else runs, so configuration errors fail fast.
            model = cls._get_model(starting_agent, run_config)

            input_guardrail_results = await RunImpl.run_input_guardrails(
                starting_agent,
                [*starting_agent.input_guardrails, *(run_config.input_guardrails or [])],
                input_items,
                context_wrapper,
            )
            RunImpl.check_input_guardrail_results(input_guardrail_results)

            while True:
                if current_turn >= max_turns:
                    raise MaxTurnsExceeded(f"Max turns ({max_turns}) exceeded")
                current_turn += 1
                logger.debug(f"Running agent {current_agent.name} (turn {current_turn})")

                if should_run_agent_start_hooks:
                    await asyncio.gather(
                        run_hook_safely(hooks.on_agent_start(context_wrapper, current_agent)),
                        (
                            run_hook_safely(
                                current_agent.hooks.on_start(context_wrapper, current_agent)
                            )
                            if current_agent.hooks
                            else _coro.noop_coroutine()
                        ),
                    )
                    should_run_agent_start_hooks = False

                if model is None:
                    model = cls._get_model(current_agent, run_config)

                turn_result = await cls._run_single_turn(
                    agent=current_agent,
                    model=model,
                    agent_history=agent_history,
                    agent_items=agent_items,
                    generated_items=generated_items,
                    hooks=hooks,
                    context_wrapper=context_wrapper,
                    run_config=run_config,
                    event_sink=event_sink,
                )

                if isinstance(turn_result.next_step, NextStepFinalOutput):
                    output_guardrail_results = await RunImpl.run_output_guardrails(
                        [*current_agent.output_guardrails, *(run_config.output_guardrails or [])],
                        current_agent,
                        turn_result.next_step.output,
                        context_wrapper,
                    )
                    final_output = RunImpl.apply_output_guardrail_results(
                        output_guardrail_results, turn_result.next_step.output
                    )
                    await RunImpl.run_final_output_hooks(
                        current_agent, context_wrapper, final_output
                    )
                    break
                elif isinstance(turn_result.next_step, NextStepHandoff):
                    # current_turn counts across handoffs.
                    current_agent = turn_result.next_step.new_agent
                    agent_history = turn_result.agent_history
                    agent_items = []
                    model = None
                    should_run_agent_start_hooks = True
                    if event_sink is not None:
                        await event_sink(AgentUpdatedStreamEvent(new_agent=current_agent))
                else:
                    agent_items.extend(turn_result.new_step_items)
        except AgentsException as exc:
            exc.run_data = RunErrorDetails(
                input=input,
                new_items=list(generated_items),
                last_agent=current_agent,
                context_wrapper=context_wrapper,
                turns=current_turn,
                input_guardrail_results=input_guardrail_results,
                output_guardrail_results=output_guardrail_results,
            )
            error = exc
        except Exception as exc:
            error = exc

        if error is not None:
            final_output = None
            logger.debug(f"Run of agent {current_agent.name} failed: {error!r}")
        else:
            logger.debug(f"Run finished with agent {current_agent.name} after {current_turn} turns")

        await run_hook_safely(
            hooks.on_run_end(context_wrapper, current_agent, input_items, final_output)
        )

        return RunResult(
            input=input,
            input_items=input_items,
            new_items=generated_items,
            final_output=final_output,
            success=error is None,
            error=error,
            input_guardrail_results=input_guardrail_results,
            output_guardrail_results=output_guardrail_results,
            context_wrapper=context_wrapper,
            turns=current_turn,
            _last_agent=current_agent,
        )

    @classmethod
    async def _run_single_turn(
        cls,
        *,
        agent: Agent[TContext],
        model: Model,
        agent_history: list[TResponseInputItem],
        agent_items: list[RunItem],
        generated_items: list[RunItem],
        hooks: RunHooks[TContext],
        context_wrapper: RunContextWrapper[TContext],
        run_config: RunConfig,
        event_sink: EventSink | None,
    ) -> SingleStepResult:
        # The system prompt is recomputed every turn and never becomes part of the transcript.
        system_message = await RunImpl.get_system_message(agent, context_wrapper)
        messages = [*system_message, *agent_history, *agent_items]
        model_settings = agent.model_settings.merge(run_config.model_settings)
        handoffs = agent.get_handoffs()
        output_schema = agent.get_output_schema()

        new_response = await RunImpl.get_new_response(
            agent=agent,
            model=model,
            messages=messages,
            settings=model_settings,
            handoffs=handoffs,
            output_schema=output_schema,
            event_sink=event_sink,
        )

        recorder = StepItemRecorder(generated_items=generated_items, event_sink=event_sink)
        await recorder.add(new_response, "message_output_created")

        processed_response = RunImpl.process_model_response(
            agent=agent, response=new_response, handoffs=handoffs
        )
        return await RunImpl.execute_tools_and_side_effects(
            agent=agent,
            new_response=new_response,
            processed_response=processed_response,
            output_schema=output_schema,
            agent_history=agent_history,
            pre_step_items=list(agent_items),
            recorder=recorder,
            hooks=hooks,
            context_wrapper=context_wrapper,
            run_config=run_config,
        )

    @classmethod
    def _get_model(cls, agent: Agent[Any], run_config: RunConfig) -> Model:
        try:
            if isinstance(run_config.model, Model):
                return run_config.model
            elif isinstance(run_config.model, str):
                return run_config.model_provider.get_model(run_config.model)
            elif isinstance(agent.model, Model):
                return agent.model

            return run_config.model_provider.get_model(agent.model)
        except AgentsException:
            raise
        except Exception as e:
            raise ModelProviderError(
                f"Could not resolve a model for agent {agent.name}: {e}", e
            ) from e

    @classmethod
    def _build_context_wrapper(
        cls,
        context: Any,
        parent_context: RunContextWrapper[Any] | None,
        run_config: RunConfig,
    ) -> RunContextWrapper[Any]:
        if parent_context is not None:
            return parent_context.nested()
        return RunContextWrapper(
            context=context,
            max_depth=run_config.max_agent_depth,
            model_provider=run_config.model_provider,
        )

    @classmethod
    def _check_depth(cls, context_wrapper: RunContextWrapper[Any], run_config: RunConfig) -> None:
        limits = [
            limit
            for limit in (context_wrapper.max_depth, run_config.max_agent_depth)
            if limit is not None
        ]
        if limits and context_wrapper.depth > min(limits):
            raise ConfigurationError(
                f"Maximum agent depth ({min(limits)}) exceeded at depth {context_wrapper.depth}"
            )

    @classmethod
    def _resolve_max_turns(cls, max_turns: int | None, run_config: RunConfig) -> int:
        if max_turns is not None:
            return max_turns
        if run_config.max_turns is not None:
            return run_config.max_turns
        return DEFAULT_MAX_TURNS
