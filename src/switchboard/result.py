from __future__ import annotations

import abc
import asyncio
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, cast

from typing_extensions import TypeVar

from ._run_impl import QUEUE_COMPLETE_SENTINEL, QueueCompleteSentinel
from .guardrail import InputGuardrailResult, OutputGuardrailResult
from .items import RunItem, TResponseInputItem
from .run_context import RunContextWrapper
from .stream_events import StreamEvent

if TYPE_CHECKING:
    from .agent import Agent

T = TypeVar("T")


@dataclass
class RunResultBase(abc.ABC):
    input: str | list[TResponseInputItem]
    """The original input passed to `run()`."""

    input_items: list[TResponseInputItem]
    """The original input, normalized to items. A string input becomes one user message."""

    new_items: list[RunItem]
    """The new items generated during the agent run, in the order they were produced. These
    include model responses, tool responses and handoff transfer messages. Handoff input filters
    never change this list; they only change what the next agent sees.
    """

    final_output: Any
    """The output of the last agent, or None if the run failed."""

    success: bool
    """Whether the run produced a final output that passed the output guardrails."""

    error: Exception | None
    """Why the run failed, if it did. Usually an `AgentsException` with `run_data` attached."""

    input_guardrail_results: list[InputGuardrailResult]
    """Guardrail results for the input messages."""

    output_guardrail_results: list[OutputGuardrailResult]
    """Guardrail results for the final output of the agent."""

    context_wrapper: RunContextWrapper[Any]
    """The context wrapper for the agent run."""

    turns: int
    """The number of model calls made during the run."""

    @property
    @abc.abstractmethod
    def last_agent(self) -> Agent[Any]:
        """The last agent that was run."""

    @property
    def all_items(self) -> list[TResponseInputItem]:
        """The full transcript: the original input items followed by `new_items`."""
        return [*self.input_items, *self.new_items]

    def final_output_as(self, cls: type[T], raise_if_incorrect_type: bool = False) -> T:
        """A convenience method to cast the final output to a specific type. By default, the cast
        is only for the typechecker. If you set `raise_if_incorrect_type` to True, we'll raise a
        TypeError if the final output is not of the given type.

        Args:
            cls: The type to cast the final output to.
            raise_if_incorrect_type: If True, we'll raise a TypeError if the final output is not of
                the given type.

        Returns:
            The final output casted to the given type.
        """
        if raise_if_incorrect_type and not isinstance(self.final_output, cls):
            raise TypeError(f"Final output is not of type {cls.__name__}")

        return cast(T, self.final_output)

    def to_input_list(self) -> list[TResponseInputItem]:
        """Creates a new input list, merging the original input with all the new items generated.
        Pass it to the next `Runner.run()` to continue the conversation."""
        return self.all_items

    def raise_for_error(self) -> None:
        """Raise the stored error, if the run failed."""
        if self.error is not None:
            raise self.error


@dataclass
class RunResult(RunResultBase):
    _last_agent: Agent[Any] = field(repr=False, default=cast("Agent[Any]", None))

    @property
    def last_agent(self) -> Agent[Any]:
        """The last agent that was run."""
        return self._last_agent

    def __str__(self) -> str:
        status = "success" if self.success else f"failed: {self.error!r}"
        return (
            f"RunResult(last_agent={self._last_agent.name!r}, turns={self.turns}, "
            f"new_items={len(self.new_items)}, {status})"
        )


@dataclass
class RunResultStreaming(RunResultBase):
    """The result of an agent run in streaming mode. You can use the `stream_events` method to
    receive semantic events as they are generated.

    The run itself executes as an `asyncio.Task`. Until it finishes, `new_items`,
    `final_output` etc. are empty; `current_agent` tracks the agent that is running. Once the last
    event has been queued, the result is filled in, `is_complete` is set and `completion` resolves
    with this object.
    """

    current_agent: Agent[Any] = field(repr=False, default=cast("Agent[Any]", None))
    """The current agent that is running."""

    is_complete: bool = False
    """Whether the agent has finished running."""

    completion: asyncio.Future[RunResultStreaming] | None = field(default=None, repr=False)
    """Resolves with this result once the run has finished and every event has been queued."""

    # Queues that the background run_loop writes to
    _event_queue: asyncio.Queue[StreamEvent | QueueCompleteSentinel] = field(
        default_factory=asyncio.Queue, repr=False
    )

    # Store the asyncio task that runs the loop
    _run_impl_task: asyncio.Task[Any] | None = field(default=None, repr=False)

    @property
    def last_agent(self) -> Agent[Any]:
        """The last agent that was run. Updates as the agent run progresses, so the true last agent
        is only available after the agent run is complete.
        """
        return self.current_agent

    def cancel(self) -> None:
        """Cancels the streaming run, stopping the background task. `completion` is cancelled
        too, and `stream_events()` ends after the events already queued."""
        if self._run_impl_task and not self._run_impl_task.done():
            self._run_impl_task.cancel()

    async def stream_events(self) -> AsyncIterator[StreamEvent]:
        """Stream events for new items as they are generated. Use the `type` field of each event
        to tell the kinds apart.

        The stream ends once the run is complete. A failed run does not raise here; check
        `success` and `error` (or call `raise_for_error()`) afterwards.
        """
        task = self._run_impl_task
        while True:
            if task is None:
                item = await self._event_queue.get()
            elif task.done():
                # Drain what the run queued before it stopped.
                if self._event_queue.empty():
                    break
                item = self._event_queue.get_nowait()
            else:
                getter = asyncio.ensure_future(self._event_queue.get())
                try:
                    await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    if not getter.done():
                        getter.cancel()
                if getter.cancelled():
                    continue
                item = getter.result()

            self._event_queue.task_done()
            if isinstance(item, QueueCompleteSentinel):
                break
            yield item

    def _on_run_task_done(self, task: asyncio.Task[Any]) -> None:
        # Runs for every way the task can end, including a cancel before its first step.
        self.is_complete = True
        if self.completion is None or self.completion.done():
            return
        if task.cancelled():
            self.completion.cancel()
        elif task.exception() is not None:
            self.completion.set_exception(cast(BaseException, task.exception()))
        # With a full queue, `stream_events` stops once the task is done and the queue is drained.
        with contextlib.suppress(asyncio.QueueFull):
            self._event_queue.put_nowait(QUEUE_COMPLETE_SENTINEL)

    def _apply_final_result(self, result: RunResultBase) -> None:
        self.input_items = result.input_items
        self.new_items = result.new_items
        self.final_output = result.final_output
        self.success = result.success
        self.error = result.error
        self.input_guardrail_results = result.input_guardrail_results
        self.output_guardrail_results = result.output_guardrail_results
        self.turns = result.turns
        self.current_agent = result.last_agent
