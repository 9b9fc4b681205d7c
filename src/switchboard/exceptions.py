from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .agent import Agent
    from .guardrail import InputGuardrailResult, OutputGuardrailResult
    from .items import RunItem, TResponseInputItem
    from .run_context import RunContextWrapper


@dataclass
class RunErrorDetails:
    """Data collected from an agent run when an exception occurs."""

    input: str | list[TResponseInputItem]
    new_items: list[RunItem]
    last_agent: Agent[Any]
    context_wrapper: RunContextWrapper[Any]
    turns: int
    input_guardrail_results: list[InputGuardrailResult]
    output_guardrail_results: list[OutputGuardrailResult]

    def __str__(self) -> str:
        return (
            f"RunErrorDetails(last_agent={self.last_agent.name!r}, turns={self.turns}, "
            f"new_items={len(self.new_items)})"
        )


class AgentsException(Exception):
    """Base class for all exceptions raised by switchboard."""

    run_data: RunErrorDetails | None

    def __init__(self, *args: object) -> None:
        super().__init__(*args)
        self.run_data = None


class MaxTurnsExceeded(AgentsException):
    """Exception raised when the maximum number of turns is exceeded."""

    message: str

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ModelBehaviorError(AgentsException):
    """Exception raised when the model does something unexpected, e.g. producing a final output
    that does not match the agent's `output_type`.
    """

    message: str

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ModelProviderError(AgentsException):
    """Exception raised when the model backend (or the provider resolving it) fails. The
    underlying exception is available as `original` and as `__cause__`.
    """

    message: str
    original: BaseException | None

    def __init__(self, message: str, original: BaseException | None = None):
        self.message = message
        self.original = original
        super().__init__(message)


class UserError(AgentsException):
    """Exception raised when the user makes an error using the SDK."""

    message: str

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(UserError):
    """Exception raised for invalid configuration, e.g. a missing API key or duplicate tool
    names. Raised before any turn of a run begins."""


class ToolInvocationError(AgentsException):
    """A tool raised while being invoked. The runner recovers from these by sending the formatted
    error to the model as the tool's output."""

    tool_name: str
    original: BaseException

    def __init__(self, tool_name: str, original: BaseException):
        self.tool_name = tool_name
        self.original = original
        super().__init__(f"Error running tool {tool_name}: {original}")


class GuardrailTripwireTriggered(AgentsException):
    """Base class for input and output guardrail trips."""

    reason: str | None
    """The reason reported by the guardrail, if any."""


class InputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Exception raised when an input guardrail tripwire is triggered."""

    guardrail_result: InputGuardrailResult
    """The result data of the guardrail that was triggered."""

    def __init__(self, guardrail_result: InputGuardrailResult):
        self.guardrail_result = guardrail_result
        self.reason = guardrail_result.output.reason
        message = f"Input guardrail {guardrail_result.guardrail.get_name()} triggered tripwire"
        if self.reason:
            message = f"{message}: {self.reason}"
        super().__init__(message)


class OutputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Exception raised when an output guardrail tripwire is triggered."""

    guardrail_result: OutputGuardrailResult
    """The result data of the guardrail that was triggered."""

    def __init__(self, guardrail_result: OutputGuardrailResult):
        self.guardrail_result = guardrail_result
        self.reason = guardrail_result.output.reason
        message = f"Output guardrail {guardrail_result.guardrail.get_name()} triggered tripwire"
        if self.reason:
            message = f"{message}: {self.reason}"
        super().__init__(message)
