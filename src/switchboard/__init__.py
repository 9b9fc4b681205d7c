import logging
import sys

from .agent import Agent
from .agent_output import AgentOutputSchema
from .computer import AsyncComputer, Button, Computer, Environment
from .exceptions import (
    AgentsException,
    ConfigurationError,
    GuardrailTripwireTriggered,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceeded,
    ModelBehaviorError,
    ModelProviderError,
    OutputGuardrailTripwireTriggered,
    RunErrorDetails,
    ToolInvocationError,
    UserError,
)
from .guardrail import (
    GuardrailFunctionOutput,
    InputGuardrail,
    InputGuardrailResult,
    OutputGuardrail,
    OutputGuardrailResult,
    input_guardrail,
    output_guardrail,
)
from .handoffs import Handoff, HandoffInputData, HandoffInputFilter, handoff
from .items import (
    ItemHelpers,
    ModelResponse,
    RunItem,
    TextMessage,
    ToolCall,
    ToolResponse,
    TResponseInputItem,
)
from .lifecycle import AgentHooks, RunHooks
from .model_settings import ModelSettings
from .models.interface import Model, ModelProvider, ModelRetrySettings
from .models.openai_chatcompletions import OpenAIChatCompletionsModel
from .models.openai_provider import OpenAIProvider, OpenAIProviderConfig
from .models.openai_responses import OpenAIResponsesModel
from .result import RunResult, RunResultStreaming
from .run import DEFAULT_MAX_TURNS, RunConfig, Runner
from .run_context import RunContextWrapper, TContext
from .stream_events import (
    AgentUpdatedStreamEvent,
    RunItemStreamEvent,
    StreamEvent,
    TextDeltaStreamEvent,
)
from .tool import (
    ComputerTool,
    FileSearchTool,
    FunctionTool,
    FunctionToolResult,
    Tool,
    WebSearchTool,
    default_tool_error_function,
    function_tool,
)


def enable_verbose_stdout_logging():
    """Enables verbose logging to stdout. This is useful for debugging."""
    logger = logging.getLogger("switchboard")
    logger.setLevel(logging.DEBUG)
    logger.addHandler(logging.StreamHandler(sys.stdout))


__all__ = [
    "Agent",
    "Runner",
    "RunConfig",
    "DEFAULT_MAX_TURNS",
    "Model",
    "ModelProvider",
    "ModelRetrySettings",
    "OpenAIChatCompletionsModel",
    "OpenAIProvider",
    "OpenAIProviderConfig",
    "OpenAIResponsesModel",
    "AgentOutputSchema",
    "Computer",
    "AsyncComputer",
    "Environment",
    "Button",
    "AgentsException",
    "ConfigurationError",
    "GuardrailTripwireTriggered",
    "InputGuardrailTripwireTriggered",
    "OutputGuardrailTripwireTriggered",
    "MaxTurnsExceeded",
    "ModelBehaviorError",
    "ModelProviderError",
    "RunErrorDetails",
    "ToolInvocationError",
    "UserError",
    "InputGuardrail",
    "InputGuardrailResult",
    "OutputGuardrail",
    "OutputGuardrailResult",
    "GuardrailFunctionOutput",
    "input_guardrail",
    "output_guardrail",
    "handoff",
    "Handoff",
    "HandoffInputData",
    "HandoffInputFilter",
    "ItemHelpers",
    "ModelResponse",
    "RunItem",
    "TextMessage",
    "ToolCall",
    "ToolResponse",
    "TResponseInputItem",
    "AgentHooks",
    "RunHooks",
    "ModelSettings",
    "RunResult",
    "RunResultStreaming",
    "RunContextWrapper",
    "TContext",
    "StreamEvent",
    "AgentUpdatedStreamEvent",
    "RunItemStreamEvent",
    "TextDeltaStreamEvent",
    "Tool",
    "FunctionTool",
    "FunctionToolResult",
    "ComputerTool",
    "FileSearchTool",
    "WebSearchTool",
    "function_tool",
    "default_tool_error_function",
    "enable_verbose_stdout_logging",
]
