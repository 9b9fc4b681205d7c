from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Literal, Union, get_type_hints, overload

from pydantic import BaseModel, ConfigDict, Field, create_model
from typing_extensions import TypeAlias

from .computer import AsyncComputer, Computer, describe_computer
from .exceptions import ModelBehaviorError, UserError
from .logger import logger
from .run_context import RunContextWrapper
from .util import _transforms
from .util._types import MaybeAwaitable

if TYPE_CHECKING:
    from .items import ToolResponse


ToolErrorFunction = Callable[[RunContextWrapper[Any], Exception], MaybeAwaitable[str]]
"""Turns an exception raised by a tool into the text the model sees as the tool's output."""


@dataclass
class FunctionTool:
    """A tool that wraps a function. In most cases, you should use  the `function_tool` helpers to
    create a FunctionTool, as they let you easily wrap a Python function.
    """

    name: str
    """The name of the tool, as shown to the LLM. Generally the name of the function."""

    description: str
    """A description of the tool, as shown to the LLM."""

    params_json_schema: dict[str, Any]
    """The JSON schema for the tool's parameters. Passed through to the model untouched."""

    on_invoke_tool: Callable[[RunContextWrapper[Any], str], MaybeAwaitable[str]]
    """A function that invokes the tool with the given context and parameters. The params passed
    are:
    1. The run context.
    2. The arguments from the LLM, as a JSON string, exactly as the model produced them.

    You must return a string representation of the tool output. If the function raises, the
    exception is formatted with `failure_error_function` (or the run's `tool_error_function`) and
    sent back to the LLM as the tool output; the run continues.
    """

    strict_json_schema: bool = True
    """Whether the JSON schema is in strict mode. We **strongly** recommend setting this to True,
    as it increases the likelihood of correct JSON input."""

    failure_error_function: ToolErrorFunction | None = None
    """Overrides the run's `tool_error_function` for this tool. If the error function itself
    raises, the run fails with that error."""


@dataclass
class FileSearchTool:
    """A hosted tool that lets the LLM search through a vector store. It runs on the provider's
    side; the runner only hands the declaration to the model.
    """

    vector_store_ids: list[str]
    """The IDs of the vector stores to search."""

    max_num_results: int | None = None
    """The maximum number of results to return."""

    include_search_results: bool = False
    """Whether to include the search results in the output produced by the LLM."""

    ranking_options: dict[str, Any] | None = None
    """Ranking options for search."""

    filters: dict[str, Any] | None = None
    """A filter to apply based on file attributes."""

    @property
    def name(self):
        return "file_search"


@dataclass
class WebSearchTool:
    """A hosted tool that lets the LLM search the web. It runs on the provider's side."""

    user_location: dict[str, Any] | None = None
    """Optional location for the search. Lets you customize results to be relevant to a location.
    """

    search_context_size: Literal["low", "medium", "high"] = "medium"
    """The amount of context to use for the search."""

    @property
    def name(self):
        return "web_search_preview"


@dataclass
class ComputerTool:
    """A hosted tool that lets the LLM control a computer. The declaration (environment and screen
    size) is handed to the model; actions are carried out by the `computer` implementation outside
    the run loop."""

    computer: Computer | AsyncComputer
    """The computer implementation, which describes the environment and dimensions of the computer,
    as well as implements the computer actions like click, screenshot, etc.
    """

    @property
    def name(self):
        return "computer_use_preview"

    def declaration(self) -> dict[str, Any]:
        """The tool as declared to the model: its type plus the computer's environment and
        screen size."""
        return {"type": self.name, **describe_computer(self.computer)}


Tool: TypeAlias = Union[FunctionTool, FileSearchTool, WebSearchTool, ComputerTool]
"""A tool that can be used in an agent."""

HOSTED_TOOL_TYPES: tuple[type, ...] = (FileSearchTool, WebSearchTool, ComputerTool)


@dataclass
class FunctionToolResult:
    tool: FunctionTool
    """The tool that was run."""

    output: str
    """The output of the tool, or the formatted error if it failed."""

    run_item: ToolResponse
    """The tool response item appended to the transcript."""

    error: Exception | None = None
    """The exception raised by the tool, if it failed."""


def default_tool_error_function(ctx: RunContextWrapper[Any], error: Exception) -> str:
    """The default tool error function, which just returns a generic error message."""
    return f"Error: {error}"


ToolFunction = Callable[..., Any]


@dataclass
class _FuncSchema:
    name: str
    description: str
    params_pydantic_model: type[BaseModel]
    params_json_schema: dict[str, Any]
    takes_context: bool
    param_names: list[str] = field(default_factory=list)


def _build_function_schema(
    func: Callable[..., Any], name_override: str | None, description_override: str | None
) -> _FuncSchema:
    sig = inspect.signature(func)
    try:
        type_hints = get_type_hints(func)
    except Exception:
        type_hints = {}

    params = list(sig.parameters.values())
    takes_context = False
    if params:
        first = params[0]
        ann = type_hints.get(first.name, first.annotation)
        origin = getattr(ann, "__origin__", ann)
        if inspect.isclass(origin) and issubclass(origin, RunContextWrapper):
            takes_context = True
            params = params[1:]

    fields: dict[str, Any] = {}
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise UserError(f"Function tool {func.__name__} cannot take *args or **kwargs")
        ann = type_hints.get(param.name, param.annotation)
        if ann is inspect.Parameter.empty:
            ann = Any
        else:
            origin = getattr(ann, "__origin__", ann)
            if inspect.isclass(origin) and issubclass(origin, RunContextWrapper):
                raise UserError(
                    f"RunContextWrapper param found at non-first position in {func.__name__}"
                )
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (ann, Field(default=default))

    model = create_model(
        f"{func.__name__}_args",
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )

    doc = inspect.getdoc(func) or ""
    description = description_override or doc.split("\n\n")[0].strip()
    name = name_override or func.__name__
    return _FuncSchema(
        name=name,
        description=description,
        params_pydantic_model=model,
        params_json_schema=model.model_json_schema(),
        takes_context=takes_context,
        param_names=[p.name for p in params],
    )


def _stringify_tool_output(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, default=str)


@overload
def function_tool(
    func: ToolFunction,
    *,
    name_override: str | None = None,
    description_override: str | None = None,
    failure_error_function: ToolErrorFunction | None = None,
    strict_mode: bool = True,
) -> FunctionTool:
    """Overload for usage as @function_tool (no parentheses)."""
    ...


@overload
def function_tool(
    *,
    name_override: str | None = None,
    description_override: str | None = None,
    failure_error_function: ToolErrorFunction | None = None,
    strict_mode: bool = True,
) -> Callable[[ToolFunction], FunctionTool]:
    """Overload for usage as @function_tool(...)."""
    ...


def function_tool(
    func: ToolFunction | None = None,
    *,
    name_override: str | None = None,
    description_override: str | None = None,
    failure_error_function: ToolErrorFunction | None = None,
    strict_mode: bool = True,
) -> FunctionTool | Callable[[ToolFunction], FunctionTool]:
    """
    Decorator to create a FunctionTool from a function. By default, we will:
    1. Build the JSON schema of the tool's parameters from the function signature.
    2. Use the first paragraph of the function's docstring as the tool description.

    If the function takes a `RunContextWrapper` as the first argument, it *must* match the
    context type of the agent that uses the tool. Arguments produced by the model are validated
    against the signature inside the tool; invalid arguments raise, and the runner reports the
    error back to the model.

    Args:
        func: The function to wrap.
        name_override: If provided, use this name for the tool instead of the function's name.
        description_override: If provided, use this description for the tool instead of the
            function's docstring.
        failure_error_function: If provided, use this function to generate an error message when
            the tool call fails. Defaults to the run's `tool_error_function`.
        strict_mode: Whether to enable strict mode for the tool's JSON schema.
    """

    def _create_function_tool(the_func: ToolFunction) -> FunctionTool:
        schema = _build_function_schema(the_func, name_override, description_override)
        tool_name = _transforms.transform_string_function_style(schema.name)

        async def _on_invoke_tool(ctx: RunContextWrapper[Any], input: str) -> str:
            try:
                parsed = schema.params_pydantic_model.model_validate_json(input or "{}")
            except ValueError as e:
                raise ModelBehaviorError(
                    f"Invalid JSON input for tool {tool_name}: {e}"
                ) from e

            kwargs = {name: getattr(parsed, name) for name in schema.param_names}
            logger.debug(f"Invoking tool {tool_name} with input {input}")

            if schema.takes_context:
                result = the_func(ctx, **kwargs)
            else:
                result = the_func(**kwargs)
            if inspect.isawaitable(result):
                result = await result

            logger.debug(f"Tool {tool_name} returned {result}")
            return _stringify_tool_output(result)

        return FunctionTool(
            name=tool_name,
            description=schema.description,
            params_json_schema=schema.params_json_schema,
            on_invoke_tool=_on_invoke_tool,
            strict_json_schema=strict_mode,
            failure_error_function=failure_error_function,
        )

    # If func is actually a callable, we were used as @function_tool with no parentheses
    if callable(func):
        return _create_function_tool(func)

    # Otherwise, we were used as @function_tool(...), so return a decorator
    def decorator(real_func: ToolFunction) -> FunctionTool:
        return _create_function_tool(real_func)

    return decorator

