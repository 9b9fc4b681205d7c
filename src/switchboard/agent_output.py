from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError
from typing_extensions import TypedDict, get_args, get_origin, is_typeddict

from .exceptions import ModelBehaviorError, UserError

_WRAPPER_DICT_KEY = "response"


@dataclass(init=False)
class AgentOutputSchema:
    """An object that captures the JSON schema of the output, as well as validating/parsing JSON
    produced by the LLM into the output type.
    """

    output_type: type[Any]
    """The type of the output."""

    _type_adapter: TypeAdapter[Any]
    """A type adapter that wraps the output type, so that we can validate JSON."""

    _is_wrapped: bool
    """Whether the output type is wrapped in a dictionary. This is generally done if the base
    output type cannot be represented as a JSON Schema object.
    """

    _output_schema: dict[str, Any]
    """The JSON schema of the output."""

    def __init__(self, output_type: type[Any]):
        if output_type is None or output_type is str:
            raise UserError("Plain text output does not need an output schema")

        self.output_type = output_type
        self._is_wrapped = not _is_subclass_of_base_model_or_dict(output_type)

        if self._is_wrapped:
            OutputType = TypedDict(  # type: ignore[misc]
                "OutputType",
                {
                    _WRAPPER_DICT_KEY: output_type,  # type: ignore
                },
            )
            self._type_adapter = TypeAdapter(OutputType)
        else:
            self._type_adapter = TypeAdapter(output_type)
        self._output_schema = self._type_adapter.json_schema()

    def name(self) -> str:
        """The name of the output type."""
        return _type_to_str(self.output_type)

    def json_schema(self) -> dict[str, Any]:
        """The JSON schema of the output type. Passed to the model as a structured-output
        contract."""
        return self._output_schema

    def validate_json(self, json_str: str) -> Any:
        """Validate a JSON string against the output type. Returns the validated object, or raises
        a `ModelBehaviorError` if the JSON is invalid.
        """
        try:
            validated = self._type_adapter.validate_json(json_str)
        except ValidationError as e:
            raise ModelBehaviorError(
                f"Invalid JSON when parsing {json_str!r} for {self.name()}; {e}"
            ) from e

        if self._is_wrapped:
            if not isinstance(validated, dict):
                raise ModelBehaviorError(
                    f"Expected a dict, got {type(validated)} for JSON: {json_str}"
                )
            if _WRAPPER_DICT_KEY not in validated:
                raise ModelBehaviorError(
                    f"Could not find key {_WRAPPER_DICT_KEY} in JSON: {json_str}"
                )
            return validated[_WRAPPER_DICT_KEY]
        return validated


def _is_subclass_of_base_model_or_dict(t: Any) -> bool:
    if is_typeddict(t):
        return True

    origin = get_origin(t) or t
    if not isinstance(origin, type):
        return False
    return issubclass(origin, (BaseModel, dict))


def _type_to_str(t: type[Any]) -> str:
    origin = get_origin(t)
    args = get_args(t)

    if origin is None:
        # It's a simple type like `str`, `int`, etc.
        return t.__name__
    elif args:
        args_str = ", ".join(_type_to_str(arg) for arg in args)
        return f"{origin.__name__}[{args_str}]"
    else:
        return str(t)
