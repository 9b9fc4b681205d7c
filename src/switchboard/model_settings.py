from __future__ import annotations

import dataclasses
from dataclasses import dataclass, fields
from typing import Any, Literal


@dataclass(frozen=True)
class ModelSettings:
    """Settings to use when calling an LLM.

    This class holds optional model configuration parameters (e.g. temperature,
    top_p, penalties, etc.). Every field is optional; `None` means "not set", so the provider
    default applies.

    Not all models/providers support all of these parameters, so please check the API documentation
    for the specific model and provider you are using.
    """

    temperature: float | None = None
    """The temperature to use when calling the model."""

    top_p: float | None = None
    """The top_p to use when calling the model."""

    max_tokens: int | None = None
    """The maximum number of output tokens to generate."""

    presence_penalty: float | None = None
    """The presence penalty to use when calling the model."""

    frequency_penalty: float | None = None
    """The frequency penalty to use when calling the model."""

    stop_sequences: tuple[str, ...] | None = None
    """Sequences at which the model stops generating."""

    seed: int | None = None
    """A seed for best-effort deterministic sampling."""

    tool_choice: Literal["auto", "required", "none"] | str | None = None
    """The tool choice to use when calling the model."""

    parallel_tool_calls: bool | None = None
    """Whether the model may request several tool calls in one response."""

    def __post_init__(self) -> None:
        if self.stop_sequences is not None and not isinstance(self.stop_sequences, tuple):
            if isinstance(self.stop_sequences, str):
                object.__setattr__(self, "stop_sequences", (self.stop_sequences,))
            else:
                object.__setattr__(self, "stop_sequences", tuple(self.stop_sequences))

    def merge(self, override: ModelSettings | None = None, **overrides: Any) -> ModelSettings:
        """Produce a new ModelSettings by overlaying any non-None values from `override` (and
        then from keyword `overrides`) on top of this instance. Neither operand is modified.

        ```
        ModelSettings(temperature=0.9, top_p=1).merge(temperature=0.2)
        # -> ModelSettings(temperature=0.2, top_p=1)
        ```
        """
        unknown = set(overrides) - {f.name for f in fields(self)}
        if unknown:
            raise TypeError(f"Unknown model settings: {sorted(unknown)}")

        changes: dict[str, Any] = {}
        if override is not None:
            changes.update(override._set_values())
        changes.update({k: v for k, v in overrides.items() if v is not None})
        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    def to_json_dict(self) -> dict[str, Any]:
        """The settings that are set, as a JSON-compatible dict."""
        values = self._set_values()
        if "stop_sequences" in values:
            values["stop_sequences"] = list(values["stop_sequences"])
        return values

    @property
    def is_default(self) -> bool:
        return not self._set_values()

    def _set_values(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v!r}" for k, v in self._set_values().items())
        return f"ModelSettings({values})"

