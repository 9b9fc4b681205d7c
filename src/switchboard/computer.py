from __future__ import annotations

import abc
from collections.abc import Sequence
from typing import Literal, Union

Environment = Literal["mac", "windows", "ubuntu", "browser"]
"""The kind of screen a computer exposes to the model."""

Button = Literal["left", "right", "wheel", "back", "forward"]
"""The mouse buttons a click may use."""

Point = tuple[int, int]


class _ComputerBase(abc.ABC):
    @property
    @abc.abstractmethod
    def environment(self) -> Environment:
        """The environment the model is told it is controlling."""

    @property
    @abc.abstractmethod
    def dimensions(self) -> Point:
        """Screen size as (width, height) in pixels."""


class Computer(_ComputerBase):
    """Primitive actions on a screen, carried out synchronously.

    Implement this for a backend that blocks while an action runs (e.g. a local VM driver), and
    pass an instance to `ComputerTool`. Coordinates are pixels from the top-left corner. The
    runner never calls these methods itself; the model's requests are executed by whatever owns
    the tool.
    """

    @abc.abstractmethod
    def screenshot(self) -> str:
        """Capture the screen and return it as a base64-encoded PNG."""

    @abc.abstractmethod
    def click(self, x: int, y: int, button: Button) -> None: ...

    @abc.abstractmethod
    def double_click(self, x: int, y: int) -> None: ...

    @abc.abstractmethod
    def scroll(self, x: int, y: int, scroll_x: int, scroll_y: int) -> None:
        """Scroll by (scroll_x, scroll_y) with the pointer at (x, y)."""

    @abc.abstractmethod
    def type(self, text: str) -> None: ...

    @abc.abstractmethod
    def wait(self) -> None:
        """Pause briefly, e.g. while a page loads."""

    @abc.abstractmethod
    def move(self, x: int, y: int) -> None: ...

    @abc.abstractmethod
    def keypress(self, keys: Sequence[str]) -> None:
        """Press `keys` together, e.g. `["ctrl", "c"]`."""

    @abc.abstractmethod
    def drag(self, path: Sequence[Point]) -> None:
        """Press the left button at the first point, move through the rest and release."""


class AsyncComputer(_ComputerBase):
    """Same actions as `Computer`, for backends driven from the event loop (e.g. a remote
    browser session)."""

    @abc.abstractmethod
    async def screenshot(self) -> str: ...

    @abc.abstractmethod
    async def click(self, x: int, y: int, button: Button) -> None: ...

    @abc.abstractmethod
    async def double_click(self, x: int, y: int) -> None: ...

    @abc.abstractmethod
    async def scroll(self, x: int, y: int, scroll_x: int, scroll_y: int) -> None: ...

    @abc.abstractmethod
    async def type(self, text: str) -> None: ...

    @abc.abstractmethod
    async def wait(self) -> None: ...

    @abc.abstractmethod
    async def move(self, x: int, y: int) -> None: ...

    @abc.abstractmethod
    async def keypress(self, keys: Sequence[str]) -> None: ...

    @abc.abstractmethod
    async def drag(self, path: Sequence[Point]) -> None: ...


AnyComputer = Union[Computer, AsyncComputer]


def describe_computer(computer: AnyComputer) -> dict[str, object]:
    """The declaration a model needs for a computer: its environment and screen size."""
    width, height = computer.dimensions
    return {
        "environment": computer.environment,
        "display_width": width,
        "display_height": height,
    }
