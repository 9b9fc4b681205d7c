from __future__ import annotations

import logging
from collections.abc import Sequence

from switchboard import (
    AsyncComputer,
    Computer,
    ComputerTool,
    FileSearchTool,
    RunContextWrapper,
    WebSearchTool,
    enable_verbose_stdout_logging,
)
from switchboard.computer import Button, Environment, Point


class FakeComputer(Computer):
    def __init__(self) -> None:
        self.actions: list[tuple] = []

    @property
    def environment(self) -> Environment:
        return "ubuntu"

    @property
    def dimensions(self) -> Point:
        return (1024, 768)

    def screenshot(self) -> str:
        return "iVBORw0KGgo="

    def click(self, x: int, y: int, button: Button) -> None:
        self.actions.append(("click", x, y, button))

    def double_click(self, x: int, y: int) -> None:
        self.actions.append(("double_click", x, y))

    def scroll(self, x: int, y: int, scroll_x: int, scroll_y: int) -> None:
        self.actions.append(("scroll", x, y, scroll_x, scroll_y))

    def type(self, text: str) -> None:
        self.actions.append(("type", text))

    def wait(self) -> None:
        self.actions.append(("wait",))

    def move(self, x: int, y: int) -> None:
        self.actions.append(("move", x, y))

    def keypress(self, keys: Sequence[str]) -> None:
        self.actions.append(("keypress", tuple(keys)))

    def drag(self, path: Sequence[Point]) -> None:
        self.actions.append(("drag", tuple(path)))


class FakeAsyncComputer(AsyncComputer):
    @property
    def environment(self) -> Environment:
        return "browser"

    @property
    def dimensions(self) -> Point:
        return (1280, 720)

    async def screenshot(self) -> str:
        return ""

    async def click(self, x: int, y: int, button: Button) -> None: ...

    async def double_click(self, x: int, y: int) -> None: ...

    async def scroll(self, x: int, y: int, scroll_x: int, scroll_y: int) -> None: ...

    async def type(self, text: str) -> None: ...

    async def wait(self) -> None: ...

    async def move(self, x: int, y: int) -> None: ...

    async def keypress(self, keys: Sequence[str]) -> None: ...

    async def drag(self, path: Sequence[Point]) -> None: ...


def test_hosted_tool_names():
    assert FileSearchTool(vector_store_ids=["vs"]).name == "file_search"
    assert WebSearchTool().name == "web_search_preview"
    assert ComputerTool(computer=FakeComputer()).name == "computer_use_preview"


def test_computer_tool_declaration():
    assert ComputerTool(computer=FakeComputer()).declaration() == {
        "type": "computer_use_preview",
        "environment": "ubuntu",
        "display_width": 1024,
        "display_height": 768,
    }
    assert ComputerTool(computer=FakeAsyncComputer()).declaration()["environment"] == "browser"


def test_computer_actions_are_plain_method_calls():
    computer = FakeComputer()
    computer.click(10, 20, "left")
    computer.drag([(0, 0), (5, 5)])
    computer.keypress(["ctrl", "c"])

    assert computer.actions == [
        ("click", 10, 20, "left"),
        ("drag", ((0, 0), (5, 5))),
        ("keypress", ("ctrl", "c")),
    ]


def test_enable_verbose_stdout_logging():
    logger = logging.getLogger("switchboard")
    handlers_before = list(logger.handlers)
    level_before = logger.level
    try:
        enable_verbose_stdout_logging()
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == len(handlers_before) + 1
    finally:
        logger.handlers = handlers_before
        logger.setLevel(level_before)


def test_nested_context_wrapper():
    wrapper = RunContextWrapper(context={"a": 1}, max_depth=3)
    nested = wrapper.nested()

    assert nested.context is wrapper.context
    assert nested.depth == 1
    assert nested.max_depth == 3
    assert wrapper.depth == 0
