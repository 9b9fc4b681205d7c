from __future__ import annotations

import json
from typing import Any

import pytest
from pydantic import BaseModel

from switchboard import (
    Agent,
    AgentHooks,
    ConfigurationError,
    ModelBehaviorError,
    ModelProviderError,
    ModelResponse,
    ModelSettings,
    RunConfig,
    RunContextWrapper,
    RunHooks,
    Runner,
    TextMessage,
    ToolResponse,
    function_tool,
)

from .fake_model import FakeModel, FakeModelProvider
from .test_responses import get_function_tool, get_function_tool_call, get_text_message


@pytest.mark.asyncio
async def test_simple_first_run():
    model = FakeModel()
    agent = Agent(name="test", model=model)
    model.set_next_output([get_text_message("hi")])

    result = await Runner.run(agent, input="hello")

    assert result.success
    assert result.error is None
    assert result.final_output == "hi"
    assert len(result.new_items) == 1
    assert isinstance(result.new_items[0], ModelResponse)
    assert result.new_items[0].agent_name == "test"
    assert result.last_agent is agent
    assert result.turns == 1

    assert len(result.all_items) == 2
    assert result.all_items[0].content == "hello"
    assert result.all_items[1] is result.new_items[0]
    assert result.to_input_list() == result.all_items


@pytest.mark.asyncio
async def test_list_input_is_used_as_is():
    model = FakeModel([get_text_message("done")])
    agent = Agent(name="test", model=model)
    history = [
        TextMessage(role="user", content="first"),
        TextMessage(role="assistant", content="answer"),
        TextMessage(role="user", content="second"),
    ]

    result = await Runner.run(agent, input=history)

    assert result.input_items == history
    assert model.last_turn_args["messages"] == history
    assert result.all_items[:3] == history


@pytest.mark.asyncio
async def test_subsequent_runs_continue_the_conversation():
    model = FakeModel()
    agent = Agent(name="test", model=model)
    model.add_multiple_turn_outputs([[get_text_message("first")], [get_text_message("second")]])

    first = await Runner.run(agent, input="one")
    second = await Runner.run(agent, input=[*first.to_input_list(), TextMessage("user", "two")])

    assert second.final_output == "second"
    assert len(second.new_items) == 1
    assert [item.content for item in model.last_turn_args["messages"]] == ["one", "first", "two"]


@pytest.mark.asyncio
async def test_system_prompt_is_sent_but_never_recorded():
    model = FakeModel()
    agent = Agent(
        name="test",
        model=model,
        instructions="You are terse.",
        tools=[get_function_tool("foo", "result")],
    )
    model.add_multiple_turn_outputs(
        [[get_function_tool_call("foo", "{}")], [get_text_message("done")]]
    )

    result = await Runner.run(agent, input="hello")

    for call in model.calls:
        first = call["messages"][0]
        assert isinstance(first, TextMessage)
        assert first.role == "system"
        assert first.content == "You are terse."
    assert all(
        not (isinstance(item, TextMessage) and item.role == "system") for item in result.all_items
    )


@pytest.mark.asyncio
async def test_dynamic_instructions_recomputed_each_turn():
    counter = {"turn": 0}

    def instructions(ctx: RunContextWrapper[Any], agent: Agent[Any]) -> str:
        counter["turn"] += 1
        return f"turn {counter['turn']}"

    model = FakeModel()
    agent = Agent(
        name="test",
        model=model,
        instructions=instructions,
        tools=[get_function_tool("foo", "result")],
    )
    model.add_multiple_turn_outputs(
        [[get_function_tool_call("foo", "{}")], [get_text_message("done")]]
    )

    await Runner.run(agent, input="hello")

    assert [call["messages"][0].content for call in model.calls] == ["turn 1", "turn 2"]


@pytest.mark.asyncio
async def test_tool_output_is_seen_on_next_turn():
    model = FakeModel()
    agent = Agent(name="test", model=model, tools=[get_function_tool("foo", "tool_result")])
    model.add_multiple_turn_outputs(
        [
            [get_text_message("calling"), get_function_tool_call("foo", "{}")],
            [get_text_message("done")],
        ]
    )

    result = await Runner.run(agent, input="hello")

    assert result.final_output == "done"
    assert result.turns == 2
    assert len(result.new_items) == 3
    first_response, tool_response, final_response = result.new_items
    assert isinstance(first_response, ModelResponse)
    assert first_response.content == "calling"
    assert isinstance(tool_response, ToolResponse)
    assert tool_response.output == "tool_result"
    assert tool_response.tool_call_id == first_response.tool_calls[0].id
    assert final_response.content == "done"

    second_call_messages = model.calls[1]["messages"]
    assert second_call_messages[-2:] == [first_response, tool_response]


@pytest.mark.asyncio
async def test_context_is_shared_with_tools():
    seen: list[Any] = []

    @function_tool
    def remember(ctx: RunContextWrapper[dict[str, int]], value: int) -> str:
        ctx.context["total"] += value
        seen.append(ctx)
        return "ok"

    context = {"total": 0}
    model = FakeModel()
    agent = Agent(name="test", model=model, tools=[remember])
    model.add_multiple_turn_outputs(
        [
            [
                get_function_tool_call("remember", json.dumps({"value": 2})),
                get_function_tool_call("remember", json.dumps({"value": 3})),
            ],
            [get_text_message("done")],
        ]
    )

    result = await Runner.run(agent, input="hello", context=context)

    assert result.success
    assert context["total"] == 5
    assert seen[0] is seen[1] is result.context_wrapper
    assert result.context_wrapper.context is context
    assert result.context_wrapper.depth == 0


@pytest.mark.asyncio
async def test_model_settings_are_merged():
    model = FakeModel([get_text_message("ok")])
    agent = Agent(
        name="test", model=model, model_settings=ModelSettings(temperature=0.9, top_p=1)
    )

    await Runner.run(
        agent, input="hello", run_config=RunConfig(model_settings=ModelSettings(temperature=0.2))
    )

    assert model.last_turn_args["settings"] == ModelSettings(temperature=0.2, top_p=1)
    assert agent.model_settings == ModelSettings(temperature=0.9, top_p=1)


@pytest.mark.asyncio
async def test_run_config_model_overrides_agent_model():
    agent_model = FakeModel([get_text_message("agent")])
    config_model = FakeModel([get_text_message("config")])
    agent = Agent(name="test", model=agent_model)

    result = await Runner.run(agent, input="hello", run_config=RunConfig(model=config_model))

    assert result.final_output == "config"
    assert agent_model.calls == []


@pytest.mark.asyncio
async def test_model_names_resolved_through_provider():
    provider = FakeModelProvider(FakeModel([get_text_message("ok")]))

    named = Agent(name="named", model="my-model")
    await Runner.run(named, input="hello", run_config=RunConfig(model_provider=provider))

    unnamed = Agent(name="unnamed")
    await Runner.run(unnamed, input="hello", run_config=RunConfig(model_provider=provider))

    config_named = Agent(name="config", model="ignored")
    await Runner.run(
        config_named,
        input="hello",
        run_config=RunConfig(model="from-config", model_provider=provider),
    )

    assert provider.requested == ["my-model", None, "from-config"]


@pytest.mark.asyncio
async def test_configuration_error_fails_before_first_turn():
    model = FakeModel([get_text_message("never")])
    provider = FakeModelProvider(model, error=ConfigurationError("No API key"))
    hooks_seen: list[str] = []

    class Hooks(RunHooks[Any]):
        async def on_run_end(self, context, agent, input, output) -> None:
            hooks_seen.append("end")

    result = await Runner.run(
        Agent(name="test"),
        input="hello",
        hooks=Hooks(),
        run_config=RunConfig(model_provider=provider),
    )

    assert not result.success
    assert isinstance(result.error, ConfigurationError)
    assert result.turns == 0
    assert result.new_items == []
    assert model.calls == []
    assert hooks_seen == ["end"]


@pytest.mark.asyncio
async def test_provider_failure_becomes_model_provider_error():
    original = RuntimeError("lookup failed")
    provider = FakeModelProvider(error=original)

    result = await Runner.run(
        Agent(name="test"), input="hello", run_config=RunConfig(model_provider=provider)
    )

    assert isinstance(result.error, ModelProviderError)
    assert result.error.original is original
    assert result.error.__cause__ is original


@pytest.mark.asyncio
async def test_model_error_aborts_run():
    boom = ValueError("model exploded")
    model = FakeModel()
    agent = Agent(name="test", model=model, tools=[get_function_tool("foo", "result")])
    model.add_multiple_turn_outputs([[get_function_tool_call("foo", "{}")], boom])

    result = await Runner.run(agent, input="hello")

    assert not result.success
    assert result.final_output is None
    assert isinstance(result.error, ModelProviderError)
    assert result.error.original is boom
    assert len(result.new_items) == 2

    run_data = result.error.run_data
    assert run_data is not None
    assert run_data.last_agent is agent
    assert run_data.turns == 2
    assert run_data.new_items == result.new_items

    with pytest.raises(ModelProviderError):
        result.raise_for_error()


class Weather(BaseModel):
    city: str
    degrees: int


@pytest.mark.asyncio
async def test_structured_output():
    model = FakeModel([get_text_message('{"city": "Oslo", "degrees": 3}')])
    agent = Agent(name="test", model=model, output_type=Weather)

    result = await Runner.run(agent, input="weather?")

    assert result.final_output == Weather(city="Oslo", degrees=3)
    assert result.final_output_as(Weather, raise_if_incorrect_type=True).city == "Oslo"
    assert model.last_turn_args["output_schema"] is not None
    with pytest.raises(TypeError):
        result.final_output_as(str, raise_if_incorrect_type=True)


@pytest.mark.asyncio
async def test_invalid_structured_output_fails_run():
    model = FakeModel([get_text_message("not json")])
    agent = Agent(name="test", model=model, output_type=Weather)

    result = await Runner.run(agent, input="weather?")

    assert not result.success
    assert isinstance(result.error, ModelBehaviorError)


@pytest.mark.asyncio
async def test_hooks_are_called_in_order():
    events: list[str] = []

    class Hooks(RunHooks[Any]):
        async def on_run_start(self, context, agent, input) -> None:
            events.append(f"run_start:{agent.name}:{input[0].content}")

        async def on_agent_start(self, context, agent) -> None:
            events.append(f"agent_start:{agent.name}")

        async def on_tool_start(self, context, agent, tool, tool_input) -> None:
            events.append(f"tool_start:{tool.name}")

        async def on_tool_end(self, context, agent, tool, tool_input, result) -> None:
            events.append(f"tool_end:{tool.name}:{result}")

        async def on_run_end(self, context, agent, input, output) -> None:
            events.append(f"run_end:{output}")

    model = FakeModel()
    agent = Agent(name="test", model=model, tools=[get_function_tool("foo", "bar")])
    model.add_multiple_turn_outputs(
        [[get_function_tool_call("foo", "{}")], [get_text_message("done")]]
    )

    await Runner.run(agent, input="hello", hooks=Hooks())

    assert events == [
        "run_start:test:hello",
        "agent_start:test",
        "tool_start:foo",
        "tool_end:foo:bar",
        "run_end:done",
    ]


@pytest.mark.asyncio
async def test_agent_hooks_fire_once_per_agent_start():
    events: list[str] = []

    class Hooks(AgentHooks[Any]):
        async def on_start(self, context, agent) -> None:
            events.append(f"start:{agent.name}")

        async def on_tool_start(self, context, agent, tool, tool_input) -> None:
            events.append(f"tool_start:{tool.name}")

        async def on_tool_end(self, context, agent, tool, tool_input, result) -> None:
            events.append(f"tool_end:{result}")

        async def on_end(self, context, agent, output) -> None:
            events.append(f"end:{output}")

    model = FakeModel()
    agent = Agent(
        name="test", model=model, tools=[get_function_tool("foo", "bar")], hooks=Hooks()
    )
    model.add_multiple_turn_outputs(
        [[get_function_tool_call("foo", "{}")], [get_text_message("done")]]
    )

    await Runner.run(agent, input="hello")

    assert events == ["start:test", "tool_start:foo", "tool_end:bar", "end:done"]


@pytest.mark.asyncio
async def test_failing_hooks_do_not_affect_the_run():
    class BrokenHooks(RunHooks[Any]):
        async def on_run_start(self, context, agent, input) -> None:
            raise RuntimeError("hook failure")

        async def on_tool_end(self, context, agent, tool, tool_input, result) -> None:
            raise RuntimeError("hook failure")

    model = FakeModel()
    agent = Agent(name="test", model=model, tools=[get_function_tool("foo", "bar")])
    model.add_multiple_turn_outputs(
        [[get_function_tool_call("foo", "{}")], [get_text_message("done")]]
    )

    result = await Runner.run(agent, input="hello", hooks=BrokenHooks())

    assert result.success
    assert result.final_output == "done"


def test_run_sync():
    model = FakeModel([get_text_message("sync hi")])
    agent = Agent(name="test", model=model)

    result = Runner.run_sync(agent, input="hello")

    assert result.success
    assert result.final_output == "sync hi"
    assert str(result) == "RunResult(last_agent='test', turns=1, new_items=1, success)"
