from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from openai import APIStatusError

from switchboard import (
    Agent,
    ComputerTool,
    FileSearchTool,
    ModelBehaviorError,
    ModelResponse,
    ModelRetrySettings,
    ModelSettings,
    OpenAIProvider,
    OpenAIProviderConfig,
    OpenAIResponsesModel,
    RunConfig,
    Runner,
    TextMessage,
    ToolCall,
    ToolResponse,
    WebSearchTool,
    function_tool,
    handoff,
)
from switchboard.models.openai_responses import Converter

from .test_hosted_tools import FakeComputer

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


def _message(text: str) -> Any:
    return SimpleNamespace(
        type="message", content=[SimpleNamespace(type="output_text", text=text)]
    )


def _function_call(call_id: str, name: str, arguments: str) -> Any:
    return SimpleNamespace(type="function_call", call_id=call_id, name=name, arguments=arguments)


def _response(*output: Any) -> Any:
    return SimpleNamespace(output=list(output))


class _Stream:
    def __init__(self, events: list[Any]):
        self._events = events

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self._events:
            yield event


class StubResponses:
    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses: Any) -> tuple[Any, StubResponses]:
    stub = StubResponses(list(responses))
    return SimpleNamespace(responses=stub), stub


def _model(*responses: Any) -> tuple[OpenAIResponsesModel, StubResponses]:
    client, stub = _client(*responses)
    retry = ModelRetrySettings(initial_backoff_seconds=0, max_backoff_seconds=0)
    return OpenAIResponsesModel("gpt-4o", client, retry_settings=retry), stub


@function_tool
def get_weather(city: str) -> str:
    """Looks up the weather."""
    return "sunny"


@pytest.mark.asyncio
async def test_agent_with_hosted_tools_runs():
    model, stub = _model(
        _response(
            SimpleNamespace(type="file_search_call", id="fs_1"),
            _message("Found it in the handbook."),
        )
    )
    agent = Agent(
        name="test",
        model=model,
        tools=[
            FileSearchTool(vector_store_ids=["vs_1"], include_search_results=True),
            WebSearchTool(),
            ComputerTool(computer=FakeComputer()),
        ],
    )

    result = await Runner.run(agent, input="hello")

    assert result.success, result.error
    assert result.final_output == "Found it in the handbook."
    request = stub.requests[0]
    assert request["input"] == [{"role": "user", "content": "hello"}]
    assert request["tools"] == [
        {"type": "file_search", "vector_store_ids": ["vs_1"]},
        {"type": "web_search_preview", "user_location": None, "search_context_size": "medium"},
        {
            "type": "computer_use_preview",
            "environment": "ubuntu",
            "display_width": 1024,
            "display_height": 768,
        },
    ]
    assert request["include"] == ["file_search_call.results"]


@pytest.mark.asyncio
async def test_function_calls_round_trip_through_the_runner():
    model, stub = _model(
        _response(_function_call("call_1", "get_weather", '{"city": "Oslo"}')),
        _response(_message("It is sunny.")),
    )
    agent = Agent(name="test", model=model, tools=[get_weather, WebSearchTool()])

    result = await Runner.run(agent, input="weather?")

    assert result.final_output == "It is sunny."
    assert stub.requests[0]["tools"][0] == {
        "type": "function",
        "name": "get_weather",
        "description": "Looks up the weather.",
        "parameters": get_weather.params_json_schema,
        "strict": False,
    }
    assert stub.requests[1]["input"] == [
        {"role": "user", "content": "weather?"},
        {
            "type": "function_call",
            "call_id": "call_1",
            "name": "get_weather",
            "arguments": '{"city": "Oslo"}',
        },
        {"type": "function_call_output", "call_id": "call_1", "output": "sunny"},
    ]


@pytest.mark.asyncio
async def test_computer_actions_are_reported_but_not_executed():
    computer = FakeComputer()
    action = {"type": "click", "x": 10, "y": 20, "button": "left"}
    model, stub = _model(
        _response(
            _message("Clicking the button."),
            SimpleNamespace(type="computer_call", call_id="cc_1", action=action),
        )
    )
    agent = Agent(name="test", model=model, tools=[ComputerTool(computer=computer)])

    result = await Runner.run(agent, input="press it")

    assert result.final_output == "Clicking the button."
    (response,) = result.new_items
    assert isinstance(response, ModelResponse)
    assert response.tool_calls == (
        ToolCall(name="computer_use_preview", arguments=json.dumps(action), id="cc_1"),
    )
    assert computer.actions == []
    # The action is not sent back as a function call when the conversation continues.
    assert Converter.items_to_input(result.to_input_list()) == [
        {"role": "user", "content": "press it"},
        {"role": "assistant", "content": "Clicking the button."},
    ]


@pytest.mark.asyncio
async def test_handoffs_and_settings_in_request():
    target = Agent(name="billing")
    model, stub = _model(_response(_message("hi")))

    await model.generate(
        [TextMessage(role="system", content="Be nice."), TextMessage(role="user", content="hi")],
        ModelSettings(temperature=0.2, max_tokens=50, seed=3, tool_choice="file_search"),
        tools=[FileSearchTool(vector_store_ids=["vs_1"])],
        handoffs=[handoff(target)],
    )

    request = stub.requests[0]
    assert request["temperature"] == 0.2
    assert request["max_output_tokens"] == 50
    assert "seed" not in request
    assert request["tool_choice"] == {"type": "file_search"}
    assert request["tools"][1]["name"] == "transfer_to_billing"
    assert request["input"][0] == {"role": "system", "content": "Be nice."}


@pytest.mark.asyncio
async def test_streaming_deltas_and_final_response():
    events = [
        SimpleNamespace(type="response.created"),
        SimpleNamespace(type="response.output_text.delta", delta="Hel"),
        SimpleNamespace(type="response.output_text.delta", delta="lo"),
        SimpleNamespace(type="response.completed", response=_response(_message("Hello"))),
    ]
    model, stub = _model(_Stream(events))
    chunks: list[str] = []

    response = await model.generate_streaming(
        [TextMessage(role="user", content="hi")], ModelSettings(), chunks.append
    )

    assert chunks == ["Hel", "lo"]
    assert response == "Hello"
    assert stub.requests[0]["stream"] is True


@pytest.mark.asyncio
async def test_stream_without_completed_response_fails():
    model, _ = _model(_Stream([SimpleNamespace(type="response.output_text.delta", delta="x")]))

    with pytest.raises(ModelBehaviorError):
        await model.generate_streaming(
            [TextMessage(role="user", content="hi")], ModelSettings(), lambda chunk: None
        )


@pytest.mark.asyncio
async def test_retries_retryable_status():
    error = APIStatusError(
        "unavailable", response=httpx.Response(503, request=_REQUEST), body=None
    )
    model, stub = _model(error, _response(_message("ok")))

    assert await model.generate([TextMessage(role="user", content="hi")], ModelSettings()) == "ok"
    assert len(stub.requests) == 2


def test_output_schema_becomes_text_format():
    model, _ = _model()
    agent = Agent(name="test", output_type=list[int])
    request = model._build_request(
        [ToolResponse(tool_call_id="c1", output="x")],
        ModelSettings(),
        (),
        (),
        agent.get_output_schema(),
    )

    assert request["input"] == [{"type": "function_call_output", "call_id": "c1", "output": "x"}]
    assert request["text"]["format"]["type"] == "json_schema"
    assert request["text"]["format"]["name"] == "final_output"


@pytest.mark.asyncio
async def test_provider_serves_responses_models_when_configured():
    client, stub = _client(_response(_message("from responses")))
    provider = OpenAIProvider(OpenAIProviderConfig(use_responses=True), openai_client=client)
    agent = Agent(name="test", tools=[WebSearchTool()])

    result = await Runner.run(agent, input="hi", run_config=RunConfig(model_provider=provider))

    assert isinstance(provider.get_model(None), OpenAIResponsesModel)
    assert result.final_output == "from responses"
    assert stub.requests[0]["tools"] == [
        {"type": "web_search_preview", "user_location": None, "search_context_size": "medium"}
    ]


def test_use_responses_from_env():
    assert OpenAIProviderConfig.from_env({"SWITCHBOARD_USE_RESPONSES": "true"}).use_responses
    assert not OpenAIProviderConfig.from_env({}).use_responses
