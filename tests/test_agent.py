from __future__ import annotations

import dataclasses
from typing import Any

import pytest
from pydantic import BaseModel

from switchboard import (
    Agent,
    ConfigurationError,
    Handoff,
    ModelSettings,
    RunContextWrapper,
    UserError,
    handoff,
)
from switchboard.agent_output import AgentOutputSchema

from .test_responses import get_function_tool


def test_sequences_are_stored_as_tuples():
    tool = get_function_tool("a")
    agent = Agent(name="test", tools=[tool])
    assert agent.tools == (tool,)
    assert agent.handoffs == ()


def test_agent_is_immutable():
    agent = Agent(name="test")
    with pytest.raises(dataclasses.FrozenInstanceError):
        agent.name = "other"  # type: ignore[misc]


def test_clone_overrides_and_shares_fields():
    tool = get_function_tool("a")
    settings = ModelSettings(temperature=0.1)
    agent = Agent(name="test", instructions="base", tools=[tool], model_settings=settings)

    clone = agent.clone(instructions="changed")

    assert clone is not agent
    assert clone.instructions == "changed"
    assert agent.instructions == "base"
    assert clone.tools is agent.tools
    assert clone.model_settings is settings


def test_duplicate_tool_names_rejected():
    with pytest.raises(ConfigurationError):
        Agent(name="test", tools=[get_function_tool("same"), get_function_tool("same")])


def test_handoff_name_colliding_with_tool_rejected():
    target = Agent(name="billing")
    with pytest.raises(ConfigurationError):
        Agent(
            name="triage",
            tools=[get_function_tool("transfer_to_billing")],
            handoffs=[target],
        )


def test_duplicate_handoffs_rejected():
    target = Agent(name="billing")
    with pytest.raises(ConfigurationError):
        Agent(name="triage", handoffs=[target, handoff(target)])


@pytest.mark.parametrize("name", ["", "  padded ", "bad/name", "x" * 101])
def test_invalid_agent_names_rejected(name: str):
    with pytest.raises(ConfigurationError):
        Agent(name=name)


def test_handoffs_accept_agents_and_handoffs():
    billing = Agent(name="billing", handoff_description="Handles invoices")
    support = Agent(name="support")
    custom = handoff(support, tool_name_override="escalate")
    agent = Agent(name="triage", handoffs=[billing, custom])

    handoffs = agent.get_handoffs()

    assert [h.tool_name for h in handoffs] == ["transfer_to_billing", "escalate"]
    assert all(isinstance(h, Handoff) for h in handoffs)
    assert handoffs[0].agent is billing
    assert "Handles invoices" in handoffs[0].tool_description


@pytest.mark.asyncio
async def test_system_prompt_from_string():
    agent = Agent(name="test", instructions="Be brief.")
    assert await agent.get_system_prompt(RunContextWrapper(context=None)) == "Be brief."


@pytest.mark.asyncio
async def test_system_prompt_from_sync_function():
    def instructions(ctx: RunContextWrapper[dict[str, str]], agent: Agent[Any]) -> str:
        return f"{agent.name} speaks {ctx.context['language']}"

    agent = Agent(name="test", instructions=instructions)
    prompt = await agent.get_system_prompt(RunContextWrapper(context={"language": "French"}))
    assert prompt == "test speaks French"


@pytest.mark.asyncio
async def test_system_prompt_from_async_function():
    async def instructions(ctx: RunContextWrapper[Any], agent: Agent[Any]) -> str:
        return "async prompt"

    agent = Agent(name="test", instructions=instructions)
    assert await agent.get_system_prompt(RunContextWrapper(context=None)) == "async prompt"


@pytest.mark.asyncio
async def test_system_prompt_none_and_invalid():
    ctx = RunContextWrapper(context=None)
    assert await Agent(name="test").get_system_prompt(ctx) is None

    with pytest.raises(UserError):
        await Agent(name="test", instructions=42).get_system_prompt(ctx)  # type: ignore[arg-type]


class Weather(BaseModel):
    city: str
    degrees: int


def test_output_schema():
    assert Agent(name="test").get_output_schema() is None
    assert Agent(name="test", output_type=str).get_output_schema() is None

    schema = Agent(name="test", output_type=Weather).get_output_schema()
    assert isinstance(schema, AgentOutputSchema)
    assert schema.name() == "Weather"
    assert schema.validate_json('{"city": "Oslo", "degrees": 3}') == Weather(city="Oslo", degrees=3)


def test_wrapped_output_schema():
    schema = AgentOutputSchema(list[int])
    assert schema.name() == "list[int]"
    assert schema.json_schema()["required"] == ["response"]
    assert schema.validate_json('{"response": [1, 2]}') == [1, 2]


def test_as_tool_defaults():
    agent = Agent(name="Spanish Translator", handoff_description="Translates to Spanish")
    tool = agent.as_tool()
    assert tool.name == "spanish_translator"
    assert tool.description == "Translates to Spanish"
    assert tool.params_json_schema["required"] == ["input"]

    named = agent.as_tool(tool_name="translate", tool_description="Translate text")
    assert named.name == "translate"
    assert named.description == "Translate text"
