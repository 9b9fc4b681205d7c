from __future__ import annotations

from typing import Any

import pytest
from openai import AsyncOpenAI

from switchboard import (
    Agent,
    ConfigurationError,
    ModelRetrySettings,
    OpenAIChatCompletionsModel,
    OpenAIProvider,
    OpenAIProviderConfig,
    RunConfig,
    Runner,
)
from switchboard.models import DEFAULT_MODEL


class StubClient:
    """Stands in for AsyncOpenAI; the provider only hands it to the model."""


def test_config_from_env():
    config = OpenAIProviderConfig.from_env(
        {
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_BASE_URL": "http://localhost:8000/v1",
            "OPENAI_ORG_ID": "org",
            "OPENAI_PROJECT_ID": "proj",
            "SWITCHBOARD_DEFAULT_MODEL": "gpt-4o-mini",
        }
    )

    assert config.api_key == "sk-test"
    assert config.base_url == "http://localhost:8000/v1"
    assert config.organization == "org"
    assert config.project == "proj"
    assert config.default_model == "gpt-4o-mini"


def test_config_from_empty_env():
    config = OpenAIProviderConfig.from_env({"OPENAI_API_KEY": ""})

    assert config.api_key is None
    assert config.default_model == DEFAULT_MODEL == "gpt-4o"
    assert isinstance(config.retry, ModelRetrySettings)


def test_provider_reads_environment_by_default(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("SWITCHBOARD_DEFAULT_MODEL", "env-model")

    provider = OpenAIProvider()

    assert provider.config.api_key == "sk-env"
    assert provider.config.default_model == "env-model"


def test_missing_api_key_is_a_configuration_error():
    provider = OpenAIProvider(OpenAIProviderConfig(api_key=None))
    with pytest.raises(ConfigurationError):
        provider.get_model("gpt-4o")


def test_models_are_cached_per_name():
    client: Any = StubClient()
    provider = OpenAIProvider(OpenAIProviderConfig(default_model="default"), openai_client=client)

    first = provider.get_model("gpt-4o")
    again = provider.get_model("gpt-4o")
    other = provider.get_model("gpt-4o-mini")
    default = provider.get_model(None)

    assert first is again
    assert first is not other
    assert isinstance(first, OpenAIChatCompletionsModel)
    assert first.model == "gpt-4o"
    assert default.model == "default"
    assert first._client is client


def test_retry_settings_are_passed_to_models():
    retry = ModelRetrySettings(max_retries=7)
    provider = OpenAIProvider(
        OpenAIProviderConfig(retry=retry), openai_client=StubClient()  # type: ignore[arg-type]
    )

    model = provider.get_model("gpt-4o")

    assert isinstance(model, OpenAIChatCompletionsModel)
    assert model.retry_settings is retry


def test_client_built_from_config():
    provider = OpenAIProvider(
        OpenAIProviderConfig(api_key="sk-test", base_url="http://localhost:8000/v1")
    )

    model = provider.get_model("gpt-4o")

    assert isinstance(model, OpenAIChatCompletionsModel)
    assert isinstance(model._client, AsyncOpenAI)
    assert model._client.api_key == "sk-test"
    assert str(model._client.base_url).startswith("http://localhost:8000/v1")


@pytest.mark.asyncio
async def test_providers_do_not_share_http_clients():
    first = OpenAIProvider(OpenAIProviderConfig(api_key="sk-test"))
    second = OpenAIProvider(OpenAIProviderConfig(api_key="sk-test"))

    first_model = first.get_model("gpt-4o")
    first.get_model("gpt-4o-mini")
    second.get_model("gpt-4o")

    assert first._http_client is not None
    assert second._http_client is not None
    assert first._http_client is not second._http_client
    # Models of one provider share its connection pool.
    assert isinstance(first_model, OpenAIChatCompletionsModel)
    assert first_model._client._client is first._http_client

    http_client = first._http_client
    await first.aclose()
    await second.aclose()

    assert http_client.is_closed
    assert first._http_client is None


@pytest.mark.asyncio
async def test_run_without_credentials_fails_fast():
    provider = OpenAIProvider(OpenAIProviderConfig(api_key=None))

    result = await Runner.run(
        Agent(name="test"), input="hello", run_config=RunConfig(model_provider=provider)
    )

    assert not result.success
    assert isinstance(result.error, ConfigurationError)
    assert result.turns == 0
