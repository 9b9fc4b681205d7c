from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx
from openai import AsyncOpenAI, DefaultAsyncHttpxClient, OpenAIError

from ..exceptions import ConfigurationError
from .interface import Model, ModelProvider, ModelRetrySettings
from .openai_chatcompletions import OpenAIChatCompletionsModel
from .openai_responses import OpenAIResponsesModel

DEFAULT_MODEL: str = "gpt-4o"
_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenAIProviderConfig:
    """Connection settings for `OpenAIProvider`. Build one at startup (e.g. with `from_env()`)
    and pass it to the provider explicitly."""

    api_key: str | None = None
    base_url: str | None = None
    organization: str | None = None
    project: str | None = None
    default_model: str = DEFAULT_MODEL
    """The model used when neither the run config nor the agent names one."""

    use_responses: bool = False
    """Serve models through the Responses API instead of chat completions. Required for agents
    with hosted tools."""

    retry: ModelRetrySettings = field(default_factory=ModelRetrySettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OpenAIProviderConfig:
        """Read the config from environment variables: `OPENAI_API_KEY`, `OPENAI_BASE_URL`,
        `OPENAI_ORG_ID`, `OPENAI_PROJECT_ID`, `SWITCHBOARD_DEFAULT_MODEL` and
        `SWITCHBOARD_USE_RESPONSES` ("1", "true" or "yes" to enable)."""
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("OPENAI_API_KEY") or None,
            base_url=env.get("OPENAI_BASE_URL") or None,
            organization=env.get("OPENAI_ORG_ID") or None,
            project=env.get("OPENAI_PROJECT_ID") or None,
            default_model=env.get("SWITCHBOARD_DEFAULT_MODEL") or DEFAULT_MODEL,
            use_responses=env.get("SWITCHBOARD_USE_RESPONSES", "").lower() in ("1", "true", "yes"),
        )


class OpenAIProvider(ModelProvider):
    def __init__(
        self,
        config: OpenAIProviderConfig | None = None,
        *,
        openai_client: AsyncOpenAI | None = None,
    ) -> None:
        """Create a new OpenAI provider.

        Args:
            config: Connection settings. If not provided, they are read from the environment
                with `OpenAIProviderConfig.from_env()`.
            openai_client: An optional OpenAI client to use. If provided, the config's
                credentials are ignored.
        """
        self.config = config if config is not None else OpenAIProviderConfig.from_env()
        self._client = openai_client
        # Owned by this provider, so every model it serves shares one connection pool.
        self._http_client: httpx.AsyncClient | None = None
        self._models: dict[str, Model] = {}

    # We lazy load the client in case you never actually use OpenAIProvider(); a missing API key
    # should only fail the runs that need it.
    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.config.api_key:
                raise ConfigurationError(
                    "No OpenAI API key configured. Set OPENAI_API_KEY or pass "
                    "OpenAIProviderConfig(api_key=...)."
                )
            if self._http_client is None:
                self._http_client = DefaultAsyncHttpxClient()
            try:
                self._client = AsyncOpenAI(
                    api_key=self.config.api_key,
                    base_url=self.config.base_url,
                    organization=self.config.organization,
                    project=self.config.project,
                    http_client=self._http_client,
                )
            except OpenAIError as e:
                _logger.error(f"Failed to create OpenAI client: {e}")
                raise ConfigurationError(f"Failed to create OpenAI client: {e}") from e

        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client this provider created, if any."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            self._client = None
            self._models.clear()

    def get_model(self, model_name: str | None) -> Model:
        """Get a model instance by name. Instances are cached, so repeated lookups of the same
        name return the same model.

        Args:
            model_name: The name of the model to get. If None, uses the default model.

        Returns:
            An OpenAI Responses model if `config.use_responses` is set, otherwise a chat
            completions model.
        """
        if model_name is None:
            model_name = self.config.default_model

        model = self._models.get(model_name)
        if model is None:
            model_class = (
                OpenAIResponsesModel if self.config.use_responses else OpenAIChatCompletionsModel
            )
            model = model_class(
                model=model_name,
                openai_client=self._get_client(),
                retry_settings=self.config.retry,
            )
            self._models[model_name] = model
        return model
