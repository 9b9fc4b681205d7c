from .interface import Model, ModelProvider, ModelRetrySettings, OnChunk
from .openai_chatcompletions import OpenAIChatCompletionsModel
from .openai_provider import DEFAULT_MODEL, OpenAIProvider, OpenAIProviderConfig
from .openai_responses import OpenAIResponsesModel

__all__ = [
    "DEFAULT_MODEL",
    "Model",
    "ModelProvider",
    "ModelRetrySettings",
    "OnChunk",
    "OpenAIChatCompletionsModel",
    "OpenAIProvider",
    "OpenAIProviderConfig",
    "OpenAIResponsesModel",
]
