from __future__ import annotations

from openai import APIConnectionError, APIStatusError

from .interface import ModelRetrySettings


def is_retryable_openai_error(error: Exception, retry_settings: ModelRetrySettings) -> bool:
    """Whether an error from the OpenAI client is worth retrying: a connection failure, or one of
    the configured HTTP status codes."""
    if isinstance(error, APIStatusError):
        return error.status_code in retry_settings.retryable_status_codes
    return isinstance(error, APIConnectionError)
