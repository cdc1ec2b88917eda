"""OpenAI backend using the Chat Completions API in JSON mode."""

import logging

import openai
from openai import AsyncOpenAI

from ..errors import BackendAuthError, BackendError, BackendUnavailable
from ..provider import AnalysisBackend

logger = logging.getLogger(__name__)


class OpenAIBackend(AnalysisBackend):
    """Backend for OpenAI chat models."""

    name = "openai"
    default_model = "gpt-4o"

    async def complete(self, prompt: str, api_key: str) -> str:
        client = AsyncOpenAI(api_key=api_key, max_retries=0)
        try:
            logger.info("Requesting analysis from %s", self.model)
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
            )
        except openai.APIError as e:
            raise _translate_error(e) from e
        finally:
            await client.close()

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise BackendError("No response from OpenAI")
        return content


def _translate_error(exc: openai.APIError) -> BackendError:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return BackendAuthError("Invalid API key. Please check your settings.")
    if isinstance(exc, (openai.APIConnectionError, openai.RateLimitError)):
        return BackendUnavailable(f"OpenAI is unavailable: {exc}")
    if isinstance(exc, openai.APIStatusError) and exc.status_code >= 500:
        return BackendUnavailable(f"OpenAI is unavailable: {exc}")
    return BackendError(f"OpenAI request failed: {exc}")
