"""Claude backend using the Anthropic Messages API."""

import logging

import anthropic
from anthropic import AsyncAnthropic

from ..errors import BackendAuthError, BackendError, BackendUnavailable
from ..provider import AnalysisBackend

logger = logging.getLogger(__name__)


class ClaudeBackend(AnalysisBackend):
    """Backend for Anthropic's Claude models."""

    name = "claude"
    default_model = "claude-sonnet-4-20250514"
    max_tokens = 8192

    async def complete(self, prompt: str, api_key: str) -> str:
        # Retries are left to the caller.
        client = AsyncAnthropic(api_key=api_key, max_retries=0)
        try:
            logger.info("Requesting analysis from %s", self.model)
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise _translate_error(e) from e
        finally:
            await client.close()

        text = next((block.text for block in response.content if block.type == "text"), None)
        if not text:
            raise BackendError("No text response from Claude")
        return text


def _translate_error(exc: anthropic.APIError) -> BackendError:
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return BackendAuthError("Invalid API key. Please check your settings.")
    if isinstance(exc, (anthropic.APIConnectionError, anthropic.RateLimitError)):
        return BackendUnavailable(f"Claude is unavailable: {exc}")
    if isinstance(exc, anthropic.APIStatusError) and exc.status_code >= 500:
        return BackendUnavailable(f"Claude is unavailable: {exc}")
    return BackendError(f"Claude request failed: {exc}")
