"""Abstract base class for analysis backends."""

from abc import ABC, abstractmethod


class AnalysisBackend(ABC):
    """Base class for LLM completion backends.

    Each backend (Claude, OpenAI) implements this interface so the analysis
    code can submit a prompt and get raw text back without knowing which
    provider is behind it.
    """

    name: str  # "claude", "openai"
    default_model: str

    def __init__(self, model: str | None = None):
        self.model = model or self.default_model

    @abstractmethod
    async def complete(self, prompt: str, api_key: str) -> str:
        """Send ``prompt`` as a single user turn and return the reply text.

        Raises BackendAuthError if the key is rejected, BackendUnavailable
        for network/timeout/5xx failures and BackendError otherwise.
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"
