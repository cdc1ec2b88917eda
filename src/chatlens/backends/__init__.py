"""Registry of analysis backends."""

from ..provider import AnalysisBackend
from .claude import ClaudeBackend
from .openai_chat import OpenAIBackend

BACKENDS: dict[str, type[AnalysisBackend]] = {
    ClaudeBackend.name: ClaudeBackend,
    OpenAIBackend.name: OpenAIBackend,
}


def available_backends() -> list[str]:
    """Return the names of all registered backends."""
    return list(BACKENDS)


def get_backend(name: str, model: str | None = None) -> AnalysisBackend:
    """Instantiate a backend by name, optionally overriding its model."""
    backend_class = BACKENDS.get(name)
    if backend_class is None:
        raise ValueError(
            f"Unknown backend {name!r}; expected one of: {', '.join(available_backends())}"
        )
    return backend_class(model=model)
