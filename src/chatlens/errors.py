"""Error taxonomy for chatlens.

Library code raises these; the boundary layers (``server`` and ``cli``)
translate them into HTTP statuses and CLI messages.
"""

RAW_EXCERPT_LENGTH = 200


class ChatLensError(Exception):
    """Base class for every error raised by chatlens."""


class ParseEmpty(ChatLensError):
    """Parsing succeeded structurally but produced no messages."""

    def __init__(self, message: str = "No messages found"):
        super().__init__(message)


class ExtractionFailed(ChatLensError):
    """A share page was requested explicitly but held no usable messages."""


class BackendError(ChatLensError):
    """Generic failure reported by (or while talking to) an LLM backend."""


class BackendAuthError(BackendError):
    """The backend rejected the credential."""


class BackendUnavailable(BackendError):
    """Network, timeout, rate-limit or 5xx failure. Callers may retry."""


class SchemaExtractionFailed(ChatLensError):
    """No recovery strategy found parseable JSON in a model reply."""

    def __init__(self, raw: str):
        self.raw_excerpt = raw[:RAW_EXCERPT_LENGTH]
        super().__init__(
            "Could not extract valid JSON from response. "
            f"Raw response: {self.raw_excerpt}"
        )


class SchemaInvalid(ChatLensError):
    """Parsed JSON does not have the shape of a conversation analysis."""
