"""Ask an LLM backend to analyze a conversation.

The conversation is rendered into a single prompt, long conversations are
cut down to their opening and closing messages, and the reply is run
through the JSON recovery cascade in ``extraction``.
"""

import asyncio
import logging
from typing import Optional

from .core import ConversationAnalysis, Message
from .errors import BackendAuthError, BackendUnavailable, ParseEmpty
from .extraction import parse_analysis
from .provider import AnalysisBackend

logger = logging.getLogger(__name__)

MAX_MESSAGES = 50
HEAD_MESSAGES = 25
TAIL_MESSAGES = 25
MAX_CONTENT_CHARS = 2000

ANALYSIS_PROMPT = """You are a JSON-only response bot. Analyze this conversation and respond with ONLY valid JSON, no other text.

The conversation is provided as a list of messages. Each message starts with its index in square brackets followed by its role (user/assistant). Use those indices in "messageIndices" and "messageIndex".

Respond with this exact JSON structure (and nothing else - no explanations, no markdown, just JSON):
{
  "topics": [
    {
      "name": "Topic name",
      "description": "Brief description of what this topic covers",
      "messageIndices": [0, 1, 2]
    }
  ],
  "codeSnippets": [
    {
      "language": "python",
      "code": "the actual code",
      "context": "What question or problem this code addresses",
      "messageIndex": 3
    }
  ],
  "summary": {
    "tldr": "A 1-2 sentence summary of the entire conversation",
    "outline": [
      {
        "title": "Section title",
        "description": "What was discussed/decided",
        "messageIndices": [0, 1],
        "children": []
      }
    ]
  }
}

Rules:
1. Every message should belong to at least one topic
2. Extract ALL code blocks found in the conversation (look for ``` blocks)
3. The outline should capture the logical flow and key decisions
4. Be concise but comprehensive
5. IMPORTANT: Return ONLY valid JSON, no other text before or after

Here is the conversation to analyze:
"""


def truncate_messages(messages: list[Message]) -> list[tuple[int, Message]]:
    """Pair messages with their indices, keeping only the first and last 25 of long conversations."""
    indexed = list(enumerate(messages))
    if len(indexed) <= MAX_MESSAGES:
        return indexed

    logger.info(
        "Conversation has %d messages; leaving out %d from the middle",
        len(indexed), len(indexed) - HEAD_MESSAGES - TAIL_MESSAGES,
    )
    return indexed[:HEAD_MESSAGES] + indexed[-TAIL_MESSAGES:]


def format_message(index: int, message: Message) -> str:
    # Slicing a str counts code points, so a character is never split.
    return f"[{index}] {message.role}: {message.content[:MAX_CONTENT_CHARS]}"


def build_prompt(messages: list[Message]) -> str:
    lines = [format_message(i, m) for i, m in truncate_messages(messages)]
    return ANALYSIS_PROMPT + "\n\n".join(lines)


async def analyze_conversation(
    messages: list[Message],
    backend: AnalysisBackend,
    api_key: str,
    timeout: Optional[float] = None,
) -> ConversationAnalysis:
    """Analyze ``messages`` with ``backend`` and return a validated analysis.

    Cancelling the awaiting task cancels the backend request as well.

    Args:
        messages: The conversation; must not be empty.
        backend: Any AnalysisBackend.
        api_key: Credential passed through to the backend.
        timeout: Seconds to wait for the backend, or None to wait forever.

    Raises:
        ParseEmpty: ``messages`` is empty.
        BackendAuthError: The key is missing or was rejected.
        BackendUnavailable: Network failure, 5xx or timeout.
        BackendError: Any other backend failure.
        SchemaExtractionFailed: The reply held no recoverable JSON.
        SchemaInvalid: The JSON is not shaped like an analysis, or
            references messages that do not exist.
    """
    if not messages:
        raise ParseEmpty("Cannot analyze a conversation with no messages")
    if not api_key:
        raise BackendAuthError("API key is required. Please configure your API key.")

    prompt = build_prompt(messages)
    logger.debug("Built %d-character prompt for %d messages", len(prompt), len(messages))

    try:
        reply = await asyncio.wait_for(backend.complete(prompt, api_key), timeout)
    except asyncio.TimeoutError:
        raise BackendUnavailable(f"{backend.name} did not respond within {timeout:g} seconds")

    return parse_analysis(reply, message_count=len(messages))


def analyze_conversation_sync(
    messages: list[Message],
    backend: AnalysisBackend,
    api_key: str,
    timeout: Optional[float] = None,
) -> ConversationAnalysis:
    """Blocking wrapper around ``analyze_conversation`` for scripts and the CLI."""
    return asyncio.run(analyze_conversation(messages, backend, api_key, timeout))
