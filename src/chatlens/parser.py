"""Turn pasted transcripts and ChatGPT exports into canonical messages.

Two input shapes are understood:

- Plain text where each message starts with a role prefix at the beginning
  of a line ("User:", "ChatGPT:", "Human:", "Claude:", ...). Lines without
  a prefix continue the current message.
- A ChatGPT export conversation: ``{"title", "create_time", "mapping"}``
  where ``mapping`` is a dict of node id -> node. Each node may carry a
  ``message`` with ``author.role``, ``content.parts`` and ``create_time``.
  A full ``conversations.json`` (a list of such objects) is also accepted.

``parse_conversation`` picks between the two by trying JSON first.
"""

import json
import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from .core import ROLES, Message, ParsedConversation, new_conversation_id, to_iso, utc_now
from .errors import ParseEmpty

logger = logging.getLogger(__name__)

USER_PREFIXES = ("user:", "you:", "human:", "me:")
ASSISTANT_PREFIXES = ("chatgpt:", "assistant:", "ai:", "gpt:", "claude:")

TITLE_MAX_CHARS = 50
DEFAULT_TITLE = "Untitled Conversation"


# ── Plain text ───────────────────────────────────────────────────


def _match_prefix(line: str) -> tuple[str, str] | None:
    """Return (role, remainder) if the trimmed line starts with a role prefix."""
    stripped = line.strip()
    lowered = stripped.lower()
    # User prefixes are checked first and win any overlap.
    for role, prefixes in (("user", USER_PREFIXES), ("assistant", ASSISTANT_PREFIXES)):
        for prefix in prefixes:
            if lowered.startswith(prefix):
                return role, stripped[len(prefix):]
    return None


def parse_text_conversation(text: str) -> list[Message]:
    """Parse a role-prefixed transcript into messages.

    Text before the first recognised prefix is ignored. Returns an empty
    list when no prefix is found at all.
    """
    messages: list[Message] = []
    current_role: str | None = None
    buffer: list[str] = []

    def flush() -> None:
        if current_role is None:
            return
        content = "\n".join(buffer).strip()
        if content:
            messages.append(Message(role=current_role, content=content))

    for line in text.split("\n"):
        line = line.removesuffix("\r")
        match = _match_prefix(line)
        if match:
            flush()
            current_role, remainder = match
            buffer = [remainder.strip()]
        elif current_role is not None:
            buffer.append(line)

    flush()
    return messages


# ── ChatGPT export tree ──────────────────────────────────────────


def _extract_text(parts: list[Any]) -> str:
    """Join the string parts of a message, skipping images and tool payloads."""
    return "\n".join(part for part in parts if isinstance(part, str)).strip()


def _node_message(node: Any) -> dict | None:
    """Return the node's message if it has an author role and content parts."""
    if not isinstance(node, dict):
        return None
    message = node.get("message")
    if not isinstance(message, dict):
        return None
    author = message.get("author")
    content = message.get("content")
    if not isinstance(author, dict) or not author.get("role"):
        return None
    if not isinstance(content, dict) or not isinstance(content.get("parts"), list):
        return None
    return message


def _epoch(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        seconds = float(value)
    except OverflowError:
        return 0.0
    # json.loads accepts NaN and Infinity; those count as missing.
    return seconds if math.isfinite(seconds) else 0.0


def _create_time(message: dict) -> float:
    return _epoch(message.get("create_time"))


def _to_datetime(seconds: float) -> datetime | None:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning("Ignoring out-of-range timestamp %r", seconds)
        return None


def parse_json_conversation(data: Any) -> ParsedConversation:
    """Rebuild chronological order from a ChatGPT export conversation.

    Nodes are ordered by ``create_time`` (missing counts as 0); ``sorted`` is
    stable, so untimestamped nodes keep their mapping order. Only user and
    assistant messages with text survive.
    """
    if not isinstance(data, dict):
        data = {}

    messages: list[Message] = []
    mapping = data.get("mapping")

    if isinstance(mapping, dict):
        candidates = [m for m in (_node_message(node) for node in mapping.values()) if m is not None]
        dropped_roles = 0

        for msg in sorted(candidates, key=_create_time):
            role = msg["author"]["role"]
            if role not in ROLES:
                dropped_roles += 1
                continue
            text = _extract_text(msg["content"]["parts"])
            if not text:
                continue
            created = _to_datetime(_create_time(msg)) if _create_time(msg) else None
            messages.append(Message(
                role=role,
                content=text,
                timestamp=to_iso(created) if created else None,
            ))

        if dropped_roles:
            logger.debug("Dropped %d system/tool nodes", dropped_roles)
    else:
        logger.debug("Export has no mapping object; no messages extracted")

    title = data.get("title")
    create_time = _epoch(data.get("create_time"))
    created_at = (_to_datetime(create_time) if create_time else None) or utc_now()

    return ParsedConversation(
        id=new_conversation_id(),
        title=title if isinstance(title, str) and title else None,
        messages=messages,
        created_at=created_at,
    )


def _parse_export_list(items: list[Any]) -> ParsedConversation:
    """Take the first conversation in a bulk export that yields messages."""
    for item in items:
        conversation = parse_json_conversation(item)
        if conversation.messages:
            if len(items) > 1:
                logger.info("Export holds %d conversations; using '%s'", len(items), conversation.title)
            return conversation
    return parse_json_conversation({})


# ── Dispatcher ───────────────────────────────────────────────────


def extract_title(messages: list[Message]) -> str:
    """Title from the first user message, cut to 50 characters."""
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return DEFAULT_TITLE

    title = first_user.content[:TITLE_MAX_CHARS]
    return f"{title}..." if len(title) < len(first_user.content) else title


def parse_conversation(text: str) -> ParsedConversation:
    """Auto-detect the input format and parse it.

    Never raises on string input; the worst case is a conversation with no
    messages. The title is backfilled from the first user message.
    """
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        data = None
        is_json = False
    else:
        is_json = True

    if is_json and isinstance(data, list):
        conversation = _parse_export_list(data)
    elif is_json:
        conversation = parse_json_conversation(data)
    else:
        conversation = ParsedConversation(
            id=new_conversation_id(),
            title=None,
            messages=parse_text_conversation(text),
            created_at=utc_now(),
        )

    logger.debug(
        "Parsed %d messages (%s input)", len(conversation.messages), "json" if is_json else "text"
    )

    if not conversation.title:
        conversation = replace(conversation, title=extract_title(conversation.messages))
    return conversation


def require_messages(conversation: ParsedConversation) -> ParsedConversation:
    """Raise ParseEmpty if parsing produced no messages."""
    if not conversation.messages:
        raise ParseEmpty()
    return conversation
