"""Export analyzed conversations to Markdown and JSON formats."""

import json
import re
from typing import Optional

from .core import ConversationAnalysis, Message, OutlineNode, ParsedConversation
from .errors import SchemaInvalid

PREVIEW_CHARS = 100


def _format_outline(outline: list[OutlineNode]) -> list[str]:
    """Render the outline as nested bullets, two spaces per level."""
    lines = []
    stack = [(node, 0) for node in reversed(outline)]
    while stack:
        node, depth = stack.pop()
        lines.append(f"{'  ' * depth}- **{node.title}**: {node.description}")
        if node.children:
            stack.extend((child, depth + 1) for child in reversed(node.children))
    return lines


def _preview(content: str) -> str:
    preview = content[:PREVIEW_CHARS] + "..." if len(content) > PREVIEW_CHARS else content
    return preview.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _message_at(messages: list[Message], index: int) -> Message | None:
    if 0 <= index < len(messages):
        return messages[index]
    return None


def export_to_markdown(title: str, messages: list[Message], analysis: ConversationAnalysis) -> str:
    """Render title, analysis and transcript as one Markdown document.

    Message indices that do not point into ``messages`` are skipped.
    """
    lines = [f"# {title}", ""]

    if analysis.summary.tldr:
        lines.extend(["## TL;DR", "", analysis.summary.tldr, ""])

    if analysis.summary.outline:
        lines.extend(["## Summary", ""])
        lines.extend(_format_outline(analysis.summary.outline))
        lines.append("")

    if analysis.topics:
        lines.extend(["## Topics", ""])
        for topic in analysis.topics:
            lines.extend([f"### {topic.name}", "", topic.description, ""])
            lines.append("**Related messages:**")
            for idx in topic.message_indices:
                msg = _message_at(messages, idx)
                if msg:
                    lines.append(f"- [{idx + 1}] {msg.role}: {_preview(msg.content)}")
            lines.append("")

    if analysis.code_snippets:
        lines.extend(["## Code Snippets", ""])
        for snippet in analysis.code_snippets:
            lines.extend([f"### {snippet.context}", ""])
            lines.extend([f"**Language:** {snippet.language}", ""])
            lines.extend([f"```{snippet.language}", snippet.code, "```", ""])

    lines.extend(["## Full Conversation", ""])
    for i, msg in enumerate(messages, start=1):
        role_label = "**You**" if msg.role == "user" else "**Assistant**"
        lines.extend([f"### {i}. {role_label}", "", msg.content, "", "---", ""])

    return "\n".join(lines) + "\n"


def markdown_filename(title: str) -> str:
    """Download filename for a title: non-alphanumerics become '-', lower-cased, '.md' suffix."""
    stem = title[:-3] if title.lower().endswith(".md") else title
    stem = re.sub(r"[^a-zA-Z0-9]", "-", stem).lower()
    if not stem.strip("-"):
        stem = "conversation"
    return f"{stem}.md"


def conversation_to_json(
    conversation: ParsedConversation,
    analysis: Optional[ConversationAnalysis] = None,
) -> str:
    """Export a conversation, and its analysis if any, as structured JSON.

    Raises SchemaInvalid if the outline is nested too deeply for the JSON
    encoder.
    """
    data = conversation.to_dict()
    if analysis is not None:
        data["analysis"] = analysis.to_dict()
    try:
        return json.dumps(data, indent=2, ensure_ascii=False)
    except RecursionError:
        raise SchemaInvalid("Analysis outline is nested too deeply to write as JSON")
