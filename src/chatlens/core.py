"""Core data models for chatlens.

Everything here is a plain value. Messages are referenced from topics,
code snippets and outline nodes by their integer position in the owning
conversation, never by identity.

The dataclasses are what the rest of the package passes around. Untrusted
JSON (model replies, request bodies, files written by the CLI) goes
through the pydantic ``*In`` models at the bottom of this module first.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, field_validator

from .errors import SchemaInvalid

ROLES = ("user", "assistant")


def new_conversation_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Millisecond ISO-8601 in UTC with a trailing Z."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Message:
    """A single canonical chat message."""

    role: str  # "user" | "assistant"
    content: str
    timestamp: Optional[str] = None  # ISO-8601

    def to_dict(self) -> dict:
        data = {"role": self.role, "content": self.content}
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Message":
        """Raises ValueError (a pydantic ValidationError) on a malformed message."""
        return MessageIn.model_validate(data).to_message()


@dataclass(frozen=True)
class ParsedConversation:
    """The result of one parse invocation."""

    id: str
    title: Optional[str]
    messages: list[Message]
    created_at: datetime

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at.isoformat(),
        }
        if self.title is not None:
            data["title"] = self.title
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ParsedConversation":
        return ConversationIn.model_validate(data).to_conversation()


# ── Analysis ─────────────────────────────────────────────────────


@dataclass
class TopicCluster:
    name: str
    description: str
    message_indices: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "messageIndices": list(self.message_indices),
        }


@dataclass
class CodeSnippet:
    language: str
    code: str
    context: str
    message_index: int

    def to_dict(self) -> dict:
        return {
            "language": self.language,
            "code": self.code,
            "context": self.context,
            "messageIndex": self.message_index,
        }


@dataclass
class OutlineNode:
    """One entry of the recursive summary tree."""

    title: str
    description: str
    message_indices: Optional[list[int]] = None
    children: Optional[list["OutlineNode"]] = None

    def to_dict(self) -> dict:
        # Walked with an explicit stack; model output can nest arbitrarily deep.
        root = self._shallow_dict(self)
        stack = [(self, root)]
        while stack:
            node, data = stack.pop()
            if node.children is None:
                continue
            data["children"] = []
            for child in node.children:
                child_data = self._shallow_dict(child)
                data["children"].append(child_data)
                stack.append((child, child_data))
        return root

    @staticmethod
    def _shallow_dict(node: "OutlineNode") -> dict:
        data = {"title": node.title, "description": node.description}
        if node.message_indices is not None:
            data["messageIndices"] = list(node.message_indices)
        return data


@dataclass
class Summary:
    tldr: str
    outline: list[OutlineNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"tldr": self.tldr, "outline": [n.to_dict() for n in self.outline]}


@dataclass
class ConversationAnalysis:
    """Topics, code snippets and summary derived from one conversation."""

    topics: list[TopicCluster]
    code_snippets: list[CodeSnippet]
    summary: Summary

    def to_dict(self) -> dict:
        return {
            "topics": [t.to_dict() for t in self.topics],
            "codeSnippets": [s.to_dict() for s in self.code_snippets],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any, message_count: Optional[int] = None) -> "ConversationAnalysis":
        """Validate decoded JSON and build an analysis from it.

        Raises SchemaInvalid when a required key is missing or has the wrong
        type. When ``message_count`` is given, every message index must
        also fall inside ``range(message_count)``.
        """
        try:
            raw = AnalysisIn.model_validate(data)
        except ValidationError as e:
            raise _schema_error(e) from e

        analysis = cls(
            topics=[t.to_topic() for t in raw.topics],
            code_snippets=[s.to_snippet() for s in raw.code_snippets],
            summary=Summary(tldr=raw.summary.tldr, outline=_build_outline(raw.summary.outline)),
        )
        if message_count is not None:
            _check_indices(analysis, message_count)
        return analysis


# ── Wire models ──────────────────────────────────────────────────


class MessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: StrictStr
    timestamp: Optional[StrictStr] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message content must be a non-empty string")
        return v

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content, timestamp=self.timestamp)


class ConversationIn(BaseModel):
    id: Optional[StrictStr] = None
    title: Optional[StrictStr] = None
    messages: list[MessageIn]
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    def to_conversation(self) -> ParsedConversation:
        return ParsedConversation(
            id=self.id or new_conversation_id(),
            title=self.title,
            messages=[m.to_message() for m in self.messages],
            created_at=self.created_at or utc_now(),
        )


class TopicIn(BaseModel):
    name: StrictStr
    description: Optional[StrictStr] = None
    message_indices: list[StrictInt] = Field(alias="messageIndices")

    def to_topic(self) -> TopicCluster:
        return TopicCluster(
            name=self.name,
            description=self.description or "",
            message_indices=list(self.message_indices),
        )


class CodeSnippetIn(BaseModel):
    language: Optional[StrictStr] = None
    code: StrictStr
    context: Optional[StrictStr] = None
    message_index: StrictInt = Field(alias="messageIndex")

    def to_snippet(self) -> CodeSnippet:
        return CodeSnippet(
            language=self.language or "",
            code=self.code,
            context=self.context or "",
            message_index=self.message_index,
        )


class OutlineNodeIn(BaseModel):
    """A single outline node; ``children`` is left raw and walked separately."""

    title: StrictStr
    description: Optional[StrictStr] = None
    message_indices: Optional[list[StrictInt]] = Field(default=None, alias="messageIndices")
    children: Optional[list[Any]] = None


class SummaryIn(BaseModel):
    tldr: StrictStr
    outline: list[Any]


class AnalysisIn(BaseModel):
    topics: list[TopicIn]
    code_snippets: list[CodeSnippetIn] = Field(alias="codeSnippets")
    summary: SummaryIn


def _schema_error(exc: ValidationError, where: str = "") -> SchemaInvalid:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err["loc"])
    location = ".".join(part for part in (where, loc) if part) or "analysis"
    return SchemaInvalid(f"{location}: {err['msg']}")


def _build_outline(raw_outline: list[Any]) -> list[OutlineNode]:
    # Outline nodes are validated one at a time so nesting depth is unbounded.
    # Locations are reported by depth, not by full path.
    outline: list[OutlineNode] = []
    stack = [(raw_outline, outline, 0)]
    while stack:
        raw_nodes, target, depth = stack.pop()
        path = "summary.outline" if depth == 0 else f"summary.outline (depth {depth}) children"
        for i, raw in enumerate(raw_nodes):
            try:
                parsed = OutlineNodeIn.model_validate(raw)
            except ValidationError as e:
                raise _schema_error(e, f"{path}[{i}]") from e
            node = OutlineNode(
                title=parsed.title,
                description=parsed.description or "",
                message_indices=parsed.message_indices,
                children=None if parsed.children is None else [],
            )
            target.append(node)
            if parsed.children is not None:
                stack.append((parsed.children, node.children, depth + 1))
    return outline


def _check_indices(analysis: ConversationAnalysis, message_count: int) -> None:
    """Raise SchemaInvalid for any index outside ``range(message_count)``."""

    def check(value: int, where: str) -> None:
        if not 0 <= value < message_count:
            raise SchemaInvalid(f"{where} = {value} is outside the conversation (0..{message_count - 1})")

    for i, topic in enumerate(analysis.topics):
        for j, idx in enumerate(topic.message_indices):
            check(idx, f"topics.{i}.messageIndices.{j}")
    for i, snippet in enumerate(analysis.code_snippets):
        check(snippet.message_index, f"codeSnippets.{i}.messageIndex")

    stack = [(node, 0) for node in analysis.summary.outline]
    while stack:
        node, depth = stack.pop()
        for idx in node.message_indices or ():
            check(idx, f"summary.outline (depth {depth}) '{node.title}'.messageIndices")
        stack.extend((child, depth + 1) for child in node.children or ())
