"""Shared test fixtures for chatlens."""

import asyncio
import json

import pytest

from chatlens.core import (
    CodeSnippet,
    ConversationAnalysis,
    Message,
    OutlineNode,
    Summary,
    TopicCluster,
)
from chatlens.provider import AnalysisBackend


class FakeBackend(AnalysisBackend):
    """Backend that returns a canned reply and records what it was sent."""

    name = "fake"
    default_model = "fake-model"

    def __init__(self, reply: str = "", error: Exception | None = None, delay: float = 0.0):
        super().__init__()
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []
        self.api_keys: list[str] = []
        self.cancelled = False

    async def complete(self, prompt: str, api_key: str) -> str:
        self.prompts.append(prompt)
        self.api_keys.append(api_key)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def sample_messages():
    return [
        Message(role="user", content="How do I reverse a list in Python?"),
        Message(
            role="assistant",
            content="Use slicing:\n\n```python\nitems[::-1]\n```\n\nor `items.reverse()` to do it in place.",
        ),
        Message(role="user", content="Thanks! And how do I sort it?"),
        Message(role="assistant", content="Call `sorted(items)` for a new list or `items.sort()` in place."),
    ]


@pytest.fixture
def analysis_dict():
    return {
        "topics": [
            {
                "name": "Reversing lists",
                "description": "Ways to reverse a Python list",
                "messageIndices": [0, 1],
            },
            {
                "name": "Sorting lists",
                "description": "sorted() versus list.sort()",
                "messageIndices": [2, 3],
            },
        ],
        "codeSnippets": [
            {
                "language": "python",
                "code": "items[::-1]",
                "context": "Reverse a list with slicing",
                "messageIndex": 1,
            }
        ],
        "summary": {
            "tldr": "The user learned how to reverse and sort lists.",
            "outline": [
                {
                    "title": "Reversing",
                    "description": "Slicing and reverse()",
                    "messageIndices": [0, 1],
                    "children": [
                        {"title": "Slicing", "description": "items[::-1] returns a copy"},
                    ],
                },
                {
                    "title": "Sorting",
                    "description": "sorted() and sort()",
                    "messageIndices": [2, 3],
                    "children": [],
                },
            ],
        },
    }


@pytest.fixture
def analysis_json(analysis_dict):
    return json.dumps(analysis_dict)


@pytest.fixture
def sample_analysis():
    return ConversationAnalysis(
        topics=[
            TopicCluster(
                name="Reversing lists",
                description="Ways to reverse a Python list",
                message_indices=[0, 1],
            ),
            TopicCluster(
                name="Sorting lists",
                description="sorted() versus list.sort()",
                message_indices=[2, 3],
            ),
        ],
        code_snippets=[
            CodeSnippet(
                language="python",
                code="items[::-1]",
                context="Reverse a list with slicing",
                message_index=1,
            )
        ],
        summary=Summary(
            tldr="The user learned how to reverse and sort lists.",
            outline=[
                OutlineNode(
                    title="Reversing",
                    description="Slicing and reverse()",
                    message_indices=[0, 1],
                    children=[OutlineNode(title="Slicing", description="items[::-1] returns a copy")],
                ),
                OutlineNode(title="Sorting", description="sorted() and sort()", message_indices=[2, 3], children=[]),
            ],
        ),
    )


@pytest.fixture
def export_tree():
    """A ChatGPT export conversation with nodes out of chronological order.

    The system, tool and blank nodes should be dropped and the image part
    skipped.
    """
    return {
        "title": "List tricks",
        "create_time": 1700000000.0,
        "mapping": {
            "root": {"id": "root", "message": None, "parent": None, "children": ["sys"]},
            "n3": {
                "id": "n3",
                "message": {
                    "author": {"role": "user"},
                    "content": {"content_type": "text", "parts": ["And sorting?"]},
                    "create_time": 1700000030.0,
                },
            },
            "sys": {
                "id": "sys",
                "message": {
                    "author": {"role": "system"},
                    "content": {"content_type": "text", "parts": ["You are ChatGPT."]},
                    "create_time": 1700000001.0,
                },
            },
            "n1": {
                "id": "n1",
                "message": {
                    "author": {"role": "user"},
                    "content": {"content_type": "text", "parts": ["How do I reverse a list?"]},
                    "create_time": 1700000010.0,
                },
            },
            "tool": {
                "id": "tool",
                "message": {
                    "author": {"role": "tool"},
                    "content": {"content_type": "text", "parts": ["search results"]},
                    "create_time": 1700000015.0,
                },
            },
            "n2": {
                "id": "n2",
                "message": {
                    "author": {"role": "assistant"},
                    "content": {
                        "content_type": "multimodal_text",
                        "parts": ["Use slicing:", {"asset_pointer": "file-service://img"}, "items[::-1]"],
                    },
                    "create_time": 1700000020.0,
                },
            },
            "blank": {
                "id": "blank",
                "message": {
                    "author": {"role": "assistant"},
                    "content": {"content_type": "text", "parts": ["   "]},
                    "create_time": 1700000025.0,
                },
            },
            "n4": {
                "id": "n4",
                "message": {
                    "author": {"role": "assistant"},
                    "content": {"content_type": "text", "parts": ["Use sorted()."]},
                    "create_time": 1700000040.0,
                },
            },
        },
    }


@pytest.fixture
def transcript():
    return (
        "Exported from my chat app\n"
        "\n"
        "User: How do I reverse a list?\n"
        "Assistant: Use slicing:\n"
        "\n"
        "    items[::-1]\n"
        "\n"
        "Human: and sorting?\n"
        "ChatGPT: Use sorted().\n"
    )
