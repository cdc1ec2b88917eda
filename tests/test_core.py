"""Tests for the value types and analysis validation."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from chatlens.core import ConversationAnalysis, Message, OutlineNode, ParsedConversation, to_iso
from chatlens.errors import SchemaInvalid


def _deep_outline(depth: int) -> OutlineNode:
    root = OutlineNode(title="level 0", description="d")
    node = root
    for level in range(1, depth):
        child = OutlineNode(title=f"level {level}", description="d")
        node.children = [child]
        node = child
    return root


def _deep_outline_dict(depth: int) -> dict:
    root = {"title": "level 0", "description": "d"}
    node = root
    for level in range(1, depth):
        child = {"title": f"level {level}", "description": "d"}
        node["children"] = [child]
        node = child
    return root


class TestMessage:
    def test_from_dict(self):
        msg = Message.from_dict({"role": "user", "content": "hi", "timestamp": "2025-01-01T00:00:00.000Z"})
        assert msg == Message(role="user", content="hi", timestamp="2025-01-01T00:00:00.000Z")

    @pytest.mark.parametrize(
        "data",
        [
            {"role": "system", "content": "x"},
            {"role": "user", "content": "   "},
            {"role": "user"},
            {"role": "user", "content": "x", "timestamp": 123},
            "user: x",
        ],
    )
    def test_from_dict_rejects_invalid(self, data):
        with pytest.raises(ValueError):
            Message.from_dict(data)

    def test_to_dict_omits_missing_timestamp(self):
        assert Message(role="assistant", content="ok").to_dict() == {"role": "assistant", "content": "ok"}

    def test_to_iso(self):
        dt = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        assert to_iso(dt) == "2025-01-15T10:00:00.000Z"


class TestParsedConversation:
    def test_round_trip_through_dict(self):
        conversation = ParsedConversation(
            id="abc",
            title="Title",
            messages=[Message(role="user", content="hi")],
            created_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )
        assert ParsedConversation.from_dict(conversation.to_dict()) == conversation

    def test_is_immutable(self):
        conversation = ParsedConversation(id="a", title=None, messages=[], created_at=datetime.now(timezone.utc))
        with pytest.raises(AttributeError):
            conversation.title = "changed"


class TestAnalysisFromDict:
    def test_valid(self, analysis_dict, sample_analysis):
        assert ConversationAnalysis.from_dict(analysis_dict) == sample_analysis

    def test_to_dict_round_trip(self, analysis_dict):
        analysis = ConversationAnalysis.from_dict(analysis_dict)
        assert ConversationAnalysis.from_dict(analysis.to_dict()) == analysis

    @pytest.mark.parametrize("key", ["topics", "codeSnippets", "summary"])
    def test_missing_top_level_key(self, analysis_dict, key):
        del analysis_dict[key]
        with pytest.raises(SchemaInvalid, match=key):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_topics_must_be_list(self, analysis_dict):
        analysis_dict["topics"] = "Reversing, Sorting"
        with pytest.raises(SchemaInvalid, match="topics"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_summary_must_have_tldr_string(self, analysis_dict):
        analysis_dict["summary"]["tldr"] = ["not", "a", "string"]
        with pytest.raises(SchemaInvalid, match="tldr"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_outline_must_be_list(self, analysis_dict):
        analysis_dict["summary"]["outline"] = {"title": "x"}
        with pytest.raises(SchemaInvalid, match="outline"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_indices_must_be_integers(self, analysis_dict):
        analysis_dict["topics"][0]["messageIndices"] = [0, "1"]
        with pytest.raises(SchemaInvalid):
            ConversationAnalysis.from_dict(analysis_dict)
        analysis_dict["topics"][0]["messageIndices"] = [True]
        with pytest.raises(SchemaInvalid):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_snippet_needs_code_and_index(self, analysis_dict):
        del analysis_dict["codeSnippets"][0]["messageIndex"]
        with pytest.raises(SchemaInvalid, match="messageIndex"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_optional_text_fields_default_to_empty(self, analysis_dict):
        del analysis_dict["topics"][0]["description"]
        del analysis_dict["codeSnippets"][0]["language"]
        analysis = ConversationAnalysis.from_dict(analysis_dict)
        assert analysis.topics[0].description == ""
        assert analysis.code_snippets[0].language == ""

    def test_outline_children_are_preserved_in_order(self, analysis_dict):
        analysis_dict["summary"]["outline"][0]["children"] = [
            {"title": "a", "description": ""},
            {"title": "b", "description": "", "children": [{"title": "b1", "description": ""}]},
            {"title": "c", "description": ""},
        ]
        analysis = ConversationAnalysis.from_dict(analysis_dict)
        children = analysis.summary.outline[0].children
        assert [c.title for c in children] == ["a", "b", "c"]
        assert children[1].children[0].title == "b1"
        assert children[0].children is None
        assert analysis.summary.outline[1].children == []

    def test_out_of_range_index_with_message_count(self, analysis_dict):
        analysis_dict["summary"]["outline"][0]["children"][0]["messageIndices"] = [9]
        ConversationAnalysis.from_dict(analysis_dict)
        with pytest.raises(SchemaInvalid, match="outside"):
            ConversationAnalysis.from_dict(analysis_dict, message_count=4)

    def test_negative_index_with_message_count(self, analysis_dict):
        analysis_dict["codeSnippets"][0]["messageIndex"] = -1
        with pytest.raises(SchemaInvalid):
            ConversationAnalysis.from_dict(analysis_dict, message_count=4)


class TestDeepOutline:
    def test_to_dict_handles_deep_trees(self):
        node = _deep_outline(5000)
        data = node.to_dict()
        depth = 0
        while "children" in data:
            data = data["children"][0]
            depth += 1
        assert depth == 4999
        assert data["title"] == "level 4999"

    def test_from_dict_handles_deep_trees(self):
        data = {
            "topics": [],
            "codeSnippets": [],
            "summary": {"tldr": "", "outline": [_deep_outline_dict(5000)]},
        }
        analysis = ConversationAnalysis.from_dict(data)
        node = analysis.summary.outline[0]
        depth = 0
        while node.children:
            node = node.children[0]
            depth += 1
        assert depth == 4999

    def test_error_deep_in_tree_is_reported(self):
        outline = _deep_outline_dict(3000)
        node = outline
        while "children" in node:
            node = node["children"][0]
        node["title"] = 7
        data = {"topics": [], "codeSnippets": [], "summary": {"tldr": "", "outline": [outline]}}
        with pytest.raises(SchemaInvalid, match="depth 2999"):
            ConversationAnalysis.from_dict(data)


class TestWireValidation:
    def test_error_names_the_location(self, analysis_dict):
        analysis_dict["topics"][0]["messageIndices"] = [0, "1"]
        with pytest.raises(SchemaInvalid, match=r"topics\.0\.messageIndices\.1"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_float_index_is_rejected(self, analysis_dict):
        analysis_dict["codeSnippets"][0]["messageIndex"] = 1.0
        with pytest.raises(SchemaInvalid, match="messageIndex"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_validation_error_is_chained(self, analysis_dict):
        analysis_dict["summary"] = "none"
        with pytest.raises(SchemaInvalid) as excinfo:
            ConversationAnalysis.from_dict(analysis_dict)
        assert isinstance(excinfo.value.__cause__, ValidationError)

    def test_null_optional_text_fields(self, analysis_dict):
        analysis_dict["topics"][0]["description"] = None
        analysis_dict["summary"]["outline"][0]["description"] = None
        analysis = ConversationAnalysis.from_dict(analysis_dict)
        assert analysis.topics[0].description == ""
        assert analysis.summary.outline[0].description == ""

    def test_children_must_be_a_list(self, analysis_dict):
        analysis_dict["summary"]["outline"][1]["children"] = {"title": "x"}
        with pytest.raises(SchemaInvalid, match=r"summary\.outline\[1\]\.children"):
            ConversationAnalysis.from_dict(analysis_dict)

    def test_conversation_from_dict_validates_messages(self):
        with pytest.raises(ValueError):
            ParsedConversation.from_dict({"messages": [{"role": "user", "content": ""}]})
        with pytest.raises(ValueError):
            ParsedConversation.from_dict({"messages": "not a list"})

    def test_conversation_from_dict_fills_missing_id(self):
        conversation = ParsedConversation.from_dict({"messages": [{"role": "user", "content": "hi"}]})
        assert conversation.id
        assert conversation.title is None
        assert conversation.created_at.tzinfo is not None
