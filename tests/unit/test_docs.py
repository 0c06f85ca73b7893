"""
Unit tests for documentation generation.

Tests cover:
- Doc tree construction
- Markdown, HTML and JSON rendering
- Example inclusion toggles
"""

import pytest

from docschema.engine import SchemaEngine, SchemaNode
from docschema.engine.docs import build_doc_tree

ARTICLE_SCHEMA = {
    "title": "Article",
    "description": "A published article",
    "type": "object",
    "required": ["title"],
    "properties": {
        "title": {"type": "string", "minLength": 1, "maxLength": 120},
        "status": {"type": "string", "enum": ["draft", "live"], "default": "draft"},
        "rating": {"type": "number", "minimum": 0, "exclusiveMaximum": 5},
        "author": {
            "type": "object",
            "description": "Who wrote it",
            "required": ["name"],
            "properties": {"name": {"type": "string"}, "email": {"type": "string", "format": "email"}},
        },
        "tags": {"type": "array", "items": {"type": "string"}, "uniqueItems": True},
    },
    "additionalProperties": False,
    "example": {"title": "Hello"},
}


@pytest.fixture
def engine():
    return SchemaEngine()


class TestDocTree:
    """Tests for build_doc_tree."""

    def test_properties_in_order(self):
        doc = build_doc_tree(SchemaNode.parse(ARTICLE_SCHEMA), "Article")
        assert [prop.name for prop in doc.properties] == ["title", "status", "rating", "author", "tags"]
        assert doc.properties[0].required is True
        assert doc.properties[1].required is False

    def test_constraints_and_nested(self):
        doc = build_doc_tree(SchemaNode.parse(ARTICLE_SCHEMA), "Article")
        title, status, rating, author, tags = doc.properties
        assert title.constraints == {"minLength": 1, "maxLength": 120}
        assert status.constraints == {"enum": ["draft", "live"]}
        assert rating.constraints == {"minimum": 0, "exclusiveMaximum": 5}
        assert author.path == "author"
        assert [(p.name, p.path, p.required) for p in author.properties] == [
            ("name", "author.name", True),
            ("email", "author.email", False),
        ]
        assert tags.items.name == "tags[]"
        assert doc.constraints == {"additionalProperties": False}

    def test_ref_is_followed(self):
        schema = {
            "$defs": {"money": {"type": "number", "minimum": 0, "description": "Amount"}},
            "type": "object",
            "properties": {"price": {"$ref": "#/$defs/money"}},
        }
        doc = build_doc_tree(SchemaNode.parse(schema), "Item")
        assert doc.properties[0].description == "Amount"
        assert doc.properties[0].types == ["number"]


class TestMarkdown:
    """Tests for markdown output."""

    def test_structure(self, engine):
        text = engine.generate_docs(ARTICLE_SCHEMA)
        assert text.startswith("# Article\n\nA published article\n\n**Type:** object\n\n")
        assert "## Properties" in text
        assert "### title (Required)" in text
        assert "**Minimum Length:** 1" in text
        assert "**Allowed Values:** `draft`, `live`" in text
        assert '**Default:** `"draft"`' in text
        assert "**Maximum:** 5 (exclusive)" in text
        assert "#### Sub-properties" in text
        assert "- **name (Required)**: string" in text
        assert "**Items Type:** string" in text
        assert "**Additional Properties:** Not allowed" in text

    def test_examples_toggle(self, engine):
        assert "## Example" in engine.generate_docs(ARTICLE_SCHEMA)
        assert "## Example" not in engine.generate_docs(ARTICLE_SCHEMA, include_examples=False)

    def test_title_override_and_fallback(self, engine):
        assert engine.generate_docs(ARTICLE_SCHEMA, title="Post").startswith("# Post\n")
        assert engine.generate_docs({"type": "string"}).startswith("# schema\n")
        engine.add_schema("user", {"type": "object"})
        assert engine.generate_docs("user").startswith("# user\n")

    def test_tuple_items(self, engine):
        text = engine.generate_docs({"type": "array", "items": [{"type": "string"}, {"type": "integer"}]})
        assert "## Array Items (Tuple)" in text
        assert "### Item 2" in text

    def test_deterministic(self, engine):
        assert engine.generate_docs(ARTICLE_SCHEMA) == engine.generate_docs(ARTICLE_SCHEMA)


class TestOtherFormats:
    """Tests for HTML and JSON output."""

    def test_html_escapes(self, engine):
        schema = {"title": "<Widget>", "type": "object", "properties": {"a<b": {"type": "string"}}}
        page = engine.generate_docs(schema, format="html")
        assert page.startswith("<!DOCTYPE html>")
        assert "<h1>&lt;Widget&gt;</h1>" in page
        assert "a&lt;b" in page
        assert "<Widget>" not in page

    def test_json(self, engine):
        data = engine.generate_docs(ARTICLE_SCHEMA, format="json")
        assert data["name"] == "Article"
        assert data["type"] == "object"
        assert data["example"] == {"title": "Hello"}
        assert data["properties"][1]["default"] == "draft"

    def test_json_without_examples(self, engine):
        data = engine.generate_docs(ARTICLE_SCHEMA, format="json", include_examples=False)
        assert "example" not in data

    def test_unknown_format(self, engine):
        with pytest.raises(ValueError):
            engine.generate_docs(ARTICLE_SCHEMA, format="pdf")
