"""
Schema documentation.

build_doc_tree() walks a schema once and produces a neutral DocNode tree;
renderers turn the tree into markdown, HTML or a plain dict. Renderers
never look at the schema itself.

Invariants:
    - Property order follows the schema's `properties` order
    - Examples appear only when include_examples is set
    - HTML output escapes every schema-supplied string
"""

from __future__ import annotations

import html
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .nodes import MISSING, RefResolver, SchemaNode

STRING_KEYWORDS = ("format", "minLength", "maxLength", "pattern", "enum")
NUMBER_KEYWORDS = ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf", "enum")
ARRAY_KEYWORDS = ("minItems", "maxItems", "uniqueItems")
OBJECT_KEYWORDS = ("minProperties", "maxProperties", "additionalProperties")

LABELS = {
    "format": "Format",
    "minLength": "Minimum Length",
    "maxLength": "Maximum Length",
    "pattern": "Pattern",
    "enum": "Allowed Values",
    "const": "Constant",
    "minimum": "Minimum",
    "maximum": "Maximum",
    "multipleOf": "Multiple Of",
    "minItems": "Minimum Items",
    "maxItems": "Maximum Items",
    "uniqueItems": "Unique Items",
    "minProperties": "Minimum Properties",
    "maxProperties": "Maximum Properties",
    "additionalProperties": "Additional Properties",
    "nullable": "Nullable",
}


@dataclass
class DocNode:
    """Documentation record for one schema node.

    Attributes:
        name: Display name (property name, `name[]` for array items)
        path: Dotted path from the root ("" for the root)
        types: Declared kinds, ["object"] when none is declared
        constraints: Keyword -> value for the constraints present
        properties: Child docs in declaration order
        items: Item doc, tuple item docs, or None
    """

    name: str
    path: str = ""
    description: str = ""
    types: List[str] = field(default_factory=lambda: ["object"])
    required: bool = False
    default: Any = MISSING
    example: Any = MISSING
    constraints: Dict[str, Any] = field(default_factory=dict)
    properties: List[DocNode] = field(default_factory=list)
    items: Union[DocNode, List[DocNode], None] = None

    @property
    def type_label(self) -> str:
        return ", ".join(self.types)

    def has_kind(self, *kinds: str) -> bool:
        return any(kind in self.types for kind in kinds)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "description": self.description,
            "type": self.types[0] if len(self.types) == 1 else list(self.types),
            "required": self.required,
        }
        if self.default is not MISSING:
            result["default"] = self.default
        if self.example is not MISSING:
            result["example"] = self.example
        result.update(self.constraints)
        result["properties"] = [prop.to_dict() for prop in self.properties]
        if isinstance(self.items, list):
            result["items"] = [item.to_dict() for item in self.items]
        elif self.items is not None:
            result["items"] = self.items.to_dict()
        return result


def build_doc_tree(root: SchemaNode, name: str) -> DocNode:
    """Build the documentation tree for a schema."""
    return _DocBuilder(root).build(root, name, "", frozenset())


class _DocBuilder:
    def __init__(self, root: SchemaNode) -> None:
        self._refs = RefResolver(root)

    def build(self, node: SchemaNode, name: str, path: str, refs: frozenset) -> DocNode:
        if node.ref is not None and node.ref not in refs:
            target = self._refs.resolve(node.ref)
            if target is not None:
                doc = self.build(target, name, path, refs | {node.ref})
                doc.required = doc.required or node.required_flag
                return doc
        if node.ref is not None:
            return DocNode(name=name, path=path, types=[f"$ref {node.ref}"])

        doc = DocNode(
            name=name,
            path=path,
            description=node.description or "",
            types=list(node.types) or ["object"],
            required=node.required_flag,
            default=node.default,
            example=node.example,
        )
        raw = node.raw if isinstance(node.raw, dict) else {}

        if doc.has_kind("string"):
            keywords = STRING_KEYWORDS
        elif doc.has_kind("number", "integer"):
            keywords = NUMBER_KEYWORDS
        elif doc.has_kind("array"):
            keywords = ARRAY_KEYWORDS
        elif doc.has_kind("object"):
            keywords = OBJECT_KEYWORDS
        else:
            keywords = ("enum",)
        for keyword in keywords + ("const", "nullable"):
            if keyword in raw:
                value = raw[keyword]
                if keyword == "additionalProperties" and isinstance(value, dict):
                    value = "schema"
                doc.constraints[keyword] = value

        if doc.has_kind("array") and node.items is not None:
            if isinstance(node.items, tuple):
                doc.items = [
                    self.build(item, f"{name}[{index}]", f"{path}[{index}]", refs)
                    for index, item in enumerate(node.items)
                ]
            else:
                doc.items = self.build(node.items, f"{name}[]", f"{path}[]", refs)

        if doc.has_kind("object"):
            for prop_name, child in node.properties.items():
                prop_path = f"{path}.{prop_name}" if path else prop_name
                prop_doc = self.build(child, prop_name, prop_path, refs)
                if prop_name in node.required:
                    prop_doc.required = True
                doc.properties.append(prop_doc)
        return doc


def _literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _constraint_lines(doc: DocNode) -> List[tuple]:
    """(label, text, is_code) rows for the constraints of a node."""
    rows = []
    for keyword, value in doc.constraints.items():
        if keyword in ("exclusiveMinimum", "exclusiveMaximum"):
            if isinstance(value, bool):
                continue
            label = "Minimum" if keyword == "exclusiveMinimum" else "Maximum"
            rows.append((label, f"{value} (exclusive)", False))
            continue
        label = LABELS[keyword]
        if keyword in ("minimum", "maximum"):
            flag = doc.constraints.get("exclusiveMinimum" if keyword == "minimum" else "exclusiveMaximum")
            rows.append((label, f"{value}{' (exclusive)' if flag is True else ''}", False))
        elif keyword == "pattern":
            rows.append((label, value, True))
        elif keyword == "enum":
            rows.append((label, [_literal(v) if not isinstance(v, str) else v for v in value], True))
        elif keyword == "const":
            rows.append((label, _literal(value), True))
        elif keyword == "uniqueItems":
            if value:
                rows.append((label, "Required", False))
        elif keyword == "nullable":
            if value:
                rows.append((label, "Yes", False))
        elif keyword == "additionalProperties":
            if value is False:
                rows.append((label, "Not allowed", False))
            elif value == "schema":
                rows.append((label, "Must conform to schema", False))
        else:
            rows.append((label, value, False))
    return rows


# ----------------------------------------------------------------------
# Markdown
# ----------------------------------------------------------------------


def _md_value(text: Any, is_code: bool) -> str:
    if isinstance(text, list):
        return ", ".join(f"`{item}`" for item in text)
    return f"`{text}`" if is_code else str(text)


def _md_constraints(doc: DocNode) -> str:
    return "".join(
        f"**{label}:** {_md_value(text, is_code)}\n\n"
        for label, text, is_code in _constraint_lines(doc)
    )


def _md_body(doc: DocNode, include_examples: bool) -> str:
    """Everything below a node's heading."""
    out = ""
    if doc.description:
        out += f"{doc.description}\n\n"
    out += f"**Type:** {doc.type_label}\n\n"
    if doc.default is not MISSING:
        out += f"**Default:** `{_literal(doc.default)}`\n\n"
    out += _md_constraints(doc)

    if isinstance(doc.items, list):
        out += "## Array Items (Tuple)\n\n"
        for index, item in enumerate(doc.items):
            out += f"### Item {index + 1}\n\n"
            out += _md_body(item, include_examples)
    elif doc.items is not None:
        out += "## Array Items\n\n"
        out += _md_body(doc.items, include_examples)

    if doc.properties:
        out += "## Properties\n\n"
        for prop in doc.properties:
            out += _md_property(prop)

    if include_examples and doc.example is not MISSING:
        out += "## Example\n\n```json\n"
        out += json.dumps(doc.example, indent=2, ensure_ascii=False, default=str)
        out += "\n```\n\n"
    return out


def _md_property(prop: DocNode) -> str:
    out = f"### {prop.name}{' (Required)' if prop.required else ''}\n\n"
    if prop.description:
        out += f"{prop.description}\n\n"
    out += f"**Type:** {prop.type_label}\n\n"
    if prop.default is not MISSING:
        out += f"**Default:** `{_literal(prop.default)}`\n\n"
    out += _md_constraints(prop)
    if prop.properties:
        out += "#### Sub-properties\n\n"
        for sub in prop.properties:
            line = f"- **{sub.name}{' (Required)' if sub.required else ''}**: {sub.type_label}"
            if sub.description:
                line += f" - {sub.description}"
            out += line + "\n"
        out += "\n"
    if isinstance(prop.items, list):
        out += "**Items:** Tuple of different types\n\n"
    elif prop.items is not None:
        out += f"**Items Type:** {prop.items.type_label}\n\n"
    return out


def render_markdown(doc: DocNode, include_examples: bool = True) -> str:
    """Render a DocNode tree as markdown."""
    return f"# {doc.name}\n\n" + _md_body(doc, include_examples)


# ----------------------------------------------------------------------
# HTML
# ----------------------------------------------------------------------

_HTML_STYLE = """\
body { font-family: Arial, sans-serif; line-height: 1.6; margin: 0; padding: 20px; color: #333; }
h1 { border-bottom: 1px solid #eee; padding-bottom: 10px; }
h2 { margin-top: 30px; border-bottom: 1px solid #eee; padding-bottom: 5px; }
code, pre { background: #f5f5f5; padding: 2px 5px; border-radius: 3px; font-family: monospace; }
pre { padding: 15px; overflow-x: auto; }
.property { margin-bottom: 30px; padding: 10px; border-left: 3px solid #2196F3; background: #f9f9f9; }
.required { color: #d9534f; font-weight: bold; }
.example { background: #e8f5e9; padding: 15px; border-radius: 5px; margin-top: 20px; }"""


def _html_value(text: Any, is_code: bool) -> str:
    if isinstance(text, list):
        return ", ".join(f"<code>{html.escape(str(item))}</code>" for item in text)
    escaped = html.escape(str(text))
    return f"<code>{escaped}</code>" if is_code else escaped


def _html_facts(doc: DocNode) -> str:
    rows = [f"<li><strong>Type:</strong> {html.escape(doc.type_label)}</li>"]
    if doc.default is not MISSING:
        rows.append(
            f"<li><strong>Default:</strong> <code>{html.escape(_literal(doc.default))}</code></li>"
        )
    for label, text, is_code in _constraint_lines(doc):
        rows.append(f"<li><strong>{html.escape(label)}:</strong> {_html_value(text, is_code)}</li>")
    return "<ul>" + "".join(rows) + "</ul>\n"


def _html_body(doc: DocNode, include_examples: bool, level: int) -> str:
    out = ""
    if doc.description:
        out += f'<p class="description">{html.escape(doc.description)}</p>\n'
    out += _html_facts(doc)

    heading = min(level + 1, 6)
    if isinstance(doc.items, list):
        out += f"<h{heading}>Array Items (Tuple)</h{heading}>\n"
        for index, item in enumerate(doc.items):
            out += f'<div class="property"><h{min(heading + 1, 6)}>Item {index + 1}</h{min(heading + 1, 6)}>\n'
            out += _html_body(item, include_examples, heading + 1)
            out += "</div>\n"
    elif doc.items is not None:
        out += f"<h{heading}>Array Items</h{heading}>\n"
        out += _html_body(doc.items, include_examples, heading)

    if doc.properties:
        out += f"<h{heading}>Properties</h{heading}>\n"
        for prop in doc.properties:
            sub = min(heading + 1, 6)
            marker = ' <span class="required">(Required)</span>' if prop.required else ""
            out += f'<div class="property"><h{sub}>{html.escape(prop.name)}{marker}</h{sub}>\n'
            out += _html_body(prop, include_examples, sub)
            out += "</div>\n"

    if include_examples and doc.example is not MISSING:
        example = json.dumps(doc.example, indent=2, ensure_ascii=False, default=str)
        out += (
            f'<div class="example"><h{heading}>Example</h{heading}>'
            f'<pre><code class="json">{html.escape(example)}</code></pre></div>\n'
        )
    return out


def render_html(doc: DocNode, include_examples: bool = True) -> str:
    """Render a DocNode tree as a standalone HTML page."""
    title = html.escape(doc.name)
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{title} Schema Documentation</title>\n"
        f"<style>\n{_HTML_STYLE}\n</style>\n"
        "</head>\n<body>\n"
        f"<h1>{title}</h1>\n"
        + _html_body(doc, include_examples, 1)
        + "</body>\n</html>\n"
    )


def render_json(doc: DocNode, include_examples: bool = True) -> Dict[str, Any]:
    """Return the doc tree as a plain dict."""
    data = doc.to_dict()
    if not include_examples:
        _drop_examples(data)
    return data


def _drop_examples(data: Dict[str, Any]) -> None:
    data.pop("example", None)
    for prop in data.get("properties", []):
        _drop_examples(prop)
    items = data.get("items")
    if isinstance(items, list):
        for item in items:
            _drop_examples(item)
    elif isinstance(items, dict):
        _drop_examples(items)


RENDERERS = {
    "markdown": render_markdown,
    "html": render_html,
    "json": render_json,
}


def render(doc: DocNode, fmt: str = "markdown", include_examples: bool = True) -> Union[str, Dict[str, Any]]:
    """Render with the named renderer.

    Raises:
        ValueError: If fmt is not markdown, html or json
    """
    renderer = RENDERERS.get(fmt.lower())
    if renderer is None:
        raise ValueError(f"Unknown docs format: {fmt!r} (expected one of {sorted(RENDERERS)})")
    return renderer(doc, include_examples)


def doc_name(node: SchemaNode, fallback: str, title: Optional[str] = None) -> str:
    if title:
        return title
    if node.title:
        return node.title
    return fallback
