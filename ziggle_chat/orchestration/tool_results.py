"""
Helpers for interpreting retrieval-backend tool output.

A text item returned by a tool is either a document listing (a JSON object
with a ``resources`` array) or plain text. ``parse_tool_result_shape``
resolves that once so the rest of the pipeline never sniffs JSON again.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .models import McpCallResult, ResourceRef


# Formats a listing entry must carry at least one of to be kept.
KNOWN_RESOURCE_FORMATS = frozenset({"md", "pdf", "png"})
MARKDOWN_FORMATS = frozenset({"md", "markdown"})
CITABLE_FORMATS = ("pdf", "png")

_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,5}$", re.IGNORECASE)


@dataclass(frozen=True)
class DocumentListing:
    resources: List[ResourceRef] = field(default_factory=list)


@dataclass(frozen=True)
class PlainText:
    text: str


ToolResultShape = Union[DocumentListing, PlainText]


def _coerce_resource_ref(entry: Any) -> Optional[ResourceRef]:
    if not isinstance(entry, dict):
        return None
    path = entry.get("path")
    formats = entry.get("formats")
    if not isinstance(path, str) or not path or not isinstance(formats, list):
        return None
    formats = [str(fmt) for fmt in formats]
    if not KNOWN_RESOURCE_FORMATS.intersection(formats):
        return None
    return ResourceRef(path=path, formats=formats)


def parse_tool_result_shape(text: str) -> ToolResultShape:
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        return PlainText(text)

    if isinstance(parsed, dict) and isinstance(parsed.get("resources"), list):
        refs = [ref for ref in (_coerce_resource_ref(e) for e in parsed["resources"]) if ref]
        return DocumentListing(resources=refs)
    return PlainText(text)


def collect_call_result(raw: Dict[str, Any]) -> McpCallResult:
    """Split a dumped CallToolResult into texts, links, embedded resources and listings."""
    result = McpCallResult(raw=raw)
    for item in raw.get("content") or []:
        kind = item.get("type")
        if kind == "text":
            shape = parse_tool_result_shape(item.get("text") or "")
            if isinstance(shape, DocumentListing):
                result.filtered_resources.extend(shape.resources)
            else:
                result.texts.append(shape.text)
        elif kind == "resource_link":
            result.resource_links.append(item)
        elif kind == "resource":
            result.embedded_resources.append(item)
    return result


def raw_result_text(result: McpCallResult) -> str:
    joined = "\n".join(result.texts)
    if joined:
        return joined
    return json.dumps(result.raw, ensure_ascii=False, indent=2, default=str)


def _looks_like_json(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") or stripped.startswith("[")


def extract_document_text(result: McpCallResult) -> str:
    """Plain document body from a get_resource call, or "" when none."""
    if result.texts:
        content = "\n".join(result.texts)
        if content and not _looks_like_json(content):
            return content

    parts: List[str] = []
    for item in result.raw.get("content") or []:
        if item.get("type") != "text":
            continue
        text = item.get("text")
        if isinstance(text, str) and text and not _looks_like_json(text):
            parts.append(text)
    return "\n".join(parts)


def normalize_resource_path(path: str) -> str:
    """Strip a trailing file extension; the backend resolves .md/.pdf itself."""
    if "." not in path:
        return path
    stem, _, extension = path.rpartition(".")
    if _EXTENSION_RE.match(extension):
        return stem
    return path


def extract_document_title(path: str, formats: Optional[Iterable[str]] = None) -> str:
    title = path.split("/")[-1] or path
    if "." not in title and formats and "md" in formats:
        title = f"{title}.md"
    return title


def is_markdown(formats: Iterable[str]) -> bool:
    return any(fmt in MARKDOWN_FORMATS for fmt in formats)


def citable_formats(formats: Iterable[str]) -> List[str]:
    return [fmt for fmt in formats if fmt in CITABLE_FORMATS]
