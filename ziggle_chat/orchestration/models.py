"""
Data types shared by the chat orchestration pipeline.

- Tool / ToolCall: registry entries and the model's parsed function calls
- ResourceRef / SubDocument / DocumentCandidate: document listing entries and fetched documents
- ResourceInfo: client-facing citation (pdf/png only)
- ToolExecutionResult: one result per executed ToolCall
- McpCallResult: normalized response of a retrieval-backend tool call
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Tool:
    """Tool exposed by the retrieval backend. Identity is the name."""
    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_openai(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments, ensure_ascii=False),
            },
        }


@dataclass
class ResourceRef:
    """Entry of a document listing: a path and the formats it is available in."""
    path: str
    formats: List[str] = field(default_factory=list)


@dataclass
class SubDocument:
    """Cross-reference found inside a document body."""
    path: str
    description: str


@dataclass
class DocumentCandidate:
    title: str
    content: str
    path: str
    formats: List[str] = field(default_factory=list)
    sub_documents: List[SubDocument] = field(default_factory=list)


@dataclass
class ResourceInfo:
    path: str  # display title, e.g. "학생지원 (PDF)"
    formats: List[str]
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "formats": list(self.formats), "url": self.url}


@dataclass
class FilterResult:
    content: str = ""
    used_resources: List[ResourceRef] = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.content.strip())


@dataclass
class ToolExecutionResult:
    tool_call_id: str
    name: str
    content: str
    resources: List[ResourceInfo] = field(default_factory=list)
    # True only when the relevance filter attached real document text
    had_reference_content: bool = False

    def to_message(self) -> Dict[str, Any]:
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "name": self.name,
            "content": self.content,
        }


@dataclass
class ToolSelection:
    tool_calls: List[ToolCall] = field(default_factory=list)
    raw_response: Optional[Dict[str, Any]] = None
    attempts: int = 0


@dataclass
class McpCallResult:
    texts: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)
    resource_links: List[Dict[str, Any]] = field(default_factory=list)
    embedded_resources: List[Dict[str, Any]] = field(default_factory=list)
    filtered_resources: List[ResourceRef] = field(default_factory=list)
