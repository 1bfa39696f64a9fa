from __future__ import annotations

from typing import List, Optional, Sequence
from urllib.parse import quote

from .models import ResourceInfo, ResourceRef, ToolExecutionResult
from .tool_results import citable_formats, extract_document_title

# Characters left unescaped by JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def has_grounding(results: Sequence[ToolExecutionResult], resources: Sequence[ResourceInfo]) -> bool:
    """True when the answer can be built from retrieved documents."""
    return any(result.had_reference_content for result in results) or len(resources) > 0


def collect_resources(results: Sequence[ToolExecutionResult]) -> List[ResourceInfo]:
    resources: List[ResourceInfo] = []
    for result in results:
        resources.extend(result.resources)
    return resources


def resource_url(path: str, prefix: str = "") -> str:
    return f"{prefix}{quote(path, safe=_URI_COMPONENT_SAFE)}"


def to_resource_info(ref: ResourceRef, url_prefix: str = "") -> Optional[ResourceInfo]:
    formats = citable_formats(ref.formats)
    if not ref.path or not formats:
        return None
    title = extract_document_title(ref.path, formats)
    suffix = " (PDF)" if "pdf" in formats else " (PNG)"
    return ResourceInfo(path=f"{title}{suffix}", formats=formats, url=resource_url(ref.path, url_prefix))
