"""
Document relevance sub-pipeline for document-listing tool results.

Steps:
1. keep markdown-bearing listing entries
2. keyword-rank them and keep the top candidates
3. fetch each candidate's text (failures skipped)
4. ask the model to narrow the set to at most three documents
5. render the selected documents and collect pdf/png citations
6. follow cross-referenced sub-documents that match the question
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, List, Optional, Sequence

from .models import DocumentCandidate, FilterResult, ResourceRef, SubDocument
from .prompts import (
    DOCUMENT_SELECTION_SYSTEM_PROMPT,
    DOCUMENT_SELECTION_USER_TEMPLATE,
    NO_DOCUMENT_MARKER,
    SUB_DOCUMENTS_HEADER,
    format_document_list,
    format_resource_block,
    format_sub_document_block,
)
from .tool_results import (
    citable_formats,
    extract_document_text,
    extract_document_title,
    is_markdown,
    normalize_resource_path,
)

logger = logging.getLogger(__name__)

RESOURCE_FETCH_TOOL = "get_resource"

KEYWORD_RE = re.compile(r"[\uac00-\ud7a3]+|[a-z]+")
DOCUMENT_LINK_RE = re.compile(r'<document\s+path="([^"]+)"\s+description="([^"]+)"></document>')
_INTEGER_RE = re.compile(r"\d+")


def extract_keywords(question: str) -> List[str]:
    return [word for word in KEYWORD_RE.findall(question.lower()) if len(word) > 1]


def rank_candidates(question: str, refs: Sequence[ResourceRef], limit: int = 5) -> List[ResourceRef]:
    keywords = extract_keywords(question)
    if not keywords:
        return list(refs[:limit])

    scored = []
    for ref in refs:
        path = ref.path.lower()
        scored.append((sum(len(kw) for kw in keywords if kw in path), ref))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [ref for _, ref in scored[:limit]]


def rank_sub_documents(question: str, documents: Sequence[SubDocument], limit: int = 3) -> List[SubDocument]:
    keywords = extract_keywords(question)
    if not keywords:
        return list(documents[:limit])

    scored = []
    for doc in documents:
        path = doc.path.lower()
        description = doc.description.lower()
        score = 0
        for kw in keywords:
            if kw in path:
                score += len(kw) * 2
            if kw in description:
                score += len(kw)
        scored.append((score, doc))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [doc for _, doc in scored[:limit]]


def parse_document_links(content: str) -> List[SubDocument]:
    return [SubDocument(path=m.group(1), description=m.group(2)) for m in DOCUMENT_LINK_RE.finditer(content)]


def parse_selection_reply(reply: str, count: int, cap: int = 3) -> Optional[List[int]]:
    """Zero-based indices chosen by the model.

    Returns ``[]`` when the model answered "none" and ``None`` when no usable
    number could be read from the reply.
    """
    if NO_DOCUMENT_MARKER in reply:
        return []

    indices: List[int] = []
    for raw in _INTEGER_RE.findall(reply):
        idx = int(raw) - 1
        if 0 <= idx < count and idx not in indices:
            indices.append(idx)
    if not indices:
        return None
    return indices[:cap]


class DocumentRelevanceFilter:
    def __init__(
        self,
        resources: Any,
        llm: Any,
        *,
        candidate_limit: int = 5,
        selection_limit: int = 3,
        sub_document_limit: int = 3,
    ) -> None:
        self.resources = resources
        self.llm = llm
        self.candidate_limit = candidate_limit
        self.selection_limit = selection_limit
        self.sub_document_limit = sub_document_limit

    async def filter(self, question: str, refs: Sequence[ResourceRef]) -> FilterResult:
        markdown_refs = [ref for ref in refs if is_markdown(ref.formats)]
        if not markdown_refs:
            logger.debug("No markdown resources found in document listing")
            return FilterResult()

        ranked = rank_candidates(question, markdown_refs, self.candidate_limit)
        logger.info(
            "Found %d candidate markdown resource(s): %s",
            len(ranked),
            ", ".join(ref.path for ref in ranked),
        )

        candidates = await self._fetch_candidates(ranked)
        if not candidates:
            return FilterResult()

        selected = await self._select_relevant(question, candidates)
        if not selected:
            logger.info("No documents selected as relevant")
            return FilterResult()

        blocks: List[str] = []
        used: List[ResourceRef] = []
        sub_documents: List[SubDocument] = []
        seen_paths = set()
        for doc in selected:
            blocks.append(format_resource_block(doc.title, doc.content))
            formats = citable_formats(doc.formats)
            if formats:
                used.append(ResourceRef(path=doc.path, formats=formats))
            for sub in doc.sub_documents:
                if sub.path not in seen_paths:
                    seen_paths.add(sub.path)
                    sub_documents.append(sub)

        if sub_documents:
            relevant = rank_sub_documents(question, sub_documents, self.sub_document_limit)
            logger.info(
                "Fetching %d relevant sub-document(s): %s",
                len(relevant),
                ", ".join(doc.path for doc in relevant),
            )
            sub_content = await self._fetch_sub_documents(relevant)
            if sub_content:
                blocks.append(f"{SUB_DOCUMENTS_HEADER}\n\n{sub_content}")

        return FilterResult(content="\n\n".join(blocks), used_resources=used)

    async def _fetch_text(self, path: str) -> str:
        resource_path = normalize_resource_path(path)
        logger.debug("Fetching markdown resource: %s", resource_path)
        result = await self.resources.call_tool(RESOURCE_FETCH_TOOL, {"path": resource_path})
        return extract_document_text(result)

    async def _fetch_candidates(self, refs: Sequence[ResourceRef]) -> List[DocumentCandidate]:
        outcomes = await asyncio.gather(*(self._fetch_text(ref.path) for ref in refs), return_exceptions=True)

        candidates: List[DocumentCandidate] = []
        for ref, outcome in zip(refs, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Failed to fetch %s: %s", ref.path, outcome)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            if not outcome:
                continue
            candidates.append(
                DocumentCandidate(
                    title=extract_document_title(ref.path, ref.formats),
                    content=outcome,
                    path=ref.path,
                    formats=list(ref.formats),
                    sub_documents=parse_document_links(outcome),
                )
            )
        return candidates

    async def _select_relevant(self, question: str, candidates: List[DocumentCandidate]) -> List[DocumentCandidate]:
        if len(candidates) == 1:
            return candidates

        prompt = DOCUMENT_SELECTION_USER_TEMPLATE.format(
            document_list=format_document_list([doc.title for doc in candidates]),
            question=question,
        )
        try:
            reply = await self.llm.complete(
                [
                    {"role": "system", "content": DOCUMENT_SELECTION_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.1,
                max_tokens=100,
            )
        except Exception as exc:
            logger.warning(
                "Failed to select relevant documents (%s), using first %d", exc, self.selection_limit
            )
            return candidates[: self.selection_limit]

        reply = (reply or "").strip()
        logger.debug("Model selected documents: %s", reply)
        indices = parse_selection_reply(reply, len(candidates), self.selection_limit)
        if indices is None:
            logger.warning("Could not parse document selection, using first %d", self.selection_limit)
            return candidates[: self.selection_limit]

        selected = [candidates[idx] for idx in indices]
        if selected:
            logger.info(
                "Selected %d relevant document(s) out of %d: %s",
                len(selected),
                len(candidates),
                ", ".join(doc.title for doc in selected),
            )
        return selected

    async def _fetch_sub_documents(self, documents: Sequence[SubDocument]) -> str:
        outcomes = await asyncio.gather(*(self._fetch_text(doc.path) for doc in documents), return_exceptions=True)

        blocks: List[str] = []
        for doc, outcome in zip(documents, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Failed to fetch sub-document %s: %s", doc.path, outcome)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome:
                title = extract_document_title(doc.path, ["md"])
                blocks.append(format_sub_document_block(title, doc.description, outcome))
        return "\n\n".join(blocks)
