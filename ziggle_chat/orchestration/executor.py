from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional, Sequence

from .grounding import to_resource_info
from .models import ResourceInfo, ToolCall, ToolExecutionResult
from .tool_results import raw_result_text

logger = logging.getLogger(__name__)

DOCUMENT_LISTING_TOOL = "list_resources"


class ToolExecutor:
    """Runs every selected tool call concurrently, each under its own timeout.

    A failing or timed-out call yields a "Tool execution failed" result for
    that call only; siblings are unaffected.
    """

    def __init__(
        self,
        resources: Any,
        relevance_filter: Any,
        *,
        timeout_seconds: float = 30.0,
        listing_tool: str = DOCUMENT_LISTING_TOOL,
        resource_url_prefix: str = "",
    ) -> None:
        self.resources = resources
        self.relevance_filter = relevance_filter
        self.timeout_seconds = timeout_seconds
        self.listing_tool = listing_tool
        self.resource_url_prefix = resource_url_prefix

    async def execute_all(self, tool_calls: Sequence[ToolCall], question: Optional[str] = None) -> List[ToolExecutionResult]:
        logger.debug("Executing %d tool(s) in parallel...", len(tool_calls))
        results = await asyncio.gather(*(self._execute_guarded(call, question) for call in tool_calls))
        return list(results)

    async def _execute_guarded(self, call: ToolCall, question: Optional[str]) -> ToolExecutionResult:
        try:
            return await asyncio.wait_for(self.execute(call, question), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            message = f"Tool execution timeout: {call.name}"
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
        logger.error("Error executing tool %s: %s", call.name, message)
        return ToolExecutionResult(
            tool_call_id=call.id,
            name=call.name,
            content=f"Tool execution failed: {message}",
        )

    async def execute(self, call: ToolCall, question: Optional[str] = None) -> ToolExecutionResult:
        logger.debug("Calling tool: %s with args: %s", call.name, json.dumps(call.arguments, ensure_ascii=False))
        result = await self.resources.call_tool(call.name, call.arguments)
        content = raw_result_text(result)

        resources: List[ResourceInfo] = []
        had_reference_content = False
        if call.name == self.listing_tool and question and result.filtered_resources:
            filtered = await self.relevance_filter.filter(question, result.filtered_resources)
            if filtered.has_content:
                content = f"{content}\n\n{filtered.content}"
                had_reference_content = True
                for ref in filtered.used_resources:
                    info = to_resource_info(ref, self.resource_url_prefix)
                    if info is not None:
                        resources.append(info)

        return ToolExecutionResult(
            tool_call_id=call.id,
            name=call.name,
            content=content,
            resources=resources,
            had_reference_content=had_reference_content,
        )
