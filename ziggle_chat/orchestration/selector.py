from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .models import Tool, ToolSelection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionAttempt:
    temperature: float
    emphasize_tool_usage: bool = False


# First try is permissive, the retry is colder and insists on tool use.
DEFAULT_SELECTION_POLICY = (
    SelectionAttempt(temperature=0.3),
    SelectionAttempt(temperature=0.1, emphasize_tool_usage=True),
)


class ToolSelector:
    """Asks the model which tools to call, retrying per the attempt policy.

    Zero calls after every attempt is a valid outcome, not an error. A failed
    attempt (network or API error) counts as zero calls.
    """

    def __init__(
        self,
        llm: Any,
        *,
        policy: Sequence[SelectionAttempt] = DEFAULT_SELECTION_POLICY,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.llm = llm
        self.policy = tuple(policy)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def select(
        self,
        question: str,
        tools: List[Tool],
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> ToolSelection:
        total = len(self.policy)
        last_response: Optional[Dict[str, Any]] = None

        for attempt_no, attempt in enumerate(self.policy, start=1):
            try:
                response = await self.llm.select_tool(
                    question,
                    tools,
                    temperature=attempt.temperature,
                    emphasize_tool_usage=attempt.emphasize_tool_usage,
                    history=history,
                )
                last_response = response
                tool_calls = self.llm.parse_tool_calls(response)
                logger.debug(
                    "Tool selection result (attempt %d/%d): %d tool(s) selected",
                    attempt_no,
                    total,
                    len(tool_calls),
                )
                if tool_calls:
                    return ToolSelection(tool_calls=tool_calls, raw_response=response, attempts=attempt_no)
            except Exception as exc:
                logger.error("Error during tool selection (attempt %d/%d): %s", attempt_no, total, exc)

            if attempt_no < total:
                await self._sleep(self.backoff_seconds)

        logger.warning("No tools selected after %d attempt(s)", total)
        return ToolSelection(tool_calls=[], raw_response=last_response, attempts=total)
