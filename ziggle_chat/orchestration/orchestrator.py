"""
Widget chat orchestrator.

Main entry point for answering a widget question. Implements:
- process_user_question(): load tools, select, execute, gate on grounding,
  and prepare the model stream (or a refusal stream)
- handle_streaming_response(): the SSE frame generator served to the client

Stages per question:
IDLE -> TOOLS_LOADING -> TOOL_SELECTING -> EXECUTING_TOOLS -> STREAMING_ANSWER -> DONE
with refusal exits NO_TOOLS / UNGROUNDED -> REFUSAL_STREAM -> DONE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from ..utils.conversation import build_prompt_messages, history_from_context
from .grounding import collect_resources, has_grounding
from .models import ResourceInfo, ToolExecutionResult
from .prompts import (
    FINAL_RESPONSE_SYSTEM_PROMPT,
    NO_RELEVANT_MATERIALS_SYSTEM_PROMPT,
    NO_TOOLS_AVAILABLE_SYSTEM_PROMPT,
)
from .sse import encode_frame

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "idle"
    TOOLS_LOADING = "tools_loading"
    TOOL_SELECTING = "tool_selecting"
    NO_TOOLS = "no_tools"
    EXECUTING_TOOLS = "executing_tools"
    UNGROUNDED = "ungrounded"
    REFUSAL_STREAM = "refusal_stream"
    STREAMING_ANSWER = "streaming_answer"
    DONE = "done"


class AnswerOutcome(str, Enum):
    ANSWERED = "answered"
    NO_TOOLS_AVAILABLE = "no_tools_available"
    NO_TOOL_SELECTED = "no_tool_selected"
    UNGROUNDED = "ungrounded"


@dataclass
class PreparedAnswer:
    """A model stream ready to be relayed, plus what produced it."""
    stream: AsyncIterator[bytes]
    resources: List[ResourceInfo] = field(default_factory=list)
    outcome: AnswerOutcome = AnswerOutcome.ANSWERED
    tool_results: List[ToolExecutionResult] = field(default_factory=list)
    stages: List[PipelineStage] = field(default_factory=list)


class ChatOrchestrator:
    def __init__(
        self,
        *,
        message_store: Any,
        tool_cache: Any,
        selector: Any,
        executor: Any,
        llm: Any,
        streamer: Any,
        history_limit: int = 10,
    ) -> None:
        self.message_store = message_store
        self.tool_cache = tool_cache
        self.selector = selector
        self.executor = executor
        self.llm = llm
        self.streamer = streamer
        self.history_limit = history_limit

    def _refusal(
        self,
        system_prompt: str,
        history: List[Dict[str, str]],
        question: str,
        outcome: AnswerOutcome,
        stages: List[PipelineStage],
        tool_results: Optional[List[ToolExecutionResult]] = None,
    ) -> PreparedAnswer:
        stages.append(PipelineStage.REFUSAL_STREAM)
        stream = self.llm.generate_final_response_stream(
            build_prompt_messages(system_prompt, history, question),
            [],
            temperature=0,
        )
        return PreparedAnswer(
            stream=stream,
            resources=[],
            outcome=outcome,
            tool_results=list(tool_results or []),
            stages=stages,
        )

    async def process_user_question(self, session_id: str, question: str) -> PreparedAnswer:
        stages = [PipelineStage.IDLE]

        # History is read before the new question is stored so it only holds prior turns.
        past = await self.message_store.get_messages_for_context(session_id, limit=self.history_limit)
        history = history_from_context(past)
        await self.message_store.create_message(session_id, "user", question)

        stages.append(PipelineStage.TOOLS_LOADING)
        tools = await self.tool_cache.get_tools()
        if not tools:
            logger.warning("No MCP tools available")
            stages.append(PipelineStage.NO_TOOLS)
            return self._refusal(
                NO_TOOLS_AVAILABLE_SYSTEM_PROMPT, history, question, AnswerOutcome.NO_TOOLS_AVAILABLE, stages
            )

        stages.append(PipelineStage.TOOL_SELECTING)
        logger.debug("Requesting tool selection for question: %r", question)
        selection = await self.selector.select(question, tools, history)
        if not selection.tool_calls:
            logger.warning(
                "No tools selected after %d attempt(s); responding that no relevant materials are available",
                selection.attempts,
            )
            stages.append(PipelineStage.NO_TOOLS)
            return self._refusal(
                NO_RELEVANT_MATERIALS_SYSTEM_PROMPT, history, question, AnswerOutcome.NO_TOOL_SELECTED, stages
            )

        stages.append(PipelineStage.EXECUTING_TOOLS)
        results = await self.executor.execute_all(selection.tool_calls, question)
        resources = collect_resources(results)
        grounded = has_grounding(results, resources)
        logger.debug(
            "Grounding check: resources=%d reference_content=%s grounded=%s",
            len(resources),
            any(r.had_reference_content for r in results),
            grounded,
        )
        if not grounded:
            logger.warning("No reference documents available")
            stages.append(PipelineStage.UNGROUNDED)
            return self._refusal(
                NO_RELEVANT_MATERIALS_SYSTEM_PROMPT, history, question, AnswerOutcome.UNGROUNDED, stages, results
            )

        stages.append(PipelineStage.STREAMING_ANSWER)
        messages = build_prompt_messages(FINAL_RESPONSE_SYSTEM_PROMPT, history, question)
        messages.append(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [call.to_openai() for call in selection.tool_calls],
            }
        )
        stream = self.llm.generate_final_response_stream(messages, results)
        return PreparedAnswer(
            stream=stream,
            resources=resources,
            outcome=AnswerOutcome.ANSWERED,
            tool_results=results,
            stages=stages,
        )

    async def handle_streaming_response(self, session_id: str, question: str) -> AsyncIterator[str]:
        try:
            prepared = await self.process_user_question(session_id, question)
        except Exception as exc:
            logger.exception("Error processing user question")
            yield encode_frame({"error": f"Failed to process user question: {exc}"})
            return

        async for frame in self.streamer.relay(session_id, prepared.stream, prepared.resources):
            yield frame
        prepared.stages.append(PipelineStage.DONE)
