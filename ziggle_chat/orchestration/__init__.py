"""
Widget chat orchestration.

Answers a widget question by letting the model pick retrieval tools, running
them, filtering the retrieved documents and streaming a grounded answer.

Components:
- tool_cache: TTL cache over the retrieval backend's tool list
- selector: tool selection with a retry policy
- executor: parallel, timeout-guarded tool execution
- documents: relevance filter for document-listing results
- grounding: gate deciding whether an answer may be generated
- streamer / sse: relays the model stream to the client as SSE frames
- orchestrator: the per-question pipeline
- prompts: system prompts for each step
"""

from .orchestrator import AnswerOutcome, ChatOrchestrator, PipelineStage, PreparedAnswer

__all__ = [
    "AnswerOutcome",
    "ChatOrchestrator",
    "PipelineStage",
    "PreparedAnswer",
]
