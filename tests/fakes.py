"""In-memory stand-ins for the LLM, retrieval backend and message store."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

from ziggle_chat.orchestration.models import McpCallResult, ResourceRef, Tool, ToolCall
from ziggle_chat.orchestration.tool_results import collect_call_result


def text_result(text: str) -> McpCallResult:
    return collect_call_result({"content": [{"type": "text", "text": text}], "isError": False})


def listing_result(entries: Sequence[Dict[str, Any]]) -> McpCallResult:
    return text_result(json.dumps({"resources": list(entries)}, ensure_ascii=False))


def sse_body(deltas: Sequence[str], *, model: str = "test/model", total_tokens: Optional[int] = 42) -> bytes:
    lines = []
    for delta in deltas:
        chunk = {"model": model, "choices": [{"index": 0, "delta": {"content": delta}}]}
        lines.append(f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n")
    if total_tokens is not None:
        usage_chunk = {
            "model": model,
            "choices": [],
            "usage": {"prompt_tokens": 10, "completion_tokens": total_tokens - 10, "total_tokens": total_tokens},
        }
        lines.append(f"data: {json.dumps(usage_chunk)}\n\n")
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def split_bytes(body: bytes, size: int) -> List[bytes]:
    return [body[i : i + size] for i in range(0, len(body), size)]


class FakeResources:
    """Retrieval backend keyed by tool name, and by path for get_resource."""

    def __init__(self) -> None:
        self.tools: List[Tool] = []
        self.results: Dict[str, Any] = {}
        self.documents: Dict[str, Any] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[tuple] = []

    async def list_tools(self) -> List[Tool]:
        return list(self.tools)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> McpCallResult:
        self.calls.append((name, dict(arguments)))
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if name == "get_resource":
            outcome = self.documents.get(arguments.get("path"))
            if outcome is None:
                raise RuntimeError(f"unknown resource {arguments.get('path')}")
        else:
            outcome = self.results.get(name)
            if outcome is None:
                raise RuntimeError(f"unknown tool {name}")
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, str):
            return text_result(outcome)
        return outcome


class FakeLLM:
    """Scripted model: queued tool selections, a fixed completion, canned streams."""

    def __init__(
        self,
        *,
        selections: Optional[List[Any]] = None,
        completion: Any = "1",
        deltas: Sequence[str] = ("안녕", "하세요"),
        stream_error: Optional[Exception] = None,
    ) -> None:
        self.selections = list(selections or [])
        self.completion = completion
        self.deltas = list(deltas)
        self.stream_error = stream_error
        self.select_calls: List[Dict[str, Any]] = []
        self.complete_calls: List[Dict[str, Any]] = []
        self.stream_calls: List[Dict[str, Any]] = []

    async def select_tool(self, question, tools, *, temperature=0.3, emphasize_tool_usage=False, history=None):
        self.select_calls.append(
            {
                "question": question,
                "tools": list(tools),
                "temperature": temperature,
                "emphasize_tool_usage": emphasize_tool_usage,
                "history": history,
            }
        )
        outcome = self.selections.pop(0) if self.selections else []
        if isinstance(outcome, Exception):
            raise outcome
        return {"tool_calls": outcome}

    def parse_tool_calls(self, response: Dict[str, Any]) -> List[ToolCall]:
        return list(response["tool_calls"])

    async def complete(self, messages, *, temperature=0.7, max_tokens=2000) -> str:
        self.complete_calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if isinstance(self.completion, Exception):
            raise self.completion
        return self.completion

    async def generate_final_response_stream(self, messages, tool_results, *, temperature=0.7, max_tokens=2000):
        self.stream_calls.append(
            {"messages": messages, "tool_results": list(tool_results), "temperature": temperature}
        )
        body = sse_body(self.deltas)
        for chunk in split_bytes(body, 7):
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error


class FakeStore:
    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []
        self.usage: List[tuple] = []
        self.fail_on_assistant = False
        self.fail_usage = False

    async def create_message(self, session_id, role, content, metadata=None):
        if role == "assistant" and self.fail_on_assistant:
            raise RuntimeError("database is locked")
        message = {
            "id": f"m{len(self.messages) + 1}",
            "session_id": session_id,
            "role": role,
            "content": content,
            "metadata": metadata,
        }
        self.messages.append(message)
        return message

    async def get_messages_for_context(self, session_id, limit=10):
        own = [m for m in self.messages if m["session_id"] == session_id]
        return list(reversed(own))[:limit]

    async def get_user_message_count(self, session_id):
        return sum(1 for m in self.messages if m["session_id"] == session_id and m["role"] == "user")

    async def record_usage(self, session_id, total_tokens):
        if self.fail_usage:
            raise RuntimeError("usage table missing")
        self.usage.append((session_id, total_tokens))


def ref(path: str, *formats: str) -> ResourceRef:
    return ResourceRef(path=path, formats=list(formats))


def parse_frames(body: str) -> List[Any]:
    """Decode an SSE response body into JSON payloads ("[DONE]" kept as a string)."""
    frames: List[Any] = []
    for block in body.split("\n\n"):
        block = block.strip()
        if not block.startswith("data: "):
            continue
        data = block[len("data: "):]
        frames.append(data if data == "[DONE]" else json.loads(data))
    return frames
