"""OpenAI-compatible (OpenRouter) chat-completions client used by the pipeline."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..exceptions import LLMServiceError
from ..orchestration.models import Tool, ToolCall, ToolExecutionResult
from ..orchestration.prompts import get_tool_selection_system_prompt

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 20
DEFAULT_MAX_TOKENS = 2000


def _parameter_summary(properties: Dict[str, Any]) -> str:
    return ", ".join(f"{key} ({(prop or {}).get('type') or 'string'})" for key, prop in properties.items())


def describe_tool(tool: Tool) -> str:
    """Tool description enriched with a parameter summary.

    Short or missing descriptions are replaced by a generated one so the model
    still has something to match the question against.
    """
    properties = (tool.input_schema or {}).get("properties") or {}
    description = (tool.description or "").strip()
    params = _parameter_summary(properties)

    if len(description) < MIN_DESCRIPTION_LENGTH:
        lowered = tool.name.lower()
        return (
            f"Tool: {tool.name}.\n"
            f"Use this tool when the user's question relates to {tool.name} or when you need to access "
            f"information related to {lowered}.\n"
            f"{f'Parameters: {params}' if params else 'No parameters required.'}\n"
            f"This tool is essential for answering questions that require {lowered} functionality."
        )
    if params:
        description = f"{description} Parameters: {params}."
    return description


def to_function_tools(tools: Sequence[Tool]) -> List[Dict[str, Any]]:
    function_tools: List[Dict[str, Any]] = []
    for tool in tools:
        schema = tool.input_schema or {}
        function_tools.append(
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": describe_tool(tool),
                    "parameters": {
                        "type": schema.get("type") or "object",
                        "properties": schema.get("properties") or {},
                        "required": schema.get("required") or [],
                    },
                },
            }
        )
    return function_tools


def build_tools_description(function_tools: Sequence[Dict[str, Any]]) -> str:
    blocks: List[str] = []
    for idx, entry in enumerate(function_tools, start=1):
        function = entry["function"]
        properties = function["parameters"].get("properties") or {}
        if properties:
            param_lines = []
            for key, value in properties.items():
                value = value or {}
                desc = f" - {value['description']}" if value.get("description") else ""
                param_lines.append(f"  - {key} ({value.get('type') or 'string'}){desc}")
            params = "\n".join(param_lines)
        else:
            params = "  (no parameters)"
        blocks.append(
            f"{idx}. {function['name']}\n"
            f"   Description: {function['description']}\n"
            f"   Parameters:\n{params}"
        )
    return "\n\n".join(blocks)


class OpenRouterClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        title: str = "",
        referer: str = "",
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.title = title
        self.referer = referer
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise LLMServiceError("OPEN_ROUTER_API_KEY is not configured")
            headers = {"HTTP-Referer": self.referer, "X-Title": self.title}
            # One HTTP call per attempt; retries belong to the selection policy.
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                default_headers={k: v for k, v in headers.items() if v},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def select_tool(
        self,
        question: str,
        tools: Sequence[Tool],
        *,
        temperature: float = 0.3,
        emphasize_tool_usage: bool = False,
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        function_tools = to_function_tools(tools)
        system_prompt = get_tool_selection_system_prompt(
            build_tools_description(function_tools),
            emphasize_tool_usage=emphasize_tool_usage,
        )
        messages = [
            {"role": "system", "content": system_prompt},
            *(history or []),
            {"role": "user", "content": question},
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=function_tools,
                tool_choice="auto",
                temperature=temperature,
                max_tokens=DEFAULT_MAX_TOKENS,
            )
        except OpenAIError as exc:
            logger.error("Open Router API error: %s", exc)
            raise LLMServiceError(f"Failed to call Open Router API: {exc}") from exc

        data = response.model_dump()
        choices = data.get("choices") or []
        if not choices or not (choices[0].get("message") or {}).get("tool_calls"):
            logger.warning(
                "No tools selected. Finish reason: %s, Available tools: %s",
                choices[0].get("finish_reason") if choices else None,
                ", ".join(tool.name for tool in tools),
            )
        return data

    def parse_tool_calls(self, response: Dict[str, Any]) -> List[ToolCall]:
        tool_calls: List[ToolCall] = []
        for choice in response.get("choices") or []:
            for call in (choice.get("message") or {}).get("tool_calls") or []:
                function = call.get("function") or {}
                raw_args = function.get("arguments")
                try:
                    arguments = json.loads(raw_args)
                except (TypeError, ValueError):
                    logger.warning("Failed to parse tool call arguments: %s", raw_args)
                    continue
                if not isinstance(arguments, dict):
                    logger.warning("Tool call arguments are not an object: %s", raw_args)
                    continue
                tool_calls.append(ToolCall(id=call.get("id") or "", name=function.get("name") or "", arguments=arguments))
        return tool_calls

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: float = 0.7,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """Single non-streaming completion; returns the first choice's text."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as exc:
            logger.error("Open Router API error: %s", exc)
            raise LLMServiceError(f"Failed to call Open Router API: {exc}") from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def generate_final_response_stream(
        self,
        messages: List[Dict[str, Any]],
        tool_results: Sequence[ToolExecutionResult],
        *,
        temperature: float = 0.7,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[bytes]:
        """Yield the raw SSE body of a streaming completion.

        Tool results are appended as ``tool`` messages after ``messages``.
        """
        payload = [*messages, *(result.to_message() for result in tool_results)]
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                model=self.model,
                messages=payload,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            ) as response:
                async for chunk in response.iter_bytes():
                    yield chunk
        except OpenAIError as exc:
            logger.error("Open Router API error: %s", exc)
            raise LLMServiceError(f"Failed to call Open Router API: {exc}") from exc
