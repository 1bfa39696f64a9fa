"""
MCP client for the retrieval backend.

Speaks the streamable HTTP transport of the official ``mcp`` SDK and exposes
the two calls the pipeline needs: ``list_tools`` and ``call_tool``.
"""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError
from mcp.types import Implementation, LoggingMessageNotificationParams

from ..exceptions import RetrievalBackendError
from ..orchestration.models import McpCallResult, Tool
from ..orchestration.tool_results import collect_call_result

logger = logging.getLogger(__name__)

CLIENT_NAME = "Ziggle Chatbot MCP Client"
CLIENT_VERSION = "1.0.0"


class McpClient:
    def __init__(self, base_url: Optional[str]) -> None:
        self.base_url = base_url
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        if not self.base_url:
            logger.warning("MCP_BASE_URL is not set, MCP client will not be initialized")
            return
        if self._session is not None:
            return

        stack = AsyncExitStack()
        try:
            read, write, get_session_id = await stack.enter_async_context(streamablehttp_client(self.base_url))
            session = await stack.enter_async_context(
                ClientSession(
                    read,
                    write,
                    logging_callback=self._on_server_log,
                    client_info=Implementation(name=CLIENT_NAME, version=CLIENT_VERSION),
                )
            )
            await session.initialize()
        except Exception as exc:
            logger.error("Failed to initialize MCP client: %s", exc)
            await stack.aclose()
            return

        self._stack = stack
        self._session = session
        logger.info("Connected to MCP server: %s (sessionId=%s)", self.base_url, get_session_id() or "none")

    async def close(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as exc:
            logger.warning("MCP client close failed: %s", exc)

    async def _on_server_log(self, params: LoggingMessageNotificationParams) -> None:
        data = params.data if isinstance(params.data, str) else json.dumps(params.data, ensure_ascii=False, default=str)
        logger.info("[MCP:%s] %s", params.level, data)

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise RetrievalBackendError("MCP client is not connected")
        return self._session

    async def list_tools(self) -> List[Tool]:
        session = self._require_session()
        try:
            result = await session.list_tools()
        except McpError as exc:
            raise RetrievalBackendError(f"Failed to list MCP tools: {exc}") from exc
        return [
            Tool(name=tool.name, description=tool.description or "", input_schema=tool.inputSchema)
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> McpCallResult:
        session = self._require_session()
        try:
            result = await session.call_tool(name, arguments)
        except McpError as exc:
            raise RetrievalBackendError(f"MCP tool {name} failed: {exc}", tool=name) from exc

        if result.isError:
            logger.warning("MCP tool %s reported an error result", name)
        return collect_call_result(result.model_dump(mode="json"))
