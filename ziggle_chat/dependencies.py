from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException

from .config import AppSettings, load_settings
from .orchestration.documents import DocumentRelevanceFilter
from .orchestration.executor import ToolExecutor
from .orchestration.orchestrator import ChatOrchestrator
from .orchestration.selector import ToolSelector
from .orchestration.streamer import ResponseStreamer
from .orchestration.tool_cache import ToolRegistryCache
from .persistence import ChatStore
from .services.llm import OpenRouterClient
from .services.mcp_client import McpClient
from .services.resources import ResourceProxy

SESSION_HEADER = "X-Widget-Session"

settings = load_settings()
chat_store = ChatStore(settings.db_path)
llm_client = OpenRouterClient(
    api_key=settings.open_router_api_key,
    base_url=settings.open_router_base_url,
    model=settings.open_router_model,
    title=settings.open_router_title,
    referer=settings.domain_name,
    timeout=settings.llm_request_timeout,
)
mcp_client = McpClient(settings.mcp_base_url)
resource_proxy = ResourceProxy(settings.mcp_resource_api_url, timeout=settings.mcp_resource_timeout)
tool_cache = ToolRegistryCache(mcp_client.list_tools, ttl_seconds=settings.tools_cache_ttl)
orchestrator = ChatOrchestrator(
    message_store=chat_store,
    tool_cache=tool_cache,
    selector=ToolSelector(llm_client, backoff_seconds=settings.tool_selection_backoff),
    executor=ToolExecutor(
        mcp_client,
        DocumentRelevanceFilter(mcp_client, llm_client),
        timeout_seconds=settings.tool_execution_timeout,
        resource_url_prefix=settings.resource_url_prefix,
    ),
    llm=llm_client,
    streamer=ResponseStreamer(
        chat_store,
        chat_store,
        persist_partial_on_error=settings.persist_partial_on_error,
    ),
    history_limit=settings.history_context_limit,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await chat_store.init()
    await mcp_client.connect()
    try:
        yield
    finally:
        await mcp_client.close()
        await llm_client.close()


def get_settings() -> AppSettings:
    return settings


def get_chat_store() -> ChatStore:
    return chat_store


def get_orchestrator() -> ChatOrchestrator:
    return orchestrator


def get_resource_proxy() -> ResourceProxy:
    return resource_proxy


def get_tool_cache() -> ToolRegistryCache:
    return tool_cache


def get_mcp_client() -> McpClient:
    return mcp_client


async def get_session_id(x_widget_session: Optional[str] = Header(default=None)) -> str:
    """Widget session id resolved by the upstream session guard."""
    session_id = (x_widget_session or "").strip()
    if not session_id:
        raise HTTPException(status_code=401, detail=f"Missing {SESSION_HEADER} header")
    return session_id
