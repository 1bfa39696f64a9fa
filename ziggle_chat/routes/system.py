from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..config import AppSettings
from ..dependencies import get_mcp_client, get_settings, get_tool_cache
from ..orchestration.tool_cache import ToolRegistryCache
from ..services.mcp_client import McpClient

router = APIRouter()


@router.get("/health")
async def health(
    settings: AppSettings = Depends(get_settings),
    mcp: McpClient = Depends(get_mcp_client),
    tool_cache: ToolRegistryCache = Depends(get_tool_cache),
) -> Dict[str, Any]:
    return {
        "status": "ok",
        "mcp": {"configured": bool(settings.mcp_base_url), "connected": mcp.is_connected},
        "llm": {"model": settings.open_router_model, "configured": bool(settings.open_router_api_key)},
        "tools_cache": tool_cache.info(),
    }
