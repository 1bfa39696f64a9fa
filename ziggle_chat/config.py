from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_OPEN_ROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPEN_ROUTER_MODEL = "anthropic/claude-3.5-sonnet"


@dataclass(frozen=True)
class AppSettings:
    db_path: Path
    frontend_origin: str
    open_router_api_key: str
    open_router_base_url: str
    open_router_model: str
    open_router_title: str
    domain_name: str
    llm_request_timeout: float
    mcp_base_url: Optional[str]
    mcp_resource_api_url: Optional[str]
    mcp_resource_timeout: float
    tools_cache_ttl: float
    tool_execution_timeout: float
    tool_selection_backoff: float
    max_questions_per_session: int
    history_context_limit: int
    resource_url_prefix: str
    persist_partial_on_error: bool
    log_level: str


def _int_env(name: str, default: str) -> int:
    return int(os.environ.get(name, default) or default)


def _float_env(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw or default)
    except (TypeError, ValueError):
        return float(default)


def _str_env(name: str, default: str = "") -> str:
    return (os.environ.get(name, default) or default).strip()


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _optional_url_env(name: str) -> Optional[str]:
    raw = _str_env(name).rstrip("/")
    return raw or None


def load_settings() -> AppSettings:
    db_path = Path(os.environ.get("DB_PATH") or "./data/ziggle_chat.db")

    return AppSettings(
        db_path=db_path,
        frontend_origin=_str_env("FRONTEND_ORIGIN", "http://localhost:5173"),
        open_router_api_key=_str_env("OPEN_ROUTER_API_KEY"),
        open_router_base_url=_str_env("OPEN_ROUTER_BASE_URL", DEFAULT_OPEN_ROUTER_BASE_URL).rstrip("/"),
        open_router_model=_str_env("OPEN_ROUTER_MODEL", DEFAULT_OPEN_ROUTER_MODEL),
        open_router_title=_str_env("OPEN_ROUTER_TITLE", "Ziggle Chatbot"),
        domain_name=_str_env("DOMAIN_NAME", "http://localhost"),
        llm_request_timeout=_float_env("LLM_REQUEST_TIMEOUT", "15"),
        mcp_base_url=_optional_url_env("MCP_BASE_URL"),
        mcp_resource_api_url=_optional_url_env("MCP_RESOURCE_API_URL"),
        mcp_resource_timeout=_float_env("MCP_RESOURCE_TIMEOUT", "5"),
        tools_cache_ttl=_float_env("TOOLS_CACHE_TTL", "300"),
        tool_execution_timeout=_float_env("TOOL_EXECUTION_TIMEOUT", "30"),
        tool_selection_backoff=_float_env("TOOL_SELECTION_BACKOFF", "0.5"),
        max_questions_per_session=_int_env("MAX_QUESTIONS_PER_SESSION", "5"),
        history_context_limit=_int_env("HISTORY_CONTEXT_LIMIT", "10"),
        resource_url_prefix=_str_env("RESOURCE_URL_PREFIX"),
        persist_partial_on_error=_bool_env("PERSIST_PARTIAL_ON_ERROR", False),
        log_level=_str_env("LOG_LEVEL", "INFO").upper(),
    )
