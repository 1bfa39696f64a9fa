from __future__ import annotations

import pytest

from ziggle_chat.orchestration.documents import DocumentRelevanceFilter
from ziggle_chat.orchestration.executor import ToolExecutor
from ziggle_chat.orchestration.orchestrator import ChatOrchestrator
from ziggle_chat.orchestration.selector import ToolSelector
from ziggle_chat.orchestration.streamer import ResponseStreamer
from ziggle_chat.orchestration.tool_cache import ToolRegistryCache

from .fakes import FakeLLM, FakeResources, FakeStore


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def resources() -> FakeResources:
    return FakeResources()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def build_orchestrator():
    """Wire the real pipeline components around the given fakes."""

    def _build(resources, llm, store, *, timeout_seconds: float = 1.0, persist_partial_on_error: bool = False):
        return ChatOrchestrator(
            message_store=store,
            tool_cache=ToolRegistryCache(resources.list_tools),
            selector=ToolSelector(llm, sleep=_no_sleep),
            executor=ToolExecutor(
                resources,
                DocumentRelevanceFilter(resources, llm),
                timeout_seconds=timeout_seconds,
            ),
            llm=llm,
            streamer=ResponseStreamer(store, store, persist_partial_on_error=persist_partial_on_error),
        )

    return _build
