from ziggle_chat.orchestration.models import Tool, ToolCall
from ziggle_chat.orchestration.orchestrator import AnswerOutcome, PipelineStage
from ziggle_chat.orchestration.prompts import (
    FINAL_RESPONSE_SYSTEM_PROMPT,
    NO_RELEVANT_MATERIALS_SYSTEM_PROMPT,
    NO_TOOLS_AVAILABLE_SYSTEM_PROMPT,
)

from ..fakes import FakeLLM, listing_result, parse_frames

QUESTION = "장학금 신청 기간이 언제인가요?"


def register_tools(resources):
    resources.tools = [
        Tool("list_resources", "List every document the assistant can cite"),
        Tool("search_notices", "Search campus notices by keyword"),
    ]


async def drain(orchestrator, session_id="s1", question=QUESTION):
    frames = [frame async for frame in orchestrator.handle_streaming_response(session_id, question)]
    return parse_frames("".join(frames))


async def test_grounded_answer_streams_with_citations(resources, store, build_orchestrator):
    register_tools(resources)
    resources.results["list_resources"] = listing_result([{"path": "캠프/장학금 안내.md", "formats": ["md", "pdf"]}])
    resources.results["search_notices"] = "장학금 공지: 3월 4일부터"
    resources.documents["캠프/장학금 안내"] = "# 장학금 안내\n신청은 3월 4일부터 15일까지"
    calls = [ToolCall("call_1", "list_resources", {}), ToolCall("call_2", "search_notices", {"query": "장학금"})]
    llm = FakeLLM(selections=[calls], deltas=["3월 4일부터 ", "신청할 수 있습니다."])
    orchestrator = build_orchestrator(resources, llm, store)

    frames = await drain(orchestrator)

    assert frames[:2] == [{"content": "3월 4일부터 "}, {"content": "신청할 수 있습니다."}]
    assert frames[2]["type"] == "resources"
    [resource] = frames[2]["resources"]
    assert resource["path"] == "장학금 안내.md (PDF)"
    assert resource["formats"] == ["pdf"]
    assert frames[3] == "[DONE]"

    [stream_call] = llm.stream_calls
    messages = stream_call["messages"]
    assert messages[0] == {"role": "system", "content": FINAL_RESPONSE_SYSTEM_PROMPT}
    assert messages[-2] == {"role": "user", "content": QUESTION}
    assistant = messages[-1]
    assert assistant["role"] == "assistant"
    assert [c["id"] for c in assistant["tool_calls"]] == ["call_1", "call_2"]
    assert [r.tool_call_id for r in stream_call["tool_results"]] == ["call_1", "call_2"]

    assert [m["role"] for m in store.messages] == ["user", "assistant"]
    assert store.messages[1]["content"] == "3월 4일부터 신청할 수 있습니다."
    assert store.usage == [("s1", 42)]


async def test_markdown_only_documents_ground_the_answer_without_citations(resources, store, build_orchestrator):
    register_tools(resources)
    resources.results["list_resources"] = listing_result(
        [
            {"path": "캠프/학생지원.md", "formats": ["md"]},
            {"path": "캠프/장학복지.md", "formats": ["md"]},
        ]
    )
    resources.documents["캠프/학생지원"] = "# 학생지원\n상담은 학생회관 2층"
    resources.documents["캠프/장학복지"] = "# 장학복지\n장학금은 3월에 신청"
    llm = FakeLLM(selections=[[ToolCall("c1", "list_resources", {})]], completion="1, 2", deltas=["답변"])
    orchestrator = build_orchestrator(resources, llm, store)

    frames = await drain(orchestrator, question="학생지원 장학복지 안내")

    assert frames == [{"content": "답변"}, "[DONE]"]
    [rerank] = llm.complete_calls
    assert rerank["temperature"] == 0.1
    [tool_result] = llm.stream_calls[0]["tool_results"]
    assert tool_result.had_reference_content is True
    assert tool_result.resources == []
    assert "상담은 학생회관 2층" in tool_result.content
    assert "장학금은 3월에 신청" in tool_result.content
    assert "resources" not in (store.messages[-1]["metadata"] or {})


async def test_no_tool_selected_twice_refuses(resources, store, build_orchestrator):
    register_tools(resources)
    llm = FakeLLM(selections=[[], []], deltas=["관련 자료가 없습니다."])
    orchestrator = build_orchestrator(resources, llm, store)

    prepared = await orchestrator.process_user_question("s1", QUESTION)

    assert prepared.outcome is AnswerOutcome.NO_TOOL_SELECTED
    assert prepared.resources == []
    assert PipelineStage.NO_TOOLS in prepared.stages
    assert [c["temperature"] for c in llm.select_calls] == [0.3, 0.1]
    assert [c["emphasize_tool_usage"] for c in llm.select_calls] == [False, True]
    assert resources.calls == []

    frames = parse_frames("".join([f async for f in orchestrator.streamer.relay("s1", prepared.stream, [])]))
    assert frames == [{"content": "관련 자료가 없습니다."}, "[DONE]"]
    [stream_call] = llm.stream_calls
    assert stream_call["temperature"] == 0
    assert stream_call["tool_results"] == []
    assert stream_call["messages"][0]["content"] == NO_RELEVANT_MATERIALS_SYSTEM_PROMPT


async def test_second_selection_attempt_can_succeed(resources, store, build_orchestrator):
    register_tools(resources)
    resources.results["search_notices"] = "결과"
    llm = FakeLLM(selections=[[], [ToolCall("c1", "search_notices", {})]])
    orchestrator = build_orchestrator(resources, llm, store)

    prepared = await orchestrator.process_user_question("s1", QUESTION)

    assert len(llm.select_calls) == 2
    # plain text results are not reference material
    assert prepared.outcome is AnswerOutcome.UNGROUNDED


async def test_empty_registry_uses_no_tools_prompt(resources, store, build_orchestrator):
    llm = FakeLLM()
    orchestrator = build_orchestrator(resources, llm, store)

    prepared = await orchestrator.process_user_question("s1", QUESTION)

    assert prepared.outcome is AnswerOutcome.NO_TOOLS_AVAILABLE
    assert llm.select_calls == []
    [message async for message in prepared.stream]
    assert llm.stream_calls[0]["messages"][0]["content"] == NO_TOOLS_AVAILABLE_SYSTEM_PROMPT


async def test_ungrounded_results_refuse_without_citations(resources, store, build_orchestrator):
    register_tools(resources)
    resources.results["list_resources"] = listing_result([{"path": "포스터/행사", "formats": ["png"]}])
    llm = FakeLLM(selections=[[ToolCall("c1", "list_resources", {})]])
    orchestrator = build_orchestrator(resources, llm, store)

    frames = await drain(orchestrator)

    assert frames[-1] == "[DONE]"
    assert not any(isinstance(f, dict) and f.get("type") == "resources" for f in frames)
    assert llm.stream_calls[0]["messages"][0]["content"] == NO_RELEVANT_MATERIALS_SYSTEM_PROMPT
    assert llm.stream_calls[0]["temperature"] == 0


async def test_one_slow_tool_does_not_block_grounded_answer(resources, store, build_orchestrator):
    register_tools(resources)
    resources.results["search_notices"] = "late"
    resources.delays["search_notices"] = 5.0
    resources.results["list_resources"] = listing_result([{"path": "캠프/장학금", "formats": ["md", "png"]}])
    resources.documents["캠프/장학금"] = "장학금 본문"
    calls = [ToolCall("c1", "search_notices", {}), ToolCall("c2", "list_resources", {})]
    llm = FakeLLM(selections=[calls])
    orchestrator = build_orchestrator(resources, llm, store, timeout_seconds=0.05)

    prepared = await orchestrator.process_user_question("s1", QUESTION)

    assert prepared.outcome is AnswerOutcome.ANSWERED
    failed, grounded = prepared.tool_results
    assert failed.content == "Tool execution failed: Tool execution timeout: search_notices"
    assert grounded.had_reference_content is True
    assert [r.path for r in prepared.resources] == ["장학금 (PNG)"]


async def test_history_is_chronological_and_excludes_current_question(resources, store, build_orchestrator):
    register_tools(resources)
    await store.create_message("s1", "user", "첫 질문")
    await store.create_message("s1", "assistant", "첫 답변")
    await store.create_message("other", "user", "다른 세션")
    llm = FakeLLM(selections=[[], []])
    orchestrator = build_orchestrator(resources, llm, store)

    await orchestrator.process_user_question("s1", QUESTION)

    assert llm.select_calls[0]["history"] == [
        {"role": "user", "content": "첫 질문"},
        {"role": "assistant", "content": "첫 답변"},
    ]
    assert store.messages[-1]["content"] == QUESTION


async def test_pipeline_failure_becomes_error_frame(resources, store, build_orchestrator):
    async def broken_list_tools():
        raise RuntimeError("backend offline")

    resources.list_tools = broken_list_tools
    orchestrator = build_orchestrator(resources, FakeLLM(), store)

    frames = await drain(orchestrator)

    assert frames == [{"error": "Failed to process user question: backend offline"}]
