from ziggle_chat.orchestration.models import ResourceInfo
from ziggle_chat.orchestration.streamer import ResponseStreamer

from ..fakes import FakeStore, parse_frames, sse_body, split_bytes

RESOURCE = ResourceInfo(path="학생지원 (PDF)", formats=["pdf"], url="/r/%ED%95%99")


async def byte_stream(body: bytes, size: int = 5, error: Exception = None):
    for chunk in split_bytes(body, size):
        yield chunk
    if error is not None:
        raise error


async def run(streamer: ResponseStreamer, stream, resources=()):
    return parse_frames("".join([frame async for frame in streamer.relay("s1", stream, list(resources))]))


async def test_relays_deltas_then_persists_and_finishes():
    store = FakeStore()
    streamer = ResponseStreamer(store, store)

    frames = await run(streamer, byte_stream(sse_body(["장학금은 ", "3월"], total_tokens=30)), [RESOURCE])

    assert frames == [
        {"content": "장학금은 "},
        {"content": "3월"},
        {"type": "resources", "resources": [RESOURCE.to_dict()]},
        "[DONE]",
    ]
    [saved] = store.messages
    assert saved["role"] == "assistant"
    assert saved["content"] == "장학금은 3월"
    assert saved["metadata"]["model"] == "test/model"
    assert saved["metadata"]["usage"]["total_tokens"] == 30
    assert saved["metadata"]["resources"] == [RESOURCE.to_dict()]
    assert store.usage == [("s1", 30)]


async def test_no_resources_frame_without_citations():
    store = FakeStore()

    frames = await run(ResponseStreamer(store, store), byte_stream(sse_body(["ok"])))

    assert frames == [{"content": "ok"}, "[DONE]"]
    assert "resources" not in store.messages[0]["metadata"]


async def test_missing_usage_is_not_recorded():
    store = FakeStore()

    await run(ResponseStreamer(store, store), byte_stream(sse_body(["ok"], total_tokens=None)))

    assert store.usage == []


async def test_mid_stream_error_emits_error_frame_without_persisting():
    store = FakeStore()
    body = sse_body(["부분 "], total_tokens=None).replace(b"data: [DONE]\n\n", b"")

    frames = await run(ResponseStreamer(store, store), byte_stream(body, error=ConnectionError("upstream reset")))

    assert frames == [{"content": "부분 "}, {"error": "upstream reset"}]
    assert store.messages == []
    assert store.usage == []


async def test_partial_answer_kept_when_enabled():
    store = FakeStore()
    body = sse_body(["부분 "], total_tokens=None).replace(b"data: [DONE]\n\n", b"")
    streamer = ResponseStreamer(store, store, persist_partial_on_error=True)

    frames = await run(streamer, byte_stream(body, error=ConnectionError("upstream reset")), [RESOURCE])

    assert frames[-1] == {"error": "upstream reset"}
    [saved] = store.messages
    assert saved["content"] == "부분 "
    assert saved["metadata"]["partial"] is True


async def test_save_failure_ends_stream_with_error():
    store = FakeStore()
    store.fail_on_assistant = True

    frames = await run(ResponseStreamer(store, store), byte_stream(sse_body(["ok"])), [RESOURCE])

    assert frames == [{"content": "ok"}, {"error": "Failed to save message"}]
    assert store.usage == []


async def test_usage_failure_is_not_fatal():
    store = FakeStore()
    store.fail_usage = True

    frames = await run(ResponseStreamer(store, store), byte_stream(sse_body(["ok"])))

    assert frames == [{"content": "ok"}, "[DONE]"]
    assert len(store.messages) == 1
