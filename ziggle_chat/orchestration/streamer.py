from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from .models import ResourceInfo
from .sse import DONE_FRAME, SSELineBuffer, encode_frame, parse_stream_event

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save message"


@dataclass
class _StreamState:
    parts: List[str] = field(default_factory=list)
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None

    @property
    def content(self) -> str:
        return "".join(self.parts)

    def apply(self, payload: str) -> Optional[str]:
        event = parse_stream_event(payload)
        if event is None:
            return None
        if event.model:
            self.model = event.model
        if event.usage:
            self.usage = event.usage
        if event.content:
            self.parts.append(event.content)
        return event.content


class ResponseStreamer:
    """Relays a raw chat-completion SSE stream to the widget client.

    Emits ``{"content": ...}`` frames as deltas arrive, then persists the
    assistant message, records token usage, sends the resources frame and
    finishes with ``[DONE]``.
    """

    def __init__(self, message_store: Any, usage_recorder: Any, *, persist_partial_on_error: bool = False) -> None:
        self.message_store = message_store
        self.usage_recorder = usage_recorder
        self.persist_partial_on_error = persist_partial_on_error

    async def relay(
        self,
        session_id: str,
        stream: AsyncIterator[bytes],
        resources: Sequence[ResourceInfo],
    ) -> AsyncIterator[str]:
        buffer = SSELineBuffer()
        state = _StreamState()
        try:
            async for chunk in stream:
                for payload in buffer.feed(chunk):
                    content = state.apply(payload)
                    if content:
                        yield encode_frame({"content": content})
            for payload in buffer.flush():
                content = state.apply(payload)
                if content:
                    yield encode_frame({"content": content})
        except Exception as exc:
            logger.error("Stream error: %s", exc)
            if self.persist_partial_on_error and state.content:
                await self._persist_partial(session_id, state, resources)
            yield encode_frame({"error": str(exc) or "Stream error"})
            return

        try:
            if state.content:
                await self.message_store.create_message(
                    session_id,
                    "assistant",
                    state.content,
                    metadata=self._metadata(state, resources),
                )
        except Exception:
            logger.exception("Error saving final message")
            yield encode_frame({"error": SAVE_FAILED_MESSAGE})
            return

        total_tokens = (state.usage or {}).get("total_tokens")
        if total_tokens is not None:
            try:
                await self.usage_recorder.record_usage(session_id, int(total_tokens))
            except Exception as exc:
                logger.warning("Failed to record usage: %s", exc)

        if resources:
            yield encode_frame({"type": "resources", "resources": [r.to_dict() for r in resources]})
        yield DONE_FRAME

    @staticmethod
    def _metadata(state: _StreamState, resources: Sequence[ResourceInfo]) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {}
        if state.model:
            metadata["model"] = state.model
        if state.usage:
            metadata["usage"] = state.usage
        if resources:
            metadata["resources"] = [r.to_dict() for r in resources]
        return metadata

    async def _persist_partial(self, session_id: str, state: _StreamState, resources: Sequence[ResourceInfo]) -> None:
        metadata = self._metadata(state, resources)
        metadata["partial"] = True
        try:
            await self.message_store.create_message(session_id, "assistant", state.content, metadata=metadata)
        except Exception:
            logger.exception("Error saving partial message")
