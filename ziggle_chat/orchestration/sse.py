"""Server-sent-events helpers: an incremental line reducer and frame encoding."""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

DONE_MARKER = "[DONE]"
DONE_FRAME = f"data: {DONE_MARKER}\n\n"
DATA_PREFIX = "data: "


class SSELineBuffer:
    """Reassembles ``data:`` payloads from arbitrarily split byte chunks.

    A chunk may end in the middle of a line or in the middle of a multi-byte
    UTF-8 sequence; both are carried over to the next ``feed`` call.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._pending += text
        lines = self._pending.split("\n")
        self._pending = lines.pop()
        return self._payloads(lines)

    def flush(self) -> List[str]:
        """Drain whatever is left once the upstream stream has ended."""
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._payloads(tail.split("\n"))

    @staticmethod
    def _payloads(lines: List[str]) -> List[str]:
        payloads: List[str] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):].strip()
            if data:
                payloads.append(data)
        return payloads


@dataclass
class StreamEvent:
    content: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


def parse_stream_event(payload: str) -> Optional[StreamEvent]:
    """Decode one chat-completion chunk; ``None`` for [DONE] or non-JSON payloads."""
    if payload == DONE_MARKER:
        return None
    try:
        parsed = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None

    content = None
    choices = parsed.get("choices") or []
    if choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta") or {}
        content = delta.get("content") or None
    return StreamEvent(
        content=content,
        model=parsed.get("model") or None,
        usage=parsed.get("usage") or None,
    )


def encode_frame(payload: Dict[str, Any]) -> str:
    return f"{DATA_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n\n"
