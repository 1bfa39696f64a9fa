from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping


def history_from_context(messages: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    """Turn most-recent-first stored messages into chronological chat history."""
    history: List[Dict[str, str]] = []
    for entry in reversed(list(messages)):
        role = (entry.get("role") or "user").strip().lower()
        if role not in ("user", "assistant"):
            continue
        history.append({"role": role, "content": entry.get("content") or ""})
    return history


def build_prompt_messages(system_prompt: str, history: List[Dict[str, str]], question: str) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": system_prompt},
        *history,
        {"role": "user", "content": question},
    ]
