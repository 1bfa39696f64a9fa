"""Service-level errors raised across ziggle_chat modules.

Routes catch ``ChatServiceError`` and translate it to an HTTP response using
``http_status``; everything else is treated as an internal error.
"""

from __future__ import annotations


class ChatServiceError(Exception):
    """Base error.

    Attributes:
        code: machine readable error code (e.g. "LLM_ERROR").
        message: human readable message, safe to show to widget clients.
        http_status: status code used when the error reaches the HTTP layer.
        extra: additional context (path, tool name, ...).
    """

    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class LLMServiceError(ChatServiceError):
    """The chat-completions backend failed or is not configured."""

    def __init__(self, message: str, **extra):
        super().__init__("LLM_ERROR", message, http_status=502, **extra)


class RetrievalBackendError(ChatServiceError):
    """The MCP retrieval backend is unreachable or returned an error."""

    def __init__(self, message: str, **extra):
        super().__init__("RETRIEVAL_ERROR", message, http_status=502, **extra)


class ResourceNotFoundError(ChatServiceError):
    def __init__(self, path: str):
        super().__init__("RESOURCE_NOT_FOUND", f"Resource not found: {path}", http_status=404, path=path)


class ResourceTimeoutError(ChatServiceError):
    def __init__(self, path: str):
        super().__init__("RESOURCE_TIMEOUT", f"Resource request timed out: {path}", http_status=504, path=path)


class ResourceFetchError(ChatServiceError):
    def __init__(self, path: str, message: str):
        super().__init__("RESOURCE_FETCH_FAILED", message, http_status=502, path=path)


class QuestionLimitExceededError(ChatServiceError):
    def __init__(self, limit: int):
        super().__init__(
            "QUESTION_LIMIT_EXCEEDED",
            f"이 세션에서는 최대 {limit}개의 질문만 가능합니다.",
            http_status=429,
            limit=limit,
        )
