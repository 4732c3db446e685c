"""
ERROR TYPES
===========

Every failure the chat handler can report to a client. Each error carries the
HTTP status it maps to and an optional machine-readable code; main.py renders
all of them with one exception handler as {"error": ..., "code": ...}.

  ValidationError    - 400, bad client input (missing/too long message, bad body).
  RateLimitExceeded  - 429, too many requests from one client in the window.
  ProviderError      - 500, the LLM provider call failed or timed out.
  InternalError      - 500, anything unexpected (message is generic on purpose).
"""

from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base class: an error that has a well-defined HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for the client. "code" is left out when there is none."""
        body: Dict[str, Any] = {"error": self.message}
        if self.code is not None:
            body["code"] = self.code
        return body


class ValidationError(ChatError):
    status_code = 400


class RateLimitExceeded(ChatError):
    status_code = 429

    def __init__(self, message: str, code: Optional[str] = "RATE_LIMIT_EXCEEDED"):
        super().__init__(message, code)


class ProviderError(ChatError):
    """
    Upstream model call failed. The client sees "<label> error: <detail>",
    e.g. "OpenAI API error: Incorrect API key provided".
    """

    status_code = 500

    def __init__(self, label: str, detail: str, code: Optional[str] = None):
        super().__init__(f"{label} error: {detail or 'Unknown error'}", code)
        self.label = label
        self.detail = detail


class InternalError(ChatError):
    status_code = 500

    def __init__(self, message: str = "Internal server error", code: Optional[str] = None):
        super().__init__(message, code)
