"""
DATA MODELS MODULE
==================

Pydantic models for the chat API. FastAPI uses these to parse incoming JSON
and to serialize responses. Nothing here is persisted: the client sends the
whole conversation history with every request.

MODELS:
  ConversationTurn - One earlier message (role + content). Immutable.
  ChatRequest      - Body of POST /api/chat (message + conversationHistory).
  ChatResponse     - Successful reply: {"response": "..."}.
  ErrorResponse    - Failure shape shared by every error: {"error": "...", "code": "..."}.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional

# ==============================================================================
# MESSAGE AND REQUEST/RESPONSE MODELS
# ==============================================================================

class ConversationTurn(BaseModel):
    """
    A single earlier message in the conversation, supplied by the client.
    Order in the list defines chronology.
    """
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str

class ChatRequest(BaseModel):
    """
    Request body for POST /api/chat.

    - message: The visitor's new message. Declared optional so that a missing or
      empty message is reported as "Message is required" (400) by the chat
      service instead of a generic schema error. Length is checked there too.
    - conversationHistory: Earlier turns, oldest first. Defaults to empty.
    """
    message: Optional[str] = None
    conversationHistory: List[ConversationTurn] = Field(default_factory=list)

class ChatResponse(BaseModel):
    """Response body for a successful POST /api/chat: the trimmed model reply."""
    response: str

class ErrorResponse(BaseModel):
    """Response body for every failure. code is omitted when not available."""
    error: str
    code: Optional[str] = None
