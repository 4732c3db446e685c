"""
CHAT SERVICE MODULE
===================

Handles one POST /api/chat turn, independent of HTTP:

  1. Validate the message (required, at most MAX_MESSAGE_LENGTH characters).
  2. Ask the meeting classifier whether to offer a call.
  3. Build the system prompt (profile + history + style + meeting guidance).
  4. Log the outbound payload and call the configured provider.
  5. Return the trimmed reply.

Each call is stateless: the history comes from the client every time. The
only inputs shared across requests are in ChatContext (read-only profile,
provider, settings).
"""

import logging
from typing import Optional, Sequence

from config import MAX_MESSAGE_LENGTH
from portfolio_chat.context import ChatContext
from portfolio_chat.errors import ProviderError, ValidationError
from portfolio_chat.models import ChatRequest, ConversationTurn
from portfolio_chat.services.meeting_classifier import should_suggest_meeting
from portfolio_chat.services.prompt_builder import build_messages, build_system_prompt
from portfolio_chat.utils.diagnostics import log_error_detail, log_outbound_payload

logger = logging.getLogger("PortfolioChat")


def validate_message(message: Optional[str]) -> str:
    """Return the message if acceptable, else raise ValidationError."""
    if not message:
        raise ValidationError("Message is required")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError("Message too long")
    return message


class ChatService:
    def __init__(self, context: ChatContext):
        self.context = context

    def build_prompt(self, history: Sequence[ConversationTurn], message: str) -> str:
        settings = self.context.settings
        suggest_meeting = should_suggest_meeting(history, message)
        logger.debug("Meeting suggestion: %s (history=%s turns)", suggest_meeting, len(history))
        return build_system_prompt(
            self.context.profile,
            history,
            suggest_meeting,
            persona_name=settings.persona_name,
            calendly_url=settings.calendly_url,
        )

    async def reply(self, request: ChatRequest) -> str:
        """Produce the assistant's reply for one request. Raises ChatError subclasses."""
        message = validate_message(request.message)
        history = request.conversationHistory

        system_prompt = self.build_prompt(history, message)
        provider = self.context.provider
        log_outbound_payload(provider.name, build_messages(system_prompt, message))

        try:
            text = await provider.generate(
                system_prompt,
                message,
                max_tokens=self.context.settings.max_output_tokens,
            )
        except ProviderError as e:
            log_error_detail("Provider call failed", e.__cause__ or e)
            raise

        return text.strip()
