"""
SERVICES PACKAGE
=================

Business logic lives here. The API layer (portfolio_chat.main) calls these
services; they don't handle HTTP.

MODULES:
    chat_service       - One chat turn: validate, classify, build prompt, call provider.
    meeting_classifier - Keyword/exchange-count heuristic for offering a call.
    prompt_builder     - System prompt assembly from profile, history and style blocks.
    providers          - CompletionProvider interface + OpenAI / Bedrock / Groq.
    rate_limiter       - Fixed-window per-client request counter.
"""
