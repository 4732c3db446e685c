"""
PORTFOLIO CHAT APPLICATION PACKAGE
==================================

Backend for a personal-site chat widget: visitors ask questions, a hosted LLM
answers them using the site owner's profile document.

  from portfolio_chat.main import app, create_app
  from portfolio_chat.models import ChatRequest
  from portfolio_chat.services.chat_service import ChatService

FILE STRUCTURE:
  portfolio_chat/
    __init__.py   - This file; marks 'portfolio_chat' as a package.
    main.py       - FastAPI app, CORS, rate-limit dependency, /api/health and /api/chat.
    models.py     - Pydantic models for requests, responses and conversation turns.
    errors.py     - Error types and the HTTP status each maps to.
    context.py    - ChatContext: settings, profile, provider and rate limiter built at startup.
    services/     - Business logic: meeting classifier, prompt builder, providers, rate limiter.
    utils/        - Helpers: retry with backoff, diagnostics logging.
"""
