"""
PORTFOLIO CHAT MAIN API
=======================

This module defines the FastAPI application and its HTTP endpoints. The
service answers questions about one person on their behalf: each request is
sent to a hosted LLM together with the profile document, and the reply comes
back as plain text.

ENDPOINTS:
  GET     /             - API name and list of endpoints.
  GET     /api/health   - {"status": "ok"}.
  POST    /api/chat     - {message, conversationHistory?} -> {response}.
  OPTIONS (any path)    - CORS preflight; always 200 with an empty body.

ERRORS:
  Every failure is returned as {"error": "...", "code": "..."} (code optional):
  400 for bad input, 429 when a client exceeds the rate limit, 500 when the
  provider fails or something unexpected happens.

STARTUP:
  The lifespan function builds a ChatContext (settings, profile document,
  provider, rate limiter) once and stores it on app.state; if the host never
  runs the lifespan, the first request builds it. create_app(context)
  skips that step, which is how tests inject a fake provider.
"""


from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Dict, Optional
import asyncio
import logging
import os
import threading

from portfolio_chat.context import ChatContext, build_context
from portfolio_chat.errors import ChatError, InternalError, RateLimitExceeded, ValidationError
from portfolio_chat.models import ChatRequest, ChatResponse, ErrorResponse
from portfolio_chat.services.chat_service import ChatService
from config import RATE_LIMIT_MESSAGE, Settings


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("PortfolioChat")

# How often the chat endpoint checks whether the client has gone away.
DISCONNECT_POLL_SECONDS = 0.5

# Guards the lazy ChatContext build when the lifespan did not run.
_context_lock = threading.Lock()


# -------------------------------------------------------------------------
# CORS
# -------------------------------------------------------------------------

class AllowListCORSMiddleware(CORSMiddleware):
    """
    Starlette's CORSMiddleware with one change: every OPTIONS request is
    answered here with 200 and an empty body. Allow-listed origins get
    Access-Control-Allow-Origin; other origins get the same 200 without it,
    so the browser blocks the real request.
    """

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            response = self.preflight_response(request_headers=Headers(scope=scope))
            await response(scope, receive, send)
            return
        await super().__call__(scope, receive, send)

    def preflight_response(self, request_headers: Headers) -> Response:
        headers = dict(self.preflight_headers)
        headers.pop("Access-Control-Allow-Origin", None)
        origin = request_headers.get("origin")
        if origin and self.is_allowed_origin(origin=origin):
            headers["Access-Control-Allow-Origin"] = origin
        return Response(status_code=200, headers=headers)


# -------------------------------------------------------------------------
# DEPENDENCIES
# -------------------------------------------------------------------------

def ensure_context(app: FastAPI) -> ChatContext:
    """
    Return the app's ChatContext, building it from the environment on first
    use. Serverless hosts may never run the lifespan, so the first request
    does the startup work instead.
    """
    context = getattr(app.state, "chat_context", None)
    if context is None:
        with _context_lock:
            context = getattr(app.state, "chat_context", None)
            if context is None:
                context = build_context()
                app.state.chat_context = context
    return context


def get_context(request: Request) -> ChatContext:
    """The ChatContext built at startup (or injected by create_app)."""
    try:
        return ensure_context(request.app)
    except Exception as e:
        logger.error(f"Could not initialize chat service: {e}", exc_info=True)
        raise InternalError("Chat service not initialized") from e


def client_key(request: Request, trust_proxy_headers: bool) -> str:
    """Client IP used as the rate-limit key."""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(
    request: Request,
    response: Response,
    context: ChatContext = Depends(get_context),
) -> None:
    """Count this request against the client's window; 429 when over the cap."""
    key = client_key(request, context.settings.trust_proxy_headers)
    status = context.rate_limiter.hit(key)
    headers = {
        "RateLimit-Limit": str(status.limit),
        "RateLimit-Remaining": str(status.remaining),
        "RateLimit-Reset": str(status.reset_after),
    }
    # Error responses are built by the exception handler, which reads these back.
    request.state.rate_limit_headers = headers
    response.headers.update(headers)

    if not status.allowed:
        logger.warning("Rate limit exceeded for %s", key)
        raise RateLimitExceeded(RATE_LIMIT_MESSAGE)


# -------------------------------------------------------------------------
# ERROR RESPONSES
# -------------------------------------------------------------------------

def _error_response(request: Request, error: ChatError) -> JSONResponse:
    headers: Optional[Dict[str, str]] = getattr(request.state, "rate_limit_headers", None)
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    return _error_response(request, exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request body: %s", exc.errors())
    return _error_response(request, ValidationError("Invalid request body"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error_response(request, InternalError())


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


# -------------------------------------------------------------------------
# APP FACTORY
# -------------------------------------------------------------------------

def create_app(context: Optional[ChatContext] = None) -> FastAPI:
    """
    Build the FastAPI app. With no context, the lifespan builds one from the
    environment at startup; with a context (tests), that one is used as is.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        STARTUP: build settings, load the profile, create the provider and rate
        limiter (unless a context was injected). Any failure here is fatal.
        SHUTDOWN: nothing to persist; all state is per-process.
        """
        logger.info("=" * 60)
        logger.info("Portfolio Chat - Starting Up...")
        logger.info("=" * 60)

        try:
            ctx = ensure_context(app)

            logger.info("Service Status:")
            logger.info("    - Profile: %s characters", len(ctx.profile))
            logger.info("    - Provider: %s", ctx.provider.name)
            logger.info(
                "    - Rate limit: %s requests / %ss",
                ctx.rate_limiter.max_requests,
                int(ctx.rate_limiter.window_seconds),
            )
            logger.info("    - Allowed origins: %s", ", ".join(ctx.settings.allowed_origins))
            logger.info("=" * 60)
        except Exception as e:
            logger.error(f"Fatal error during startup: {e}", exc_info=True)
            raise

        yield

        logger.info("Portfolio Chat shutting down.")

    app = FastAPI(
        title="Portfolio Chat API",
        description="Answers visitor questions from a profile document via a hosted LLM",
        lifespan=lifespan,
    )
    app.state.chat_context = context

    # Origins come from the injected context if there is one, otherwise from the environment.
    if context is not None:
        allowed_origins = list(context.settings.allowed_origins)
    else:
        allowed_origins = list(Settings.from_env().allowed_origins)

    app.add_middleware(
        AllowListCORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # =========================================================================
    # API ENDPOINTS
    # =========================================================================

    @app.get("/")
    async def root():
        """Return the API name and a short description of each endpoint (for discovery)."""
        return {
            "message": "Portfolio Chat API",
            "endpoints": {
                "/api/health": "Health check",
                "/api/chat": "Ask a question (POST {message, conversationHistory})",
            },
        }

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        responses={
            400: {"model": ErrorResponse},
            429: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
        dependencies=[Depends(enforce_rate_limit)],
    )
    async def chat(
        payload: ChatRequest,
        request: Request,
        context: ChatContext = Depends(get_context),
    ):
        """
        Chat endpoint - answer one visitor message.

        HOW IT WORKS:
        1. Rate limit is checked (dependency) before anything else runs.
        2. ChatService validates the message, decides on the meeting suggestion,
           builds the prompt and calls the provider.
        3. While the provider call is in flight we watch for client disconnect;
           if the client leaves, the call is cancelled and nothing is sent.

        REQUEST BODY:
        {
            "message": "What projects has Thalen worked on?",
            "conversationHistory": [{"role": "user", "content": "Hi"},
                                    {"role": "assistant", "content": "Hey! ..."}]
        }

        RESPONSE:
        { "response": "Thalen has built ..." }
        """
        service = ChatService(context)
        reply_task = asyncio.ensure_future(service.reply(payload))
        disconnect_task = asyncio.ensure_future(_wait_for_disconnect(request))

        try:
            done, _ = await asyncio.wait(
                {reply_task, disconnect_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            disconnect_task.cancel()
            if not reply_task.done():
                reply_task.cancel()

        if reply_task not in done:
            logger.info("Client disconnected; cancelled in-flight provider call")
            return Response(status_code=499)

        try:
            text = reply_task.result()
        except ChatError:
            raise
        except Exception as e:
            logger.error(f"Error processing chat: {e}", exc_info=True)
            raise InternalError() from e

        return ChatResponse(response=text)

    return app


app = create_app()


# -------------------------------------------------------------------------
# STANDALONE RUN (python -m portfolio_chat.main)
# -------------------------------------------------------------------------
def run():
    """Start the uvicorn server (same as run.py); used if someone does python -m portfolio_chat.main"""
    import uvicorn

    uvicorn.run(
        "portfolio_chat.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        log_level="info"
    )

if __name__ == "__main__":
    run()
