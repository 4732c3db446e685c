"""
PROCESS CONTEXT
===============

Everything a request handler needs that outlives a single request, bundled so
it can be built once at startup and handed to the app (tests pass their own
with a fake provider).

  settings      - Settings read from the environment.
  profile       - Profile document text (read-only after load).
  provider      - CompletionProvider selected by LLM_PROVIDER.
  rate_limiter  - Per-client request counters (the only mutable piece).
"""

from dataclasses import dataclass
from typing import Optional

from config import Settings, load_profile
from portfolio_chat.services.providers import CompletionProvider, build_provider
from portfolio_chat.services.rate_limiter import FixedWindowRateLimiter


@dataclass
class ChatContext:
    settings: Settings
    profile: str
    provider: CompletionProvider
    rate_limiter: FixedWindowRateLimiter


def build_context(settings: Optional[Settings] = None) -> ChatContext:
    """Load the profile, build the provider and limiter. Raises on bad config."""
    settings = settings or Settings.from_env()
    return ChatContext(
        settings=settings,
        profile=load_profile(settings.profile_path),
        provider=build_provider(settings),
        rate_limiter=FixedWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
    )
