"""Shared test fixtures for Portfolio Chat tests."""

import asyncio
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from config import Settings
from portfolio_chat.context import ChatContext
from portfolio_chat.main import create_app
from portfolio_chat.services.providers import CompletionProvider
from portfolio_chat.services.rate_limiter import FixedWindowRateLimiter


PROFILE = "Thalen is a software engineer who builds AI tools for social impact."


class FakeProvider(CompletionProvider):
    """Records every call; returns a canned reply or raises a canned error."""

    name = "fake"
    label = "Fake API"

    def __init__(self, reply: str = "  Hello there!  \n", error: Optional[Exception] = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: List[dict] = []
        self.cancelled = False

    async def generate(self, system_prompt: str, user_message: str, max_tokens: int) -> str:
        self.calls.append(
            {"system_prompt": system_prompt, "user_message": user_message, "max_tokens": max_tokens}
        )
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings():
    return Settings(llm_provider="fake", max_output_tokens=100)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_context(settings):
    def _make(provider: CompletionProvider, max_requests: int = 50) -> ChatContext:
        return ChatContext(
            settings=settings,
            profile=PROFILE,
            provider=provider,
            rate_limiter=FixedWindowRateLimiter(max_requests=max_requests, window_seconds=900),
        )
    return _make


@pytest.fixture
def context(make_context, provider):
    return make_context(provider)


@pytest.fixture
def client(context):
    with TestClient(create_app(context)) as c:
        yield c
