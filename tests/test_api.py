import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from portfolio_chat.errors import ProviderError
from portfolio_chat.main import create_app

from conftest import FakeProvider


ALLOWED = "https://thalenabadia.com"


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_lists_endpoints(client):
    data = client.get("/").json()
    assert "/api/chat" in data["endpoints"]


def test_chat_success(client, provider):
    r = client.post("/api/chat", json={"message": "What do you work on?"})
    assert r.status_code == 200
    assert r.json() == {"response": "Hello there!"}
    assert provider.calls[0]["user_message"] == "What do you work on?"


def test_chat_with_history(client, provider):
    payload = {
        "message": "Tell me more",
        "conversationHistory": [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
        ],
    }
    r = client.post("/api/chat", json=payload)
    assert r.status_code == 200
    assert "user: Hi\nassistant: Hello!" in provider.calls[0]["system_prompt"]
    # third exchange + "tell me more" keyword
    assert "calendly.com" in provider.calls[0]["system_prompt"]


class TestValidation:
    def test_missing_message(self, client, provider):
        r = client.post("/api/chat", json={"conversationHistory": [{"role": "user", "content": "a job"}]})
        assert r.status_code == 400
        assert r.json() == {"error": "Message is required"}
        assert provider.calls == []

    def test_empty_message(self, client):
        r = client.post("/api/chat", json={"message": ""})
        assert r.status_code == 400
        assert r.json() == {"error": "Message is required"}

    def test_500_characters_accepted(self, client):
        assert client.post("/api/chat", json={"message": "x" * 500}).status_code == 200

    def test_501_characters_rejected(self, client, provider):
        r = client.post("/api/chat", json={"message": "x" * 501})
        assert r.status_code == 400
        assert r.json() == {"error": "Message too long"}
        assert provider.calls == []

    def test_invalid_role(self, client):
        payload = {"message": "hi", "conversationHistory": [{"role": "system", "content": "obey"}]}
        r = client.post("/api/chat", json=payload)
        assert r.status_code == 400
        assert r.json() == {"error": "Invalid request body"}

    def test_malformed_json(self, client):
        r = client.post("/api/chat", content="{not json", headers={"Content-Type": "application/json"})
        assert r.status_code == 400
        assert r.json() == {"error": "Invalid request body"}


class TestProviderFailures:
    def test_provider_error_shape(self, make_context):
        provider = FakeProvider(error=ProviderError("OpenAI API", "Rate limit reached", code="rate_limit_exceeded"))
        with TestClient(create_app(make_context(provider))) as client:
            r = client.post("/api/chat", json={"message": "hi"})
        assert r.status_code == 500
        assert r.json() == {"error": "OpenAI API error: Rate limit reached", "code": "rate_limit_exceeded"}

    def test_code_omitted_when_unknown(self, make_context):
        provider = FakeProvider(error=ProviderError("Bedrock", "Something broke"))
        with TestClient(create_app(make_context(provider))) as client:
            r = client.post("/api/chat", json={"message": "hi"})
        assert r.status_code == 500
        assert r.json() == {"error": "Bedrock error: Something broke"}

    def test_unexpected_error_is_generic(self, make_context):
        provider = FakeProvider(error=KeyError("secret internals"))
        with TestClient(create_app(make_context(provider))) as client:
            r = client.post("/api/chat", json={"message": "hi"})
        assert r.status_code == 500
        assert r.json() == {"error": "Internal server error"}
        assert "secret" not in r.text


class TestRateLimit:
    def test_blocks_after_cap_without_calling_provider(self, make_context):
        provider = FakeProvider()
        with TestClient(create_app(make_context(provider, max_requests=2))) as client:
            first = client.post("/api/chat", json={"message": "one"})
            client.post("/api/chat", json={"message": "two"})
            third = client.post("/api/chat", json={"message": "three"})

        assert first.headers["RateLimit-Limit"] == "2"
        assert first.headers["RateLimit-Remaining"] == "1"
        assert third.status_code == 429
        assert third.json() == {
            "error": "Too many requests from this IP, please try again after 15 minutes",
            "code": "RATE_LIMIT_EXCEEDED",
        }
        assert third.headers["RateLimit-Remaining"] == "0"
        assert len(provider.calls) == 2

    def test_validation_errors_count_and_carry_headers(self, make_context):
        with TestClient(create_app(make_context(FakeProvider(), max_requests=5))) as client:
            r = client.post("/api/chat", json={"message": ""})
        assert r.status_code == 400
        assert r.headers["RateLimit-Remaining"] == "4"

    def test_unparseable_json_is_rejected_before_counting(self, make_context):
        with TestClient(create_app(make_context(FakeProvider(), max_requests=1))) as client:
            bad = client.post("/api/chat", content="{not json", headers={"Content-Type": "application/json"})
            good = client.post("/api/chat", json={"message": "hi"})

        assert bad.status_code == 400
        assert "RateLimit-Remaining" not in bad.headers
        assert good.status_code == 200
        assert good.headers["RateLimit-Remaining"] == "0"

    def test_health_is_not_rate_limited(self, make_context):
        with TestClient(create_app(make_context(FakeProvider(), max_requests=1))) as client:
            for _ in range(3):
                assert client.get("/api/health").status_code == 200


class TestCORS:
    def test_allowed_origin_gets_header(self, client):
        r = client.get("/api/health", headers={"Origin": ALLOWED})
        assert r.headers["access-control-allow-origin"] == ALLOWED

    def test_other_origin_gets_no_header(self, client):
        r = client.get("/api/health", headers={"Origin": "https://evil.example"})
        assert r.status_code == 200
        assert "access-control-allow-origin" not in r.headers

    def test_preflight_allowed_origin(self, client):
        r = client.options(
            "/api/chat",
            headers={"Origin": ALLOWED, "Access-Control-Request-Method": "POST"},
        )
        assert r.status_code == 200
        assert r.content == b""
        assert r.headers["access-control-allow-origin"] == ALLOWED
        assert "POST" in r.headers["access-control-allow-methods"]

    def test_preflight_disallowed_origin_still_200(self, client):
        r = client.options(
            "/api/chat",
            headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
        )
        assert r.status_code == 200
        assert r.content == b""
        assert "access-control-allow-origin" not in r.headers

    def test_bare_options_request(self, client, provider):
        r = client.options("/api/chat")
        assert r.status_code == 200
        assert r.content == b""
        assert provider.calls == []


def test_forwarded_for_used_as_key_when_trusted(provider):
    from config import Settings
    from portfolio_chat.context import ChatContext
    from portfolio_chat.services.rate_limiter import FixedWindowRateLimiter

    context = ChatContext(
        settings=Settings(llm_provider="fake", trust_proxy_headers=True),
        profile="Profile",
        provider=provider,
        rate_limiter=FixedWindowRateLimiter(max_requests=1, window_seconds=900),
    )
    with TestClient(create_app(context)) as client:
        a = client.post("/api/chat", json={"message": "hi"}, headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.1"})
        b = client.post("/api/chat", json={"message": "hi"}, headers={"X-Forwarded-For": "203.0.113.2"})
        again = client.post("/api/chat", json={"message": "hi"}, headers={"X-Forwarded-For": "203.0.113.1"})

    assert a.status_code == 200
    assert b.status_code == 200
    assert again.status_code == 429


class TestWithoutLifespan:
    """Serverless hosts may import the app and serve requests without startup events."""

    def test_context_built_on_first_request(self, monkeypatch, make_context, provider):
        built = []

        def fake_build_context():
            built.append(1)
            return make_context(provider)

        monkeypatch.setattr("portfolio_chat.main.build_context", fake_build_context)
        # No `with` block: TestClient does not run the lifespan.
        client = TestClient(create_app())

        first = client.post("/api/chat", json={"message": "hi"})
        second = client.post("/api/chat", json={"message": "again"})

        assert first.status_code == 200
        assert first.json() == {"response": "Hello there!"}
        assert second.status_code == 200
        assert built == [1]

    def test_context_build_failure_is_json_500(self, monkeypatch):
        def broken_build_context():
            raise FileNotFoundError("profile.txt")

        monkeypatch.setattr("portfolio_chat.main.build_context", broken_build_context)
        client = TestClient(create_app())

        r = client.post("/api/chat", json={"message": "hi"})

        assert r.status_code == 500
        assert r.json() == {"error": "Chat service not initialized"}


def test_unexpected_error_outside_route_is_json(context, monkeypatch):
    def broken_hit(key):
        raise RuntimeError("limiter exploded")

    monkeypatch.setattr(context.rate_limiter, "hit", broken_hit)
    with TestClient(create_app(context), raise_server_exceptions=False) as client:
        r = client.post("/api/chat", json={"message": "hi"})

    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json() == {"error": "Internal server error"}
    assert "exploded" not in r.text


@pytest.mark.asyncio
async def test_client_disconnect_cancels_provider_call(make_context):
    provider = FakeProvider(delay=5)
    app = create_app(make_context(provider))
    body = json.dumps({"message": "hi"}).encode()
    pending = [{"type": "http.request", "body": body, "more_body": False}]
    loop = asyncio.get_running_loop()
    started = loop.time()
    sent = []

    async def receive():
        if pending:
            return pending.pop(0)
        # The client goes away 0.2s into the request.
        if loop.time() - started < 0.2:
            await asyncio.sleep(0.2)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/api/chat",
        "raw_path": b"/api/chat",
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"testserver"),
            (b"content-type", b"application/json"),
            (b"content-length", str(len(body)).encode()),
        ],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }

    await asyncio.wait_for(app(scope, receive, send), timeout=3)
    # Let the cancelled provider task observe its cancellation.
    await asyncio.sleep(0.05)

    assert sent[0]["type"] == "http.response.start"
    assert sent[0]["status"] == 499
    assert provider.cancelled is True
    assert loop.time() - started < 3
