"""Tests for livepage.server.app — HTTP routes and SSE relay."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from livepage.errors import ProviderError  # noqa: E402
from livepage.providers.base import StreamRequestor  # noqa: E402
from livepage.schemas.config import (  # noqa: E402
    AppSettings,
    GenerationSettings,
    ProviderConfig,
    ServerSettings,
)
from livepage.schemas.generation import GenerationRequest  # noqa: E402
from livepage.schemas.streaming import GrowthHint, Snapshot, StreamState  # noqa: E402
from livepage.server.app import client_ip, create_app, format_sse  # noqa: E402
from livepage.server.rate_limit import RateLimitStore  # noqa: E402
from livepage.server.sessions import GenerationRegistry  # noqa: E402
from livepage.stream.cancellation import CancellationToken  # noqa: E402


def _sse(content: str) -> bytes:
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]})}\n\n".encode()


PAGE = [_sse("<!DOCTYPE html><html><body>"), _sse("<h1>Hi</h1>"), _sse("</body></html>")]


def _providers() -> dict[str, ProviderConfig]:
    return {
        "test": ProviderConfig(
            key="test", name="Test", base_url="https://llm.example.com/v1",
            model="m", api_key_env="LP_SERVER_KEY", max_tokens=1000,
        ),
    }


class ScriptedRequestor(StreamRequestor):
    def __init__(self, config: ProviderConfig, chunks: list[bytes], error: Exception | None = None):
        super().__init__(config)
        self.chunks = chunks
        self.error = error

    async def stream(
        self, request: GenerationRequest, token: CancellationToken | None = None,
    ) -> AsyncIterator[bytes]:
        if self.error is not None:
            raise self.error
        for chunk in self.chunks:
            yield chunk


def _app(chunks=PAGE, error=None, *, limit=4, optimizer=None, generations=None):
    settings = AppSettings(
        default_provider="test",
        generation=GenerationSettings(throttle_interval=0.0),
        server=ServerSettings(max_requests_per_ip=limit),
    )
    return create_app(
        settings,
        providers=_providers(),
        requestor_factory=lambda cfg: ScriptedRequestor(cfg, chunks, error),
        optimizer_factory=(lambda cfg: optimizer) if optimizer else None,
        rate_limiter=RateLimitStore(limit, 3600),
        generations=generations,
    )


def _events(text: str) -> list[tuple[str, dict]]:
    events = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


@pytest.fixture(autouse=True)
def _api_key(monkeypatch):
    monkeypatch.setenv("LP_SERVER_KEY", "sk-test")


# ── Helpers ───────────────────────────────────────────────────


class TestHelpers:
    def test_client_ip_forwarded(self):
        assert client_ip({"x-forwarded-for": "9.9.9.9, 10.0.0.1"}, "127.0.0.1") == "9.9.9.9"

    def test_client_ip_real_ip(self):
        assert client_ip({"x-real-ip": "8.8.8.8"}, "127.0.0.1") == "8.8.8.8"

    def test_client_ip_fallback(self):
        assert client_ip({}, "127.0.0.1") == "127.0.0.1"

    def test_format_snapshot(self):
        text = format_sse(Snapshot(html="<html></html>", transcript_length=13))
        assert text.startswith("event: snapshot\ndata: ")
        assert text.endswith("\n\n")

    def test_format_growth(self):
        assert format_sse(GrowthHint(candidate_length=300)).startswith("event: growth\n")


# ── Routes ────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        response = TestClient(_app()).get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["timestamp"].endswith("Z")


class TestProviders:
    def test_lists_catalog(self):
        body = TestClient(_app()).get("/api/providers").json()
        assert body == [{
            "key": "test", "name": "Test", "model": "m", "max_tokens": 1000,
            "default": True, "configured": True,
        }]


class TestAskAI:
    def test_streams_snapshots_and_result(self):
        response = TestClient(_app()).post("/api/ask-ai", json={"prompt": "A page"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = _events(response.text)
        names = [name for name, _ in events]
        assert names[-1] == "completed"
        assert "snapshot" in names

        final_name, final_data = events[-2]
        assert final_name == "snapshot" and final_data["final"]
        result = events[-1][1]
        assert result["ok"] is True
        assert result["html"] == "<!DOCTYPE html><html><body><h1>Hi</h1></body></html>"

    def test_sets_session_cookie(self):
        response = TestClient(_app()).post("/api/ask-ai", json={"prompt": "A page"})
        assert "livepage_session" in response.cookies

    def test_provider_failure_before_content_is_json_error(self):
        app = _app(error=ProviderError("Invalid API key", status_code=401))
        response = TestClient(app).post("/api/ask-ai", json={"prompt": "A page"})
        assert response.status_code == 401
        assert response.json() == {"ok": False, "message": "Invalid API key"}

    def test_failure_without_status_is_502(self):
        app = _app(error=ProviderError("Connection to Test failed: reset"))
        response = TestClient(app).post("/api/ask-ai", json={"prompt": "A page"})
        assert response.status_code == 502

    def test_context_too_long(self):
        response = TestClient(_app()).post(
            "/api/ask-ai", json={"prompt": "p", "html": "x" * 2000},
        )
        assert response.status_code == 400
        assert "Context is too long" in response.json()["message"]

    def test_unknown_provider(self):
        response = TestClient(_app()).post(
            "/api/ask-ai", json={"prompt": "p", "provider": "nope"},
        )
        assert response.status_code == 400

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("LP_SERVER_KEY")
        response = TestClient(_app()).post("/api/ask-ai", json={"prompt": "p"})
        assert response.status_code == 500

    def test_empty_prompt_rejected(self):
        response = TestClient(_app()).post("/api/ask-ai", json={"prompt": ""})
        assert response.status_code == 422

    def test_anonymous_rate_limit(self):
        client = TestClient(_app(limit=2))
        for _ in range(2):
            assert client.post("/api/ask-ai", json={"prompt": "p"}).status_code == 200
        response = client.post("/api/ask-ai", json={"prompt": "p"})
        assert response.status_code == 429
        assert response.json() == {
            "ok": False,
            "message": "Log In to continue using the service",
            "openLogin": True,
        }
        assert "retry-after" in response.headers

    def test_logged_in_users_not_limited(self):
        client = TestClient(_app(limit=1))
        client.cookies.set("hf_token", "token")
        for _ in range(3):
            assert client.post("/api/ask-ai", json={"prompt": "p"}).status_code == 200

    def test_generation_registry_emptied_after_stream(self):
        generations = GenerationRegistry()
        TestClient(_app(generations=generations)).post("/api/ask-ai", json={"prompt": "p"})
        assert len(generations) == 0


class TestCancel:
    def test_cancel_without_session(self):
        response = TestClient(_app()).post("/api/ask-ai/cancel")
        assert response.json() == {"ok": True, "cancelled": False}

    def test_cancel_active_session(self):
        generations = GenerationRegistry()
        token = generations.begin("abc")
        client = TestClient(_app(generations=generations))
        client.cookies.set("livepage_session", "abc")
        assert client.post("/api/ask-ai/cancel").json()["cancelled"] is True
        assert token.cancelled


class TestOptimizePrompt:
    def test_success(self):
        optimizer = MagicMock()
        optimizer.optimize = AsyncMock(return_value="A detailed brief")
        response = TestClient(_app(optimizer=optimizer)).post(
            "/api/optimize-prompt", json={"prompt": "bakery", "language": "en"},
        )
        assert response.json() == {"ok": True, "optimizedPrompt": "A detailed brief"}
        optimizer.optimize.assert_awaited_once_with("bakery", language="en")

    def test_provider_error_status(self):
        optimizer = MagicMock()
        optimizer.optimize = AsyncMock(side_effect=ProviderError("bad key", status_code=401))
        response = TestClient(_app(optimizer=optimizer)).post(
            "/api/optimize-prompt", json={"prompt": "bakery"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "bad key"

    def test_timeout(self):
        optimizer = MagicMock()
        optimizer.optimize = AsyncMock(side_effect=TimeoutError("timed out"))
        response = TestClient(_app(optimizer=optimizer)).post(
            "/api/optimize-prompt", json={"prompt": "bakery"},
        )
        assert response.status_code == 504


def test_result_event_names_match_states():
    assert {s.value for s in StreamState if s.is_terminal} == {"completed", "cancelled", "failed"}
