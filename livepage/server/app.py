"""FastAPI host for live page generation.

Runs the generation driver server-side and relays its updates to the
browser as Server-Sent Events. Also exposes the provider catalog, prompt
optimization, and per-session cancellation.

Requires the 'server' optional dependency group:
    pip install livepage[server]
"""

import json
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime
from typing import Any

from livepage.errors import ConfigurationError, ContextTooLongError, ProviderError
from livepage.generation import check_context_budget, start_generation
from livepage.providers.base import StreamRequestor
from livepage.providers.litellm_provider import PromptOptimizer
from livepage.providers.openai_stream import OpenAIStreamRequestor
from livepage.providers.registry import get_provider, load_providers, load_settings
from livepage.schemas.config import AppSettings, ProviderConfig
from livepage.schemas.streaming import (
    GenerationResult,
    GenerationUpdate,
    GrowthHint,
    Snapshot,
    StreamState,
)
from livepage.server.models import AskAIRequest, OptimizePromptRequest
from livepage.server.rate_limit import RateLimitExceeded, RateLimitStore
from livepage.server.sessions import GenerationRegistry

logger = logging.getLogger(__name__)

RequestorFactory = Callable[[ProviderConfig], StreamRequestor]
OptimizerFactory = Callable[[ProviderConfig], PromptOptimizer]


def client_ip(headers: Any, fallback: str | None) -> str:
    """Caller address, honouring reverse-proxy headers."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return headers.get("x-real-ip") or fallback or "0.0.0.0"


def format_sse(update: GenerationUpdate) -> str:
    """Encode one generation update as a Server-Sent Event."""
    if isinstance(update, Snapshot):
        event, data = "snapshot", update.model_dump()
    elif isinstance(update, GrowthHint):
        event, data = "growth", update.model_dump()
    else:
        event = update.status.value
        data = {"ok": update.ok, **update.model_dump(mode="json")}
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def create_app(
    settings: AppSettings | None = None,
    *,
    providers: dict[str, ProviderConfig] | None = None,
    requestor_factory: RequestorFactory | None = None,
    optimizer_factory: OptimizerFactory | None = None,
    rate_limiter: RateLimitStore | None = None,
    generations: GenerationRegistry | None = None,
) -> Any:
    """Create and configure the FastAPI application.

    Every stateful collaborator can be injected; defaults are fresh,
    app-owned instances. FastAPI is imported inside this function so the
    module can be imported without server deps installed.
    """
    try:
        from fastapi import FastAPI, Request
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse, StreamingResponse
    except ImportError as exc:
        raise ImportError(
            "The server requires extra dependencies. "
            "Install with: pip install livepage[server]"
        ) from exc

    settings = settings or load_settings()
    providers = providers if providers is not None else load_providers()
    requestor_factory = requestor_factory or OpenAIStreamRequestor
    optimizer_factory = optimizer_factory or PromptOptimizer
    server_settings = settings.server
    if rate_limiter is None:
        rate_limiter = RateLimitStore(
            server_settings.max_requests_per_ip, server_settings.rate_limit_window,
        )
    if generations is None:
        generations = GenerationRegistry()

    app = FastAPI(title="livepage", description="Live LLM page generation")
    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    app.state.generations = generations

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"ok": False, "message": message, **extra},
        )

    def _session_id(request: Request) -> tuple[str, bool]:
        """Existing session cookie, or a new id and True if one must be set."""
        existing = request.cookies.get(server_settings.session_cookie)
        if existing:
            return existing, False
        return uuid.uuid4().hex, True

    # ── Health / catalog ─────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "active_generations": len(generations),
        }

    @app.get("/api/providers")
    async def list_providers() -> list[dict]:
        """List catalog providers and whether each has a key configured."""
        return [
            {
                "key": key,
                "name": cfg.name,
                "model": cfg.resolved_model(),
                "max_tokens": cfg.max_tokens,
                "default": key == settings.default_provider,
                "configured": bool(cfg.resolved_api_key()),
            }
            for key, cfg in providers.items()
        ]

    # ── Generation ───────────────────────────────────────────────

    @app.post("/api/ask-ai")
    async def ask_ai(body: AskAIRequest, request: Request) -> Any:
        """Stream a generated page as snapshot/growth/terminal SSE events."""
        ip = client_ip(request.headers, request.client.host if request.client else None)
        if not request.cookies.get(server_settings.auth_cookie):
            try:
                rate_limiter.hit(ip)
            except RateLimitExceeded as exc:
                response = _error(
                    429, "Log In to continue using the service", openLogin=True,
                )
                response.headers["Retry-After"] = str(exc.retry_after_seconds)
                return response

        try:
            provider = get_provider(providers, body.provider, settings.default_provider)
            generation_request = body.to_generation_request()
            check_context_budget(generation_request, provider)
        except (ConfigurationError, ContextTooLongError) as exc:
            return _error(400, str(exc))

        if not provider.resolved_api_key():
            return _error(500, f"{provider.name} API key is not configured.")

        session_id, new_session = _session_id(request)
        token = generations.begin(session_id)
        updates = start_generation(
            generation_request,
            token,
            requestor=requestor_factory(provider),
            settings=settings.generation,
        )

        # Pull the first update so failures before any content keep their status
        first = await anext(updates)
        if (
            isinstance(first, GenerationResult)
            and first.status == StreamState.FAILED
            and first.transcript_length == 0
        ):
            generations.end(session_id, token)
            return _error(first.status_code or 502, first.error or "Generation failed")

        async def event_stream() -> AsyncIterator[str]:
            finished = False
            try:
                yield format_sse(first)
                async for update in updates:
                    yield format_sse(update)
                finished = True
            finally:
                if not finished:
                    token.cancel("client disconnected")
                await updates.aclose()
                generations.end(session_id, token)

        response = StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
        if new_session:
            response.set_cookie(
                server_settings.session_cookie, session_id, httponly=True, samesite="lax",
            )
        return response

    @app.post("/api/ask-ai/cancel")
    async def cancel_generation(request: Request) -> dict:
        session_id = request.cookies.get(server_settings.session_cookie)
        cancelled = bool(session_id) and generations.cancel(session_id)
        return {"ok": True, "cancelled": cancelled}

    @app.post("/api/optimize-prompt")
    async def optimize_prompt(body: OptimizePromptRequest) -> Any:
        try:
            provider = get_provider(providers, body.provider, settings.default_provider)
            optimized = await optimizer_factory(provider).optimize(
                body.prompt, language=body.language,
            )
        except ConfigurationError as exc:
            return _error(400, str(exc))
        except ProviderError as exc:
            return _error(exc.status_code or 502, exc.message)
        except TimeoutError as exc:
            return _error(504, str(exc))
        return {"ok": True, "optimizedPrompt": optimized}

    return app
