"""Tests for livepage.server.sessions — one live generation per session."""

from __future__ import annotations

import pytest

from livepage.server.sessions import GenerationRegistry


class TestGenerationRegistry:
    @pytest.mark.asyncio
    async def test_begin_tracks_session(self):
        registry = GenerationRegistry()
        token = registry.begin("s1")
        assert registry.is_active("s1")
        assert not token.cancelled
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_new_generation_supersedes_old(self):
        registry = GenerationRegistry()
        old = registry.begin("s1")
        new = registry.begin("s1")
        assert old.cancelled
        assert old.reason == "superseded by a new generation"
        assert not new.cancelled
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_cancel(self):
        registry = GenerationRegistry()
        token = registry.begin("s1")
        assert registry.cancel("s1", "stop button")
        assert token.cancelled
        assert token.reason == "stop button"
        assert not registry.is_active("s1")

    @pytest.mark.asyncio
    async def test_cancel_unknown_session(self):
        assert not GenerationRegistry().cancel("missing")

    @pytest.mark.asyncio
    async def test_end_ignores_superseded_token(self):
        registry = GenerationRegistry()
        old = registry.begin("s1")
        new = registry.begin("s1")
        registry.end("s1", old)
        assert registry.is_active("s1")
        registry.end("s1", new)
        assert not registry.is_active("s1")
