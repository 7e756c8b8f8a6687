"""Tests for main.py — HTTP surface, request timeout, startup."""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import local_backend, registry_for, selection
from toolchat.config import Settings
from toolchat.errors import ToolNameCollision
from toolchat.main import create_app
from toolchat.pipeline import NO_TOOL_NOTICE


def _client(context, **overrides):
    return TestClient(create_app(Settings(**overrides), context=context))


class TestEndpoints:
    def test_health(self, registry, mock_llm, make_context):
        with _client(make_context(registry, mock_llm)) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "tools": 1}

    def test_tools(self, registry, mock_llm, make_context):
        with _client(make_context(registry, mock_llm)) as client:
            resp = client.get("/tools")
        tools = resp.json()["tools"]
        assert [t["name"] for t in tools] == ["Calculator"]

    def test_chat(self, registry, mock_llm, make_context):
        mock_llm.complete.side_effect = [
            selection(tool_name="Calculator", tool_args={"operation": "add", "a": 2, "b": 3}),
            "2 + 3 = 5",
        ]
        with _client(make_context(registry, mock_llm)) as client:
            resp = client.post("/chat", json={"role": "user", "content": "what is 2+3"})
        assert resp.status_code == 200
        assert resp.json() == {"role": "assistant", "content": "2 + 3 = 5"}

    def test_chat_invalid_json_still_replies(self, registry, mock_llm, make_context):
        with _client(make_context(registry, mock_llm)) as client:
            resp = client.post("/chat", content=b"not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "assistant"
        assert body["content"].startswith("Invalid JSON payload: ")
        mock_llm.complete.assert_not_awaited()

    def test_chat_no_tool(self, empty_registry, mock_llm, make_context):
        mock_llm.complete.side_effect = ["hello there"]
        with _client(make_context(empty_registry, mock_llm)) as client:
            resp = client.post("/chat", json={"role": "user", "content": "hi"})
        assert resp.json()["content"] == NO_TOOL_NOTICE + "hello there"


class TestTimeout:
    def test_slow_pipeline_gets_504(self, registry, mock_llm, make_context):
        cancelled = []

        async def hang(messages, label=""):
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        mock_llm.complete.side_effect = hang
        ctx = make_context(registry, mock_llm)
        with _client(ctx, request_timeout_s=0.05) as client:
            resp = client.post("/chat", json={"role": "user", "content": "what is 2+3"})

        assert resp.status_code == 504
        assert "content" not in resp.json()
        assert cancelled == [True]


class TestStartup:
    def test_collision_aborts_startup(self):
        collision = ToolNameCollision("X", "a", "b")
        with patch("toolchat.main.check_startup_config"), \
                patch("toolchat.main.build_context", AsyncMock(side_effect=collision)):
            app = create_app(Settings(llm_token="sk-test"))
            with pytest.raises(ToolNameCollision):
                with TestClient(app):
                    pass

    def test_context_built_and_closed(self, mock_llm):
        ctx = MagicMock()
        ctx.registry = registry_for(local_backend("a", "One", "Two"))
        ctx.llm = mock_llm
        ctx.aclose = AsyncMock()
        with patch("toolchat.main.check_startup_config"), \
                patch("toolchat.main.build_context", AsyncMock(return_value=ctx)):
            with TestClient(create_app(Settings(llm_token="sk-test"))) as client:
                assert client.get("/health").json() == {"ok": True, "tools": 2}
        ctx.aclose.assert_awaited_once()

