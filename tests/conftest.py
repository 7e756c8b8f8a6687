"""Shared fixtures: registries over local backends, a scripted reasoning backend, a fake MCP server."""
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from toolchat.config import Settings
from toolchat.context import AppContext
from toolchat.tools.backends import LocalBackend, MCPBackend
from toolchat.tools.builtin import builtin_backend
from toolchat.tools.registry import ToolParam, ToolRegistry, ToolRegistryEntry


def registry_for(*backends: LocalBackend) -> ToolRegistry:
    """Synchronous equivalent of ToolRegistry.build for local backends."""
    return ToolRegistry([
        ToolRegistryEntry(descriptor=d, backend=b) for b in backends for d in b.descriptors
    ])


def local_backend(name: str, *tool_names: str) -> LocalBackend:
    """A LocalBackend whose tools each echo their arguments."""
    backend = LocalBackend(name)
    for tool_name in tool_names:
        async def echo(_tool=tool_name, **kwargs):
            return f"{_tool}:{json.dumps(kwargs, sort_keys=True)}"
        backend.register_tool(
            tool_name,
            description=f"{tool_name} test tool",
            params=[ToolParam("value", description="any value")],
        )(echo)
    return backend


def selection(**doc) -> str:
    """A realistic selection reply: JSON wrapped in chatter."""
    return f"Here is my decision:\n{json.dumps(doc)}\nHope this helps."


@pytest.fixture
def registry():
    return registry_for(builtin_backend)


@pytest.fixture
def empty_registry():
    return registry_for()


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.complete = AsyncMock()
    return llm


@pytest.fixture
def make_context():
    def _make(registry, llm, **overrides):
        return AppContext(settings=Settings(**overrides), registry=registry, llm=llm)
    return _make


PODS_TOOL = {
    "name": "PodFinder",
    "description": "Tool to find the list of pods in a given Kubernetes Namespace.",
    "inputSchema": {
        "type": "object",
        "properties": {
            "namespace": {"type": "string", "description": "Name of the Namespace"},
            "label": {"type": "string"},
        },
        "required": ["namespace"],
    },
}


class FakeMCPServer:
    """Minimal Streamable-HTTP MCP server for httpx.MockTransport."""

    def __init__(self, sse: bool = False, call_result=None, error=None):
        self.sse = sse
        self.call_result = call_result or {"content": [{"type": "text", "text": "pod-a\npod-b"}], "isError": False}
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((body, dict(request.headers)))
        method = body.get("method")

        if "id" not in body:
            return httpx.Response(202)

        if method == "initialize":
            result = {"protocolVersion": "2025-03-26", "capabilities": {"tools": {}},
                      "serverInfo": {"name": "minikube-mcp-server", "version": "1.0.0"}}
            return self._reply(body["id"], result, headers={"Mcp-Session-Id": "sess-42"})
        if method == "tools/list":
            return self._reply(body["id"], {"tools": [PODS_TOOL]})
        if method == "tools/call":
            if self.error:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.error})
            return self._reply(body["id"], self.call_result)
        return httpx.Response(404)

    def _reply(self, request_id, result, headers=None):
        message = {"jsonrpc": "2.0", "id": request_id, "result": result}
        headers = dict(headers or {})
        if self.sse:
            headers["content-type"] = "text/event-stream"
            return httpx.Response(200, text=f"event: message\ndata: {json.dumps(message)}\n\n", headers=headers)
        return httpx.Response(200, json=message, headers=headers)


def mcp_backend(server) -> MCPBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return MCPBackend("ocp", "http://mcp.test/mcp", client=client)


