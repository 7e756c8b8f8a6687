"""Tool backends — in-process handlers and remote MCP servers behind one interface."""
import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from ..errors import ToolBackendError
from .registry import ToolCallResult, ToolDescriptor, ToolParam

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[Union[str, ToolCallResult]]]


class ToolBackend(ABC):
    """A provider of tools: discovery plus invocation."""

    name: str = ""

    @abstractmethod
    async def list_tools(self) -> List[ToolDescriptor]:
        ...

    @abstractmethod
    async def call_tool(self, tool_name: str, args: Dict[str, Any]) -> ToolCallResult:
        """Invoke a tool. Tool-level failures come back with is_error=True;
        transport/protocol failures raise ToolBackendError."""
        ...

    async def aclose(self) -> None:
        pass


# ──────────────────────────────────────────────────────────
# In-process backend
# ──────────────────────────────────────────────────────────

class LocalBackend(ToolBackend):
    """Backend whose tools are async Python functions registered by decorator."""

    def __init__(self, name: str = "builtin"):
        self.name = name
        self._tools: Dict[str, ToolDescriptor] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register_tool(self, name: str, description: str = "", params: Optional[List[ToolParam]] = None):
        """Decorator to register a tool function."""
        def decorator(func):
            self._tools[name] = ToolDescriptor(
                name=name,
                description=description or func.__doc__ or "",
                params=tuple(params or []),
            )
            self._handlers[name] = func
            logger.info(f"[{self.name}] Registered local tool: {name}")
            return func
        return decorator

    @property
    def descriptors(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    async def list_tools(self) -> List[ToolDescriptor]:
        return self.descriptors

    async def call_tool(self, tool_name: str, args: Dict[str, Any]) -> ToolCallResult:
        handler = self._handlers.get(tool_name)
        if handler is None:
            return ToolCallResult(text=f"Unknown tool: {tool_name}", is_error=True)

        arg_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
        logger.info(f"[{self.name}] Executing tool: {tool_name}({arg_str})")
        t0 = time.monotonic()
        try:
            result = await handler(**args)
        except TypeError as e:
            result = ToolCallResult(text=f"Invalid arguments for {tool_name}: {e}", is_error=True)
        except Exception as e:
            logger.error(f"Tool {tool_name} failed: {e}", exc_info=True)
            result = ToolCallResult(text=f"Tool {tool_name} failed: {e}", is_error=True)

        if isinstance(result, str):
            result = ToolCallResult(text=result)
        logger.info(f"[{self.name}] Tool {tool_name}: {time.monotonic() - t0:.2f}s -> error={result.is_error}")
        return result


# ──────────────────────────────────────────────────────────
# Remote MCP backend (Streamable HTTP transport)
# ──────────────────────────────────────────────────────────

MCP_PROTOCOL_VERSION = "2025-03-26"
SESSION_HEADER = "Mcp-Session-Id"


class MCPBackend(ToolBackend):
    """JSON-RPC client for a remote MCP server.

    The session is initialised lazily on first use. Replies may arrive as plain
    JSON or as a single-response SSE stream.
    """

    def __init__(self, name: str, url: str, timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.name = name
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._session_id: Optional[str] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._next_id = 0

    async def list_tools(self) -> List[ToolDescriptor]:
        await self._ensure_initialized()
        tools: List[ToolDescriptor] = []
        cursor = None
        while True:
            params = {"cursor": cursor} if cursor else {}
            result = await self._request("tools/list", params)
            for raw in result.get("tools", []):
                tools.append(_descriptor_from_mcp(raw))
            cursor = result.get("nextCursor")
            if not cursor:
                break
        logger.info(f"[{self.name}] MCP server advertises {len(tools)} tools")
        return tools

    async def call_tool(self, tool_name: str, args: Dict[str, Any]) -> ToolCallResult:
        await self._ensure_initialized()
        result = await self._request("tools/call", {"name": tool_name, "arguments": args})
        content = result.get("content") or []
        if not isinstance(content, list):
            raise ToolBackendError(f"MCP server '{self.name}' sent malformed content for {tool_name}")
        # Non-text and non-object items are ignored
        parts = [
            str(c.get("text", "")) for c in content
            if isinstance(c, dict) and c.get("type") == "text"
        ]
        return ToolCallResult(text="\n".join(parts), is_error=bool(result.get("isError", False)))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _ensure_initialized(self):
        async with self._init_lock:
            if self._initialized:
                return
            await self._request("initialize", {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "toolchat", "version": "1.0.0"},
            })
            await self._notify("notifications/initialized")
            self._initialized = True
            logger.info(f"[{self.name}] MCP session initialised (session={self._session_id or '-'})")

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    async def _post(self, payload: dict) -> httpx.Response:
        try:
            resp = await self._client.post(self.url, json=payload, headers=self._headers())
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ToolBackendError(
                f"MCP server '{self.name}' returned HTTP {e.response.status_code} for {payload.get('method')}"
            ) from e
        except httpx.HTTPError as e:
            raise ToolBackendError(f"MCP server '{self.name}' unreachable: {e}") from e

        session_id = resp.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id
        return resp

    async def _notify(self, method: str):
        await self._post({"jsonrpc": "2.0", "method": method})

    async def _request(self, method: str, params: dict) -> dict:
        self._next_id += 1
        request_id = self._next_id
        resp = await self._post({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})

        message = _read_response(resp, request_id)
        if message is None:
            raise ToolBackendError(f"MCP server '{self.name}' sent no response to {method}")
        if "error" in message:
            err = message["error"] or {}
            raise ToolBackendError(
                f"MCP server '{self.name}' error for {method}: {err.get('message', err)}"
            )
        result = message.get("result")
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise ToolBackendError(
                f"MCP server '{self.name}' sent a non-object result for {method}: {type(result).__name__}"
            )
        return result


def _read_response(resp: httpx.Response, request_id: int) -> Optional[dict]:
    """Pull the JSON-RPC response for request_id from a JSON or SSE body."""
    content_type = resp.headers.get("content-type", "")
    try:
        if content_type.startswith("text/event-stream"):
            for line in resp.text.splitlines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data:
                    continue
                message = json.loads(data)
                if isinstance(message, dict) and message.get("id") == request_id:
                    return message
            return None
        message = resp.json()
    except (json.JSONDecodeError, RecursionError) as e:
        raise ToolBackendError(f"Invalid JSON from MCP server: {e}") from e

    if isinstance(message, list):
        message = next((m for m in message if isinstance(m, dict) and m.get("id") == request_id), None)
    return message if isinstance(message, dict) else None


def _descriptor_from_mcp(raw: dict) -> ToolDescriptor:
    schema = raw.get("inputSchema") or {}
    required = set(schema.get("required") or [])
    params = []
    for pname, prop in (schema.get("properties") or {}).items():
        prop = prop or {}
        params.append(ToolParam(
            name=pname,
            type=prop.get("type", "string"),
            description=prop.get("description", ""),
            required=pname in required,
        ))
    return ToolDescriptor(name=raw["name"], description=raw.get("description", ""), params=tuple(params))
