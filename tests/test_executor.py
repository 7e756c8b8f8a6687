"""Tests for tools/executor.py — lookup, argument checks, dispatch."""
from unittest.mock import AsyncMock, patch

import pytest

from conftest import local_backend, registry_for
from toolchat.errors import InvocationError, MissingArguments, ToolBackendError, UnknownTool
from toolchat.tools.builtin import builtin_backend
from toolchat.tools.executor import InvocationResult, invoke
from toolchat.tools.registry import ToolCallResult
from toolchat.tools.selector import Complete, NoMatch, Partial


class TestInvoke:
    @pytest.mark.asyncio
    async def test_calculator_add(self, registry):
        result = await invoke(Complete("Calculator", {"operation": "add", "a": 2, "b": 3}), registry)
        assert result == InvocationResult(text="5.0000", is_error=False)

    @pytest.mark.asyncio
    async def test_unknown_tool_contacts_no_backend(self, registry):
        with patch.object(builtin_backend, "call_tool", AsyncMock()) as call_tool:
            with pytest.raises(UnknownTool) as exc:
                await invoke(Complete("UnknownTool", {"x": 1}), registry)
        call_tool.assert_not_awaited()
        assert isinstance(exc.value, InvocationError)
        assert str(exc.value) == "unknown tool: UnknownTool"

    @pytest.mark.asyncio
    async def test_missing_required_args(self, registry):
        with patch.object(builtin_backend, "call_tool", AsyncMock()) as call_tool:
            with pytest.raises(MissingArguments) as exc:
                await invoke(Complete("Calculator", {"operation": "add", "a": 1}), registry)
        call_tool.assert_not_awaited()
        assert exc.value.missing_args == ["b"]

    @pytest.mark.asyncio
    async def test_backend_reported_error(self, registry):
        result = await invoke(Complete("Calculator", {"operation": "divide", "a": 1, "b": 0}), registry)
        assert result.is_error is True
        assert result.text == "Division by zero"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        backend = local_backend("remote", "ListPods")
        backend.call_tool = AsyncMock(side_effect=ToolBackendError("MCP server 'remote' unreachable"))
        with pytest.raises(InvocationError, match="unreachable"):
            await invoke(Complete("ListPods", {"value": "default"}), registry_for(backend))

    @pytest.mark.asyncio
    async def test_routes_to_owning_backend(self):
        a = local_backend("a", "One")
        b = local_backend("b", "Two")
        b.call_tool = AsyncMock(return_value=ToolCallResult(text="two"))
        result = await invoke(Complete("Two", {"value": 1}), registry_for(a, b))
        assert result.text == "two"
        b.call_tool.assert_awaited_once_with("Two", {"value": 1})

    @pytest.mark.asyncio
    async def test_rejects_non_complete(self, registry):
        for decision in (NoMatch(), Partial("Calculator", ("b",))):
            with pytest.raises(TypeError):
                await invoke(decision, registry)
