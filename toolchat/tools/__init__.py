"""Tool system — registry, backends, selector, executor."""
from .registry import ToolRegistry, ToolRegistryEntry, ToolDescriptor, ToolParam, ToolCallResult
from .backends import ToolBackend, LocalBackend, MCPBackend
from .selector import select_tool, extract_json, NoMatch, Complete, Partial, ToolSelectionDecision
from .executor import invoke, InvocationResult
