"""Exception taxonomy for the chat pipeline and its startup."""
from typing import Sequence


class ToolchatError(Exception):
    """Base class for every error raised by toolchat."""


# ── Startup / configuration ───────────────────────────────────

class ConfigurationError(ToolchatError):
    """Invalid process configuration. Fatal at startup, never per-request."""


class ToolNameCollision(ConfigurationError):
    def __init__(self, tool_name: str, first_backend: str, second_backend: str):
        self.tool_name = tool_name
        self.first_backend = first_backend
        self.second_backend = second_backend
        super().__init__(
            f"Tool '{tool_name}' from backend '{second_backend}' "
            f"already registered by backend '{first_backend}'"
        )


# ── Collaborator failures ─────────────────────────────────────

class LLMUnavailable(ToolchatError):
    """Reasoning backend unreachable, timed out, or returned no usable reply."""


class ToolBackendError(ToolchatError):
    """A tool backend could not be reached or answered with a protocol error."""


# ── Per-request stage errors ──────────────────────────────────

class ValidationError(ToolchatError):
    """Inbound message is malformed, has the wrong role, or is empty."""


class SelectionError(ToolchatError):
    """Tool selection failed."""


class BackendUnavailable(SelectionError):
    pass


class NotParseable(SelectionError):
    """No JSON object could be extracted from the selection reply."""

    def __init__(self, message: str, raw_text: str):
        self.raw_text = raw_text
        super().__init__(f"{message}.\nOutput from llm:\n{raw_text}")


class Malformed(SelectionError):
    """A JSON object was found but matches none of the decision shapes."""

    def __init__(self, message: str, raw_text: str):
        self.raw_text = raw_text
        super().__init__(f"{message}.\nOutput from llm:\n{raw_text}")


class MissingArguments(ToolchatError):
    def __init__(self, tool_name: str, missing_args: Sequence[str]):
        self.tool_name = tool_name
        self.missing_args = list(missing_args)
        super().__init__(f"Some arguments are missing: {', '.join(self.missing_args)}")


class InvocationError(ToolchatError):
    """The selected tool could not be invoked."""


class UnknownTool(InvocationError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"unknown tool: {tool_name}")


class FormattingError(ToolchatError):
    """The reasoning backend failed while formatting tool output."""
