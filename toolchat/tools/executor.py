"""Tool executor — validates a Complete decision and dispatches it to its backend."""
import logging
import time
from dataclasses import dataclass

from ..errors import InvocationError, MissingArguments, ToolBackendError, UnknownTool
from .registry import ToolRegistry
from .selector import Complete

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationResult:
    text: str
    is_error: bool = False


async def invoke(decision: Complete, registry: ToolRegistry) -> InvocationResult:
    """Execute a selected tool by name.

    Unknown tools and missing required arguments are rejected before any
    backend is contacted. A backend-reported failure is returned with
    is_error=True; transport failures raise InvocationError.
    """
    if not isinstance(decision, Complete):
        raise TypeError(f"invoke() needs a Complete decision, got {type(decision).__name__}")

    entry = registry.lookup(decision.tool_name)
    if entry is None:
        logger.warning(f"Unknown tool: {decision.tool_name}")
        raise UnknownTool(decision.tool_name)

    missing = [p for p in entry.descriptor.required_params if p not in decision.args]
    if missing:
        raise MissingArguments(decision.tool_name, missing)

    backend = entry.backend
    logger.info(f"Invoking {decision.tool_name} on backend '{backend.name}'")
    t0 = time.monotonic()
    try:
        result = await backend.call_tool(decision.tool_name, dict(decision.args))
    except ToolBackendError as e:
        logger.error(f"Tool {decision.tool_name} failed on '{backend.name}': {e}")
        raise InvocationError(str(e)) from e

    elapsed = time.monotonic() - t0
    logger.info(f"Tool {decision.tool_name}: {elapsed:.2f}s -> error={result.is_error}")
    return InvocationResult(text=result.text, is_error=result.is_error)
