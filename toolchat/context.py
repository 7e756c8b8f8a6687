"""Application context — everything a request needs, built once at startup."""
import logging
from dataclasses import dataclass
from typing import List, Tuple

from .config import Settings
from .llm import ReasoningBackend
from .tools.backends import MCPBackend, ToolBackend
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppContext:
    settings: Settings
    registry: ToolRegistry
    llm: ReasoningBackend
    backends: Tuple[ToolBackend, ...] = ()

    async def aclose(self):
        for backend in self.backends:
            try:
                await backend.aclose()
            except Exception as e:
                logger.warning(f"Failed to close backend '{backend.name}': {e}")
        await self.llm.aclose()


def configured_backends(cfg: Settings) -> List[ToolBackend]:
    backends: List[ToolBackend] = []
    if cfg.builtin_tools:
        from .tools.builtin import builtin_backend
        backends.append(builtin_backend)
    for name, url in cfg.mcp_servers.items():
        logger.info(f"MCP backend '{name}' → {url}")
        backends.append(MCPBackend(name, url, timeout=cfg.mcp_timeout_s))
    return backends


async def build_context(cfg: Settings) -> AppContext:
    """Build the registry and clients. ToolNameCollision propagates to the caller."""
    backends = configured_backends(cfg)
    try:
        registry = await ToolRegistry.build(backends)
    except Exception:
        for backend in backends:
            await backend.aclose()
        raise
    return AppContext(
        settings=cfg,
        registry=registry,
        llm=ReasoningBackend(cfg),
        backends=tuple(backends),
    )
