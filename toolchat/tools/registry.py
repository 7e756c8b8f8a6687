"""Tool registry — aggregates backend tool descriptors into one dispatch table."""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..errors import ToolNameCollision

if TYPE_CHECKING:
    from .backends import ToolBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolParam:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    params: Tuple[ToolParam, ...] = ()

    @property
    def required_params(self) -> List[str]:
        return [p.name for p in self.params if p.required]

    def input_schema(self) -> Dict[str, Any]:
        properties = {}
        for p in self.params:
            prop = {"type": p.type}
            if p.description:
                prop["description"] = p.description
            properties[p.name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": self.required_params,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


@dataclass(frozen=True)
class ToolCallResult:
    text: str
    is_error: bool = False


@dataclass(frozen=True)
class ToolRegistryEntry:
    descriptor: ToolDescriptor
    backend: "ToolBackend" = field(compare=False)


class ToolRegistry:
    """Immutable name -> (descriptor, backend) table built once at startup.

    Use ToolRegistry.build(); there is no add/remove after construction.
    """

    def __init__(self, entries: Sequence[ToolRegistryEntry] = ()):
        table: Dict[str, ToolRegistryEntry] = {}
        for entry in entries:
            name = entry.descriptor.name
            if name in table:
                raise ToolNameCollision(name, table[name].backend.name, entry.backend.name)
            table[name] = entry
        self._entries = table
        self._schema = _serialize_schema(sorted(table.values(), key=lambda e: e.descriptor.name))

    @classmethod
    async def build(cls, backends: Sequence["ToolBackend"]) -> "ToolRegistry":
        """Enumerate every backend's tools and merge them.

        A backend whose list_tools() fails is logged and skipped. A tool name
        advertised twice raises ToolNameCollision.
        """
        entries: List[ToolRegistryEntry] = []
        if not backends:
            logger.warning("No tool backends configured")

        for backend in backends:
            try:
                descriptors = await backend.list_tools()
            except Exception as e:
                logger.error(f"Failed to list tools from backend '{backend.name}': {e}")
                continue

            for desc in descriptors:
                entries.append(ToolRegistryEntry(descriptor=desc, backend=backend))

        registry = cls(entries)
        for name in registry.names():
            logger.info(f"Registered tool: {name} (backend={registry.lookup(name).backend.name})")
        logger.info(f"Tool registry ready: {len(registry)} tools from {len(backends)} backends")
        return registry

    def lookup(self, name: str) -> Optional[ToolRegistryEntry]:
        return self._entries.get(name)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def descriptors(self) -> List[ToolDescriptor]:
        return [self._entries[name].descriptor for name in self.names()]

    def schema_document(self) -> str:
        """Stable JSON catalog of every tool, embedded verbatim in the selection prompt."""
        return self._schema

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries


def _serialize_schema(entries: Sequence[ToolRegistryEntry]) -> str:
    tools = [e.descriptor.to_dict() for e in entries]
    return json.dumps({"tools": tools}, ensure_ascii=False, separators=(",", ":"))
