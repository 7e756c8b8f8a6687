"""Tool selector — maps a free-text query onto a tool decision via the LLM.

The reasoning backend is asked to answer with one of three JSON shapes:

    {"tool_name": "<name>", "tool_args": {...}}        -> Complete
    {"tool_name": "<name>", "missing_args": [...]}     -> Partial
    {"tool_name": "none"}                              -> NoMatch

Replies are free-form text, so the JSON object is cut out of it first (see
extract_json) and then resolved by fixed precedence in resolve_decision.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import BackendUnavailable, LLMUnavailable, Malformed, NotParseable
from ..llm import ReasoningBackend

logger = logging.getLogger(__name__)

NO_TOOL = "none"

TOOL_SELECTION_PROMPT = "\n".join([
    "You are a software engineer experienced in developing RESTful applications.",
    "You are familiar with JSON documents and JSON schema.",
    "Using the schema of the Tools provided, decide if a tool from the list can be used "
    "to answer the user's query or complete the user's task.",
    "Your response must be a valid JSON string",
    "There are three possible responses:",
    '1. If a matching tool is found, the response should be '
    '{"tool_name": <name of the tool found>, "tool_args": <argument to the selected tool>}',
    '2. If a closely matching tool is available, but some arguments needed are missing then '
    'response should be {"tool_name": <name of the tool selected>, "missing_args": <list of missing arguments>}',
    '3. If no tool can be used to meet the user\'s query or task, the response should be {"tool_name": "none"}',
])


@dataclass(frozen=True)
class NoMatch:
    pass


@dataclass(frozen=True)
class Complete:
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Partial:
    tool_name: str
    missing_args: Tuple[str, ...]


ToolSelectionDecision = Union[NoMatch, Complete, Partial]


def extract_json(text: str) -> Optional[str]:
    """Substring from the first '{' to the last '}', or None.

    Deliberately naive: braces inside string values or several JSON-looking
    fragments in prose are not handled.
    """
    start = text.find("{")
    if start < 0:
        return None
    end = text.rfind("}")
    if end < start:
        return None
    return text[start:end + 1]


def resolve_decision(doc: Any, raw_text: str = "") -> ToolSelectionDecision:
    """Apply the decision precedence to an already-parsed JSON value."""
    raw_text = raw_text or json.dumps(doc, ensure_ascii=False, default=str)
    if not isinstance(doc, dict):
        raise Malformed("llm reply is not a JSON object", raw_text)

    tool_name = doc.get("tool_name")
    if tool_name is None or tool_name == NO_TOOL:
        return NoMatch()
    if not isinstance(tool_name, str) or not tool_name:
        raise Malformed("tool_name must be a non-empty string", raw_text)

    missing = doc.get("missing_args")
    if missing:
        if not isinstance(missing, list) or not all(isinstance(m, str) for m in missing):
            raise Malformed("missing_args must be a list of argument names", raw_text)
        return Partial(tool_name=tool_name, missing_args=tuple(missing))

    tool_args = doc.get("tool_args")
    if not isinstance(tool_args, dict):
        raise Malformed("llm unable to select a tool", raw_text)
    return Complete(tool_name=tool_name, args=tool_args)


def parse_selection(text: str) -> ToolSelectionDecision:
    """Turn a raw selection reply into a decision."""
    json_doc = extract_json(text)
    if json_doc is None:
        raise NotParseable("response is not json document", text)

    try:
        doc = json.loads(json_doc)
    except (json.JSONDecodeError, RecursionError):
        raise NotParseable("response does not contain valid json", text)

    return resolve_decision(doc, text)


async def select_tool(llm: ReasoningBackend, query: str, schema_document: str) -> ToolSelectionDecision:
    messages = [
        {"role": "system", "content": TOOL_SELECTION_PROMPT},
        {"role": "user", "content": f"Tools: {schema_document}"},
        {"role": "user", "content": query},
    ]

    t0 = time.monotonic()
    try:
        reply = await llm.complete(messages, label="select")
    except LLMUnavailable as e:
        raise BackendUnavailable(str(e)) from e

    decision = parse_selection(reply)
    logger.info(f"Tool selection: {decision} ({time.monotonic() - t0:.2f}s)")
    return decision
