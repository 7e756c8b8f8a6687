"""Chat pipeline: validate → select tool → invoke → format → one assistant reply.

Every stage failure is turned into text at that stage, so handle() always
returns exactly one assistant ChatMessage. Cancellation is not caught: a
cancelled request stops at whichever backend call it is awaiting.
"""
import json
import logging
import time
import uuid
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .context import AppContext
from .errors import (
    FormattingError, InvocationError, LLMUnavailable, MissingArguments,
    SelectionError, ValidationError,
)
from .formatter import format_output
from .llm import generic_response
from .protocol import ChatMessage, assistant_message
from .tools.executor import invoke
from .tools.selector import NoMatch, Partial, select_tool

logger = logging.getLogger(__name__)

NO_TOOL_NOTICE = (
    "Currently no tool is implemented to answer the query.\n\n"
    "Here is a generic response from LLM:\n"
)


class ChatHandler:
    """Runs one request through the pipeline against a shared AppContext."""

    def __init__(self, context: AppContext):
        self.context = context

    async def handle_raw(self, body: bytes) -> ChatMessage:
        """Decode a JSON request body, then handle it."""
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            logger.warning(f"Invalid JSON payload: {e}")
            return assistant_message(f"Invalid JSON payload: {e}")
        return await self.handle(payload)

    async def handle(self, payload: Any) -> ChatMessage:
        rid = uuid.uuid4().hex[:8]
        t0 = time.monotonic()
        try:
            content = await self._run(rid, payload)
        finally:
            logger.info(f"[{rid}] Pipeline total: {time.monotonic() - t0:.2f}s")
        return assistant_message(content)

    async def _run(self, rid: str, payload: Any) -> str:
        # --- Validating ---
        try:
            message = validate_message(payload)
        except ValidationError as e:
            logger.warning(f"[{rid}] {e}")
            return str(e)

        query = message.content
        logger.info(f"[{rid}] Query: {query[:200]!r}")
        ctx = self.context

        # --- Selecting ---
        if ctx.registry.is_empty:
            logger.info(f"[{rid}] No tools registered, skipping selection")
            decision = NoMatch()
        else:
            try:
                decision = await select_tool(ctx.llm, query, ctx.registry.schema_document())
            except SelectionError as e:
                logger.error(f"[{rid}] SelectTool error: {e}")
                return f"SelectTool error: {e}"

        # --- NoToolBranch ---
        if isinstance(decision, NoMatch):
            try:
                answer = await generic_response(ctx.llm, query)
            except LLMUnavailable as e:
                logger.error(f"[{rid}] GenericResponse error: {e}")
                return f"GenericResponse error: {e}"
            return NO_TOOL_NOTICE + answer

        # --- MissingArgsBranch ---
        if isinstance(decision, Partial):
            logger.info(f"[{rid}] {decision.tool_name}: missing {list(decision.missing_args)}")
            return str(MissingArguments(decision.tool_name, decision.missing_args))

        # --- InvokingBranch ---
        try:
            result = await invoke(decision, ctx.registry)
        except MissingArguments as e:
            logger.info(f"[{rid}] {decision.tool_name}: {e}")
            return str(e)
        except InvocationError as e:
            logger.error(f"[{rid}] CallTool error: {e}")
            return f"CallTool error: {e}"

        logger.info(f"[{rid}] Tool output: {result.text[:200]!r}")
        if result.is_error:
            return f"CallTool error: error calling tool: {result.text}"

        # --- Formatting ---
        try:
            return await format_output(ctx.llm, result.text, query, decision.tool_name)
        except FormattingError as e:
            logger.error(f"[{rid}] FormatOutput error: {e}")
            return f"FormatOutput error: {e}"


def validate_message(payload: Any) -> ChatMessage:
    """Accept only {"role": "user", "content": <non-blank text>}."""
    if isinstance(payload, ChatMessage):
        message = payload
    else:
        if not isinstance(payload, dict):
            raise ValidationError(f"Invalid message format: {payload!r}")
        try:
            message = ChatMessage.model_validate(payload)
        except PydanticValidationError:
            raise ValidationError(f"Invalid message format: {payload!r}")

    if message.role != "user" or not message.content.strip():
        raise ValidationError(f"Invalid message format: {message.model_dump()!r}")
    return message
