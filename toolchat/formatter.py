"""Output formatter — turns raw tool output into presentable text."""
import logging

from .errors import FormattingError, LLMUnavailable
from .llm import ReasoningBackend

logger = logging.getLogger(__name__)

OUTPUT_FORMAT_PROMPT = "\n".join([
    "You are a skilled text formatter.",
    "Use the provided Text to format a response. If the Text contains a list of items, "
    "output should be a numbered list of items.",
    "if the provided Text has icons or images or picture, keep them as-is in their respective context",
])


async def format_output(llm: ReasoningBackend, raw_text: str, original_query: str, tool_name: str = "") -> str:
    """Return the reasoning backend's rendition of raw_text, unvalidated."""
    messages = [
        {"role": "system", "content": OUTPUT_FORMAT_PROMPT},
        {"role": "user", "content": f"Text: {raw_text}"},
    ]
    logger.debug(f"Formatting {len(raw_text)} chars of {tool_name or 'tool'} output for query {original_query[:80]!r}")
    try:
        return await llm.complete(messages, label="format")
    except LLMUnavailable as e:
        raise FormattingError(str(e)) from e
