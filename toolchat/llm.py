"""Reasoning backend client — OpenAI-compatible chat completions, no streaming."""
import asyncio
import logging
import time
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .config import Settings
from .errors import LLMUnavailable

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class ReasoningBackend:
    """One AsyncOpenAI client shared by every request.

    Every call is a single attempt: retries are disabled on the client and
    failures surface as LLMUnavailable.
    """

    def __init__(self, cfg: Settings, client: Optional[AsyncOpenAI] = None):
        self.model = cfg.llm_model
        self.max_tokens = cfg.llm_max_tokens
        self._client = client or AsyncOpenAI(
            api_key=cfg.llm_token,
            base_url=cfg.llm_url,
            timeout=cfg.llm_timeout_s,
            max_retries=0,
        )

    async def complete(self, messages: List[Message], label: str = "") -> str:
        """Send an ordered message list and return the assistant text."""
        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                stream=False,
            )
        except (openai.APIError, asyncio.TimeoutError) as e:
            logger.error(f"LLM {label} request failed after {time.monotonic() - t0:.2f}s: {e}")
            raise LLMUnavailable(f"request failed: {e}") from e

        if not response.choices:
            raise LLMUnavailable("no choices returned")
        content = response.choices[0].message.content
        if content is None:
            raise LLMUnavailable("empty message content returned")

        logger.info(f"LLM {label}: {len(content)} chars ({time.monotonic() - t0:.2f}s)")
        return content

    async def aclose(self):
        await self._client.close()


async def generic_response(llm: ReasoningBackend, query: str) -> str:
    """Free-form answer used when no registered tool fits the query."""
    messages = [{"role": "user", "content": f"Query: {query}"}]
    return await llm.complete(messages, label="generic")
