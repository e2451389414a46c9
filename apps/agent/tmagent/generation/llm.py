"""Text generation via OpenAI chat models.

Three quality classes map onto two configured models: "small" uses the fast
model, "medium" and "large" the strong one. Every call is bounded by the
configured generation timeout; failures surface as TransientIOError so the
caller can skip the unit of work.
"""

from __future__ import annotations

import asyncio
import logging
import re

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from tmagent.config import Settings
from tmagent.errors import TransientIOError
from tmagent.models import ActionFlags, Decision

logger = logging.getLogger(__name__)

_SYSTEM = "Follow the instructions exactly. Return only what is asked for."

_TEMPERATURE = {"small": 0.2, "medium": 0.7, "large": 0.4}
_MAX_TOKENS = {"small": 64, "medium": 600, "large": 800}

_DECISION_RE = re.compile(r"\b(RESPOND|IGNORE|STOP)\b")


def parse_decision(text: str) -> Decision:
    """First RESPOND/IGNORE/STOP token in the text; IGNORE if there is none."""
    match = _DECISION_RE.search((text or "").upper())
    return Decision(match.group(1)) if match else Decision.IGNORE


def parse_action_flags(text: str) -> ActionFlags:
    upper = (text or "").upper()
    return ActionFlags(
        like="[LIKE]" in upper,
        retweet="[RETWEET]" in upper,
        quote="[QUOTE]" in upper,
        reply="[REPLY]" in upper,
    )


class TextGenerator:
    """Thin wrapper around cached ChatOpenAI clients."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.timeout = settings.generation_timeout
        self._llm_cache: dict[str, ChatOpenAI] = {}

    def _get_llm(self, quality: str) -> ChatOpenAI:
        if quality not in _TEMPERATURE:
            raise ValueError(f"Unknown quality class: {quality}")
        if quality not in self._llm_cache:
            model = self.settings.fast_model if quality == "small" else self.settings.strong_model
            self._llm_cache[quality] = ChatOpenAI(
                model=model,
                temperature=_TEMPERATURE[quality],
                max_tokens=_MAX_TOKENS[quality],
                api_key=self.settings.openai_api_key,
            )
        return self._llm_cache[quality]

    async def generate(self, context: str, quality: str = "medium") -> str:
        llm = self._get_llm(quality)
        messages = [SystemMessage(content=_SYSTEM), HumanMessage(content=context)]
        try:
            if self.timeout and self.timeout > 0:
                response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
            else:
                response = await llm.ainvoke(messages)
        except asyncio.TimeoutError:
            logger.error("Generation TIMEOUT after %.0fs (quality=%s)", self.timeout, quality)
            raise TransientIOError(f"Generation timed out after {self.timeout:g}s") from None
        except Exception as e:
            logger.error("Generation failed (quality=%s): %s", quality, e)
            raise TransientIOError(f"Generation failed: {e}") from e
        return response.content if hasattr(response, "content") else str(response)

    async def decide(self, context: str) -> Decision:
        text = await self.generate(context, quality="small")
        decision = parse_decision(text)
        logger.debug("Decision %s from %r", decision.value, text[:50])
        return decision

    async def decide_actions(self, context: str) -> ActionFlags:
        text = await self.generate(context, quality="small")
        return parse_action_flags(text)
