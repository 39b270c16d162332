"""Second-pass review of proposed final answers."""

import asyncio
import logging
from dataclasses import dataclass

from config.settings import settings
from elf_agent.llm.content import ContentSource, extract_json_object

logger = logging.getLogger(__name__)


@dataclass
class CriticVerdict:
    """Outcome of a critic review."""

    valid: bool
    reason: str | None = None


CRITIC_SYSTEM_PROMPT = """You are a critical reviewer of an assistant's answers.

Task:
1. Does the answer directly address the user's request?
2. Does it violate any known preferences (allergies, dislikes, budget)?
3. Is it helpful?

If it is good, return JSON: { "valid": true }
If it fails, return JSON: { "valid": false, "reason": "Explain exactly what is wrong so the agent can fix it." }
Return ONLY JSON."""


class Critic:
    """
    Validates a proposed answer with an independent generation call.

    The critic fails open: if its own call errors, times out or returns
    something unreadable, the answer is accepted.
    """

    def __init__(
        self,
        content_source: ContentSource,
        timeout_ms: int | None = None,
    ) -> None:
        self._content = content_source
        self._timeout_ms = (
            timeout_ms if timeout_ms is not None else settings.agent_critic_timeout_ms
        )

    async def review(
        self,
        request: str,
        context_info: str,
        proposed_answer: str,
    ) -> CriticVerdict:
        """
        Review a proposed answer against the original request.

        Args:
            request: The user's original request
            context_info: Caller-supplied context (preferences, artifacts, history)
            proposed_answer: The answer the agent wants to return

        Returns:
            CriticVerdict; valid=True whenever the review itself fails
        """
        user_prompt = f"""User Request: "{request}"
Context/Preferences: {context_info}

Agent's Proposed Answer: "{proposed_answer}"

Is this answer acceptable? Return ONLY JSON."""

        try:
            raw = await asyncio.wait_for(
                self._content.generate(
                    user_prompt,
                    CRITIC_SYSTEM_PROMPT,
                    self._timeout_ms,
                ),
                self._timeout_ms / 1000,
            )
        except Exception as e:
            logger.warning(f"Critic failed, accepting answer: {e}")
            return CriticVerdict(valid=True)

        data = extract_json_object(raw or "")
        if not isinstance(data, dict) or not isinstance(data.get("valid"), bool):
            logger.warning(f"Unreadable critic verdict, accepting answer: {raw!r}")
            return CriticVerdict(valid=True)

        if data["valid"]:
            return CriticVerdict(valid=True)

        reason = data.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            reason = "The answer does not satisfy the request."
        return CriticVerdict(valid=False, reason=reason.strip())
