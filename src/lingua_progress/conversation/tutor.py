"""Tutor completion client for any OpenAI-compatible chat endpoint."""

import structlog
from openai import AsyncOpenAI, OpenAIError

from lingua_progress.conversation.parser import parse_tutor_output
from lingua_progress.conversation.prompts import build_system_prompt
from lingua_progress.errors import UpstreamUnavailable
from lingua_progress.models.analysis import TutorReply
from lingua_progress.models.session import Session

logger = structlog.get_logger()


class TutorClient:
    """Generates tutor replies with an embedded analysis block.

    Args:
        api_key: API key for the completion endpoint.
        base_url: OpenAI-compatible base URL (Groq by default).
        model: Chat model name.
        temperature: Sampling temperature.
        max_tokens: Completion length cap.
        timeout_seconds: Per-request timeout.
        context_turns: Most recent history turns sent with each request.
        feedback_language: Language the analysis feedback is written in.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.groq.com/openai/v1",
        model: str = "llama-3.3-70b-versatile",
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: float = 30.0,
        context_turns: int = 10,
        feedback_language: str = "Indonesian",
    ):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.context_turns = context_turns
        self.feedback_language = feedback_language

    def build_messages(self, session: Session) -> list[dict[str, str]]:
        """System prompt followed by the recent history (which ends with the user turn)."""
        recent = session.conversation_history[-self.context_turns:] if self.context_turns else []
        return [
            {"role": "system", "content": build_system_prompt(session, self.feedback_language)},
            *({"role": t.role, "content": t.content} for t in recent),
        ]

    async def reply(self, session: Session) -> TutorReply:
        """Ask the tutor to answer the latest user turn.

        Raises:
            UpstreamUnavailable: The call failed, timed out or returned no text.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(session),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as exc:
            logger.exception("tutor_call_failed", user_id=session.user_id)
            raise UpstreamUnavailable(str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("tutor_empty_reply", user_id=session.user_id)
            raise UpstreamUnavailable("tutor returned an empty completion")
        return parse_tutor_output(content)
