"""Structured analysis reported by the tutor alongside each reply."""

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lingua_progress.models.session import ProficiencyLevel

logger = structlog.get_logger()


class TutorAnalysis(BaseModel):
    """Tutor feedback on a learner message.

    Every field is optional and validated on its own: an invalid value is
    dropped to ``None`` without rejecting the rest of the payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    feedback: str | None = None
    detected_level: ProficiencyLevel | None = Field(default=None, alias="detectedLevel")
    vocabulary_used: list[str] | None = Field(default=None, alias="vocabularyUsed")
    grammar_score: int | None = Field(default=None, ge=0, le=100, alias="grammarScore")
    points_earned: int | None = Field(default=None, ge=0, alias="pointsEarned")

    @field_validator("*", mode="wrap")
    @classmethod
    def _discard_invalid(cls, value: Any, handler, info):
        try:
            return handler(value)
        except ValidationError:
            logger.debug("analysis_field_discarded", field=info.field_name, value=repr(value))
            return None

    @field_validator("detected_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def words(self) -> list[str]:
        """Used words with blanks removed."""
        return [w.strip() for w in self.vocabulary_used or [] if w.strip()]


class TutorReply(BaseModel):
    """Parsed tutor output: the conversational reply plus optional analysis."""

    reply: str
    analysis: TutorAnalysis | None = None
