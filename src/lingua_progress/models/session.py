"""Session data models."""

import re
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_GOALS: tuple[str, ...] = (
    "Master basic greetings and introductions",
    "Learn present tense verb conjugation",
    "Build everyday vocabulary (100 words)",
)

_REMINDER_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LearningMode(StrEnum):
    """Conversation style requested by the learner."""

    CASUAL = "casual"
    STRUCTURED = "structured"


class ProficiencyLevel(StrEnum):
    """Coarse proficiency buckets reported by the tutor."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuestionType(StrEnum):
    TRANSLATION = "translation"
    USAGE = "usage"


class Turn(BaseModel):
    """A single conversation turn."""

    role: str  # "user" or "assistant"
    content: str


class VocabularyItem(BaseModel):
    """A word the learner has encountered, with its review record."""

    word: str
    added_at: datetime = Field(default_factory=utc_now)
    review_count: int = Field(default=0, ge=0)
    last_review: datetime | None = None
    mastered: bool = False


class QuizQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    type: QuestionType
    question: str


class Progress(BaseModel):
    vocabulary_count: int = 0
    grammar_score: int = Field(default=0, ge=0, le=100)
    messages_count: int = 0
    streak: int = Field(default=0, ge=0)
    last_active_date: datetime | None = None
    points: int = 0


class ReminderSettings(BaseModel):
    daily_reminder: bool = False
    reminder_time: str = "09:00"

    @field_validator("reminder_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not _REMINDER_TIME.match(value):
            raise ValueError("reminder_time must be HH:MM")
        return value


class Session(BaseModel):
    """Per-user learning record."""

    user_id: str
    language: str = "english"
    mode: LearningMode = LearningMode.CASUAL
    proficiency_level: ProficiencyLevel = ProficiencyLevel.BEGINNER
    conversation_history: list[Turn] = Field(default_factory=list)
    progress: Progress = Field(default_factory=Progress)
    vocabulary: list[VocabularyItem] = Field(default_factory=list)
    goals: tuple[str, ...] = DEFAULT_GOALS
    active_quiz: list[QuizQuestion] | None = None
    quiz_index: int = 0
    reminder: ReminderSettings = Field(default_factory=ReminderSettings)

    def add_turn(self, role: str, content: str, limit: int = 20) -> Turn:
        """Append a turn, keeping only the most recent ``limit`` entries."""
        turn = Turn(role=role, content=content)
        self.conversation_history.append(turn)
        if len(self.conversation_history) > limit:
            self.conversation_history = self.conversation_history[-limit:]
        return turn

    def find_word(self, word: str) -> VocabularyItem | None:
        """First vocabulary entry whose text matches ``word`` exactly."""
        for item in self.vocabulary:
            if item.word == word:
                return item
        return None

    @property
    def quiz_in_progress(self) -> bool:
        return self.active_quiz is not None

    @property
    def current_question(self) -> QuizQuestion | None:
        if self.active_quiz is None or self.quiz_index >= len(self.active_quiz):
            return None
        return self.active_quiz[self.quiz_index]

    def clear_quiz(self) -> None:
        self.active_quiz = None
        self.quiz_index = 0
