"""Plain result records returned to the transport layer."""

from enum import StrEnum

from pydantic import BaseModel

from lingua_progress.models.session import QuizQuestion


class RateLimitResult(BaseModel):
    """Outcome of a single admission check."""

    allowed: bool
    remaining: int | None = None
    wait_seconds: int | None = None
    message: str | None = None


class LeaderboardEntry(BaseModel):
    user_id: str
    score: int


class QuizOutcome(BaseModel):
    """Result of grading one quiz answer."""

    correct: bool
    word: str
    points_awarded: int = 0
    completed: bool = False
    quiz_index: int = 0
    next_question: QuizQuestion | None = None
    mastered: bool = False


class MessageStatus(StrEnum):
    REPLY = "reply"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    QUIZ_ANSWER = "quiz_answer"
    QUIZ_SKIPPED = "quiz_skipped"


class MessageResult(BaseModel):
    """What happened to a freeform user message."""

    status: MessageStatus
    reply: str | None = None
    feedback: str | None = None
    wait_seconds: int | None = None
    quiz: QuizOutcome | None = None
    streak: int | None = None
    points: int | None = None


class DailyCount(BaseModel):
    date: str
    count: int
