"""Session record ownership: history, streaks, vocabulary, quizzes and points."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from pydantic import ValidationError

from lingua_progress.conversation.languages import LANGUAGES
from lingua_progress.errors import SessionNotFound, StoreUnavailable
from lingua_progress.models.analysis import TutorAnalysis
from lingua_progress.models.results import QuizOutcome
from lingua_progress.models.session import (
    LearningMode,
    QuizQuestion,
    ReminderSettings,
    Session,
    Turn,
    VocabularyItem,
    utc_now,
)
from lingua_progress.progress.leaderboard import Leaderboard
from lingua_progress.progress.streak import next_streak
from lingua_progress.storage.base import KeyValueStore
from lingua_progress.vocabulary.scheduler import VocabularyScheduler, apply_review

logger = structlog.get_logger()


def session_key(user_id: str) -> str:
    return f"session:{user_id}"


class ProgressLedger:
    """Reads and mutates per-user sessions through the store.

    Every mutation runs load -> change -> save under the store's lock for
    ``session:<user_id>``. When a mutation changes the point total, the
    leaderboard is upserted before the lock is released, so a user's ranking
    never lags behind a completed points update.

    Args:
        store: Backing key-value store (the source of truth; nothing is cached).
        leaderboard: Projection kept in step with points.
        scheduler: Quiz engine used by the quiz operations.
        session_ttl_seconds: Expiry refreshed on every write.
        history_limit: Maximum conversation turns retained.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        store: KeyValueStore,
        leaderboard: Leaderboard,
        scheduler: VocabularyScheduler | None = None,
        session_ttl_seconds: int = 30 * 86400,
        history_limit: int = 20,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.leaderboard = leaderboard
        self.scheduler = scheduler or VocabularyScheduler()
        self.session_ttl_seconds = session_ttl_seconds
        self.history_limit = history_limit
        self._clock = clock

    async def _fetch(self, user_id: str) -> Session:
        raw = await self.store.get(session_key(user_id))
        if raw is None:
            raise SessionNotFound(user_id)
        try:
            return Session.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("session_record_corrupt", user_id=user_id)
            raise StoreUnavailable(f"session record for {user_id} is unreadable") from exc

    async def _load(self, user_id: str) -> Session:
        try:
            return await self._fetch(user_id)
        except SessionNotFound:
            return Session(user_id=user_id)

    async def _save(self, session: Session) -> None:
        await self.store.set(
            session_key(session.user_id),
            session.model_dump_json(),
            ttl_seconds=self.session_ttl_seconds,
        )

    @asynccontextmanager
    async def _edit(self, user_id: str) -> AsyncIterator[Session]:
        async with self.store.lock(session_key(user_id)):
            session = await self._load(user_id)
            before = session.model_copy(deep=True)
            yield session
            # No-op edits write nothing, so defaults stay unpersisted
            if session == before:
                return
            await self._save(session)
            if session.progress.points != before.progress.points:
                await self.leaderboard.upsert(user_id, session.progress.points)

    async def get_or_create_session(self, user_id: str) -> Session:
        """Stored session, or fresh defaults (not persisted until first change)."""
        return await self._load(user_id)

    async def record_message(self, user_id: str, user_text: str, assistant_text: str) -> Session:
        async with self._edit(user_id) as session:
            session.add_turn("user", user_text, self.history_limit)
            session.add_turn("assistant", assistant_text, self.history_limit)
            session.progress.messages_count += 1
        return session

    async def append_user_turn(self, user_id: str, text: str) -> Session:
        """Commit the learner's turn ahead of the tutor call."""
        async with self._edit(user_id) as session:
            session.add_turn("user", text, self.history_limit)
        return session

    async def record_reply(self, user_id: str, assistant_text: str) -> Session:
        """Commit the tutor's turn and count the completed exchange."""
        async with self._edit(user_id) as session:
            session.add_turn("assistant", assistant_text, self.history_limit)
            session.progress.messages_count += 1
        return session

    async def apply_analysis(self, user_id: str, analysis: TutorAnalysis) -> Session:
        """Fold tutor feedback into the session.

        Level and grammar score are overwritten, not smoothed: the latest
        analysis wins.
        """
        now = self._clock()
        async with self._edit(user_id) as session:
            if analysis.detected_level is not None:
                session.proficiency_level = analysis.detected_level
            words = analysis.words
            if words:
                session.vocabulary.extend(VocabularyItem(word=w, added_at=now) for w in words)
                session.progress.vocabulary_count += len(words)
            if analysis.grammar_score is not None:
                session.progress.grammar_score = analysis.grammar_score
            if analysis.points_earned:
                session.progress.points += analysis.points_earned
        return session

    async def update_streak(self, user_id: str) -> int:
        now = self._clock()
        async with self._edit(user_id) as session:
            streak, changed = next_streak(
                session.progress.streak, session.progress.last_active_date, now
            )
            if changed:
                session.progress.streak = streak
                session.progress.last_active_date = now
                logger.info("streak_updated", user_id=user_id, streak=streak)
        return session.progress.streak

    async def add_points(self, user_id: str, delta: int) -> int:
        """Add ``delta`` (any integer) to the total and return the new total."""
        async with self._edit(user_id) as session:
            session.progress.points += delta
        return session.progress.points

    async def reset_conversation(self, user_id: str) -> Session:
        async with self._edit(user_id) as session:
            session.conversation_history = []
            session.progress.messages_count = 0
        return session

    async def set_language(self, user_id: str, language: str) -> Session:
        """Switch target language; the conversation restarts.

        Raises:
            ValueError: Unknown language code.
        """
        if language not in LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        async with self._edit(user_id) as session:
            session.language = language
            session.conversation_history = []
        return session

    async def set_mode(self, user_id: str, mode: LearningMode) -> Session:
        async with self._edit(user_id) as session:
            session.mode = LearningMode(mode)
        return session

    async def set_reminder(self, user_id: str, enabled: bool, reminder_time: str | None = None) -> Session:
        async with self._edit(user_id) as session:
            session.reminder = ReminderSettings(
                daily_reminder=enabled,
                reminder_time=reminder_time or session.reminder.reminder_time,
            )
        return session

    async def add_vocabulary(self, user_id: str, words: list[str]) -> Session:
        now = self._clock()
        async with self._edit(user_id) as session:
            session.vocabulary.extend(VocabularyItem(word=w, added_at=now) for w in words)
        return session

    async def record_review(self, user_id: str, word: str, correct: bool) -> VocabularyItem | None:
        """Record a review of ``word`` outside a quiz. None if the word is unknown."""
        now = self._clock()
        async with self._edit(user_id) as session:
            item = session.find_word(word)
            if item is not None:
                apply_review(item, correct, now)
        return item

    async def get_conversation_history(self, user_id: str, limit: int = 100) -> list[Turn]:
        session = await self._load(user_id)
        return session.conversation_history[-limit:] if limit > 0 else []

    async def start_quiz(self, user_id: str, count: int = 5) -> list[QuizQuestion] | None:
        async with self._edit(user_id) as session:
            questions = self.scheduler.start(session, count)
        if questions:
            logger.info("quiz_started", user_id=user_id, questions=len(questions))
        return questions

    async def answer_quiz(self, user_id: str, answer: str) -> QuizOutcome:
        """Grade an answer to the running quiz and credit any points earned.

        Raises:
            ValueError: No quiz is in progress.
        """
        outcome = await self.answer_active_quiz(user_id, answer)
        if outcome is None:
            raise ValueError("no quiz in progress")
        return outcome

    async def answer_active_quiz(self, user_id: str, answer: str) -> QuizOutcome | None:
        """Grade ``answer`` if a quiz is running, else None.

        The quiz check and the grading happen under one lock, so concurrent
        messages cannot both act on the final question.
        """
        now = self._clock()
        async with self._edit(user_id) as session:
            if not session.quiz_in_progress:
                return None
            outcome = self.scheduler.answer(session, answer, now)
            session.progress.points += outcome.points_awarded
        return outcome

    async def skip_quiz(self, user_id: str) -> bool:
        async with self._edit(user_id) as session:
            skipped = self.scheduler.skip(session)
        return skipped
