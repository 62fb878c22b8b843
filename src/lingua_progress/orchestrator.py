"""Facade a transport handler calls for each learner action."""

import structlog

from lingua_progress.admission.rate_limiter import RateLimiter
from lingua_progress.config import Settings
from lingua_progress.conversation.tutor import TutorClient
from lingua_progress.errors import RateLimited, UpstreamUnavailable
from lingua_progress.models.results import (
    DailyCount,
    LeaderboardEntry,
    MessageResult,
    MessageStatus,
)
from lingua_progress.models.session import (
    LearningMode,
    QuizQuestion,
    Session,
    Turn,
    VocabularyItem,
)
from lingua_progress.progress.analytics import EventCounter
from lingua_progress.progress.leaderboard import Leaderboard
from lingua_progress.progress.ledger import ProgressLedger
from lingua_progress.storage.base import KeyValueStore
from lingua_progress.storage.memory import InMemoryStore
from lingua_progress.storage.redis_store import RedisStore
from lingua_progress.vocabulary.scheduler import VocabularyScheduler

logger = structlog.get_logger()

SKIP_COMMANDS = frozenset({"/skip"})

UNAVAILABLE_REPLY = "Sorry, something went wrong while preparing a reply. Please try again."


class SessionOrchestrator:
    """Composes admission, tutoring and bookkeeping for one user action.

    Every method returns plain data; rendering is the transport's concern.
    ``StoreUnavailable`` is never caught here.

    Args:
        ledger: Session owner.
        limiter: Admission control for tutor calls.
        leaderboard: Points ranking.
        tutor: Completion client; anything with an async ``reply(session)``.
        analytics: Daily event counters.
        quiz_size: Questions per quiz.
        review_limit: Default length of the review list.
        leaderboard_size: Default number of ranking entries.
    """

    def __init__(
        self,
        ledger: ProgressLedger,
        limiter: RateLimiter,
        leaderboard: Leaderboard,
        tutor: TutorClient,
        analytics: EventCounter,
        quiz_size: int = 5,
        review_limit: int = 10,
        leaderboard_size: int = 10,
    ):
        self.ledger = ledger
        self.limiter = limiter
        self.ranking = leaderboard
        self.tutor = tutor
        self.analytics = analytics
        self.quiz_size = quiz_size
        self.review_limit = review_limit
        self.leaderboard_size = leaderboard_size

    async def handle_message(self, user_id: str, text: str) -> MessageResult:
        """Route a freeform message: quiz answer while a quiz runs, tutor otherwise."""
        # Quiz state is checked inside the ledger lock; idle users fall through
        if text.strip().lower() in SKIP_COMMANDS:
            if await self.ledger.skip_quiz(user_id):
                return MessageResult(status=MessageStatus.QUIZ_SKIPPED)
        else:
            outcome = await self.ledger.answer_active_quiz(user_id, text)
            if outcome is not None:
                if outcome.completed:
                    await self.analytics.track("quiz_completed")
                return MessageResult(status=MessageStatus.QUIZ_ANSWER, quiz=outcome)

        try:
            await self.limiter.enforce(user_id)
        except RateLimited as exc:
            await self.analytics.track("rate_limited")
            return MessageResult(
                status=MessageStatus.RATE_LIMITED,
                reply=str(exc),
                wait_seconds=exc.wait_seconds,
            )

        streak = await self.ledger.update_streak(user_id)
        session = await self.ledger.append_user_turn(user_id, text)

        try:
            tutor_reply = await self.tutor.reply(session)
        except UpstreamUnavailable:
            logger.warning("tutor_unavailable", user_id=user_id)
            return MessageResult(status=MessageStatus.UNAVAILABLE, reply=UNAVAILABLE_REPLY)

        session = await self.ledger.record_reply(user_id, tutor_reply.reply)
        analysis = tutor_reply.analysis
        if analysis is not None:
            session = await self.ledger.apply_analysis(user_id, analysis)
        await self.analytics.track("message")

        return MessageResult(
            status=MessageStatus.REPLY,
            reply=tutor_reply.reply,
            feedback=analysis.feedback if analysis else None,
            streak=streak,
            points=session.progress.points,
        )

    async def start_quiz(self, user_id: str, count: int | None = None) -> list[QuizQuestion] | None:
        questions = await self.ledger.start_quiz(user_id, count or self.quiz_size)
        if questions:
            await self.analytics.track("quiz_started")
        return questions

    async def skip_quiz(self, user_id: str) -> bool:
        return await self.ledger.skip_quiz(user_id)

    async def session(self, user_id: str) -> Session:
        return await self.ledger.get_or_create_session(user_id)

    async def review_list(self, user_id: str, limit: int | None = None) -> list[VocabularyItem]:
        session = await self.ledger.get_or_create_session(user_id)
        return self.ledger.scheduler.due_for_review(session, limit or self.review_limit)

    async def leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        return await self.ranking.top(limit or self.leaderboard_size)

    async def reset(self, user_id: str) -> Session:
        return await self.ledger.reset_conversation(user_id)

    async def set_language(self, user_id: str, language: str) -> Session:
        return await self.ledger.set_language(user_id, language)

    async def set_mode(self, user_id: str, mode: LearningMode) -> Session:
        return await self.ledger.set_mode(user_id, mode)

    async def set_reminder(self, user_id: str, enabled: bool, reminder_time: str | None = None) -> Session:
        return await self.ledger.set_reminder(user_id, enabled, reminder_time)

    async def history(self, user_id: str, limit: int = 100) -> list[Turn]:
        return await self.ledger.get_conversation_history(user_id, limit)

    async def event_counts(self, event: str, days: int = 7) -> list[DailyCount]:
        return await self.analytics.daily_counts(event, days)


def build_store(settings: Settings) -> KeyValueStore:
    """Redis when ``redis_url`` is configured, otherwise the in-process store."""
    if settings.redis_url:
        return RedisStore.from_url(
            settings.redis_url,
            lock_timeout_seconds=settings.lock_timeout_seconds,
            lock_wait_seconds=settings.lock_wait_seconds,
        )
    logger.warning("using_in_memory_store")
    return InMemoryStore(lock_wait_seconds=settings.lock_wait_seconds)


def build_orchestrator(settings: Settings, store: KeyValueStore | None = None) -> SessionOrchestrator:
    store = store or build_store(settings)
    leaderboard = Leaderboard(store)
    scheduler = VocabularyScheduler(
        correct_points=settings.quiz_correct_points,
        completion_bonus=settings.quiz_completion_bonus,
    )
    ledger = ProgressLedger(
        store,
        leaderboard,
        scheduler=scheduler,
        session_ttl_seconds=settings.session_ttl_seconds,
        history_limit=settings.history_limit,
    )
    limiter = RateLimiter(
        store,
        max_attempts=settings.rate_limit_max_attempts,
        window_seconds=settings.rate_limit_window_seconds,
    )
    tutor = TutorClient(
        api_key=settings.openai_api_key,
        base_url=settings.tutor_base_url,
        model=settings.tutor_model,
        temperature=settings.tutor_temperature,
        max_tokens=settings.tutor_max_tokens,
        timeout_seconds=settings.tutor_timeout_seconds,
        context_turns=settings.tutor_context_turns,
        feedback_language=settings.feedback_language,
    )
    return SessionOrchestrator(
        ledger,
        limiter,
        leaderboard,
        tutor,
        EventCounter(store, ttl_seconds=settings.analytics_ttl_seconds),
        quiz_size=settings.quiz_size,
        review_limit=settings.review_limit,
        leaderboard_size=settings.leaderboard_size,
    )
