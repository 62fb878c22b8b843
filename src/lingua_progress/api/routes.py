"""REST API routes over the session orchestrator."""

import functools

import structlog
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lingua_progress.config import get_settings
from lingua_progress.models.results import MessageStatus
from lingua_progress.models.session import LearningMode
from lingua_progress.orchestrator import SessionOrchestrator, build_orchestrator

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class MessageRequest(BaseModel):
    text: str = Field(min_length=1)


class LanguageRequest(BaseModel):
    language: str


class ModeRequest(BaseModel):
    mode: LearningMode


class ReminderRequest(BaseModel):
    daily_reminder: bool
    reminder_time: str | None = None


class QuizRequest(BaseModel):
    count: int | None = Field(default=None, ge=1, le=20)


@functools.lru_cache
def get_orchestrator() -> SessionOrchestrator:
    """Process-wide orchestrator built from settings."""
    return build_orchestrator(get_settings())


@router.post("/users/{user_id}/messages")
async def post_message(user_id: str, body: MessageRequest):
    """Handle a freeform learner message."""
    result = await get_orchestrator().handle_message(user_id, body.text)
    if result.status == MessageStatus.RATE_LIMITED:
        return JSONResponse(
            result.model_dump(mode="json"),
            status_code=429,
            headers={"Retry-After": str(result.wait_seconds)},
        )
    return result.model_dump(mode="json")


@router.get("/users/{user_id}/session")
async def get_session(user_id: str) -> dict:
    session = await get_orchestrator().session(user_id)
    return session.model_dump(mode="json")


@router.get("/users/{user_id}/review")
async def get_review_list(user_id: str, limit: int | None = Query(default=None, ge=1, le=100)) -> list[dict]:
    """Words due for review, least recently practised first."""
    items = await get_orchestrator().review_list(user_id, limit)
    return [item.model_dump(mode="json") for item in items]


@router.get("/users/{user_id}/history")
async def get_history(user_id: str, limit: int = Query(default=100, ge=1, le=100)) -> list[dict]:
    turns = await get_orchestrator().history(user_id, limit)
    return [turn.model_dump() for turn in turns]


@router.post("/users/{user_id}/reset")
async def reset_conversation(user_id: str) -> dict:
    await get_orchestrator().reset(user_id)
    return {"status": "ok"}


@router.put("/users/{user_id}/language")
async def set_language(user_id: str, body: LanguageRequest) -> dict:
    try:
        session = await get_orchestrator().set_language(user_id, body.language)
    except ValueError as exc:
        logger.info("unsupported_language", user_id=user_id, language=body.language)
        raise HTTPException(status_code=400, detail=str(exc))
    return {"language": session.language}


@router.put("/users/{user_id}/mode")
async def set_mode(user_id: str, body: ModeRequest) -> dict:
    session = await get_orchestrator().set_mode(user_id, body.mode)
    return {"mode": session.mode.value}


@router.put("/users/{user_id}/reminder")
async def set_reminder(user_id: str, body: ReminderRequest) -> dict:
    try:
        session = await get_orchestrator().set_reminder(
            user_id, body.daily_reminder, body.reminder_time
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return session.reminder.model_dump()


@router.post("/users/{user_id}/quiz")
async def start_quiz(user_id: str, body: QuizRequest | None = None) -> dict:
    questions = await get_orchestrator().start_quiz(user_id, body.count if body else None)
    if not questions:
        raise HTTPException(status_code=409, detail="No vocabulary to quiz yet")
    return {"questions": [q.model_dump(mode="json") for q in questions]}


@router.delete("/users/{user_id}/quiz")
async def skip_quiz(user_id: str) -> dict:
    skipped = await get_orchestrator().skip_quiz(user_id)
    return {"skipped": skipped}


@router.get("/leaderboard")
async def get_leaderboard(limit: int | None = Query(default=None, ge=1, le=100)) -> list[dict]:
    entries = await get_orchestrator().leaderboard(limit)
    return [entry.model_dump() for entry in entries]


@router.get("/analytics/{event}")
async def get_event_counts(event: str, days: int = Query(default=7, ge=1, le=90)) -> list[dict]:
    counts = await get_orchestrator().event_counts(event, days)
    return [c.model_dump() for c in counts]


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
