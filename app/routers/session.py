"""Puzzle session endpoints: the command interface and the read-only view."""
import uuid
from dataclasses import asdict
from typing import Optional, Union
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field, validator
from app.config import settings
from app.constants import ANSWER_SUBMISSION_RATE_LIMIT, COOKIE_NAME
from app.rate_limit import limiter
from app.services.puzzle import Difficulty, InvalidNameError, PuzzleStateError
from app.services.session_manager import SessionManager

router = APIRouter(prefix="/api/session", tags=["session"])


class NameSubmission(BaseModel):
    """Request body for setting the player name."""
    name: str = Field(..., description="Display name; trimmed, must not be empty")

    @validator('name')
    def validate_name(cls, v):
        """Validate that name is not empty or whitespace."""
        if not v or v.strip() == '':
            raise ValueError('name cannot be empty')
        return v.strip()


class AnswerSubmission(BaseModel):
    """Request body for answering the current equation."""
    value: Optional[Union[int, float, str]] = Field(None, description="Proposed value of x; non-numeric input counts as wrong")


class DifficultyChange(BaseModel):
    """Request body for switching word tiers."""
    difficulty: Difficulty


def get_session_manager(request: Request) -> SessionManager:
    """Session manager created by the application lifespan."""
    return request.app.state.session_manager


def get_client_id(request: Request, response: Response) -> str:
    """
    Get or create the anonymous client id cookie.

    Args:
        request: FastAPI request
        response: FastAPI response (to set cookie)

    Returns:
        Client id scoping this browser's snapshot
    """
    client_id = request.cookies.get(COOKIE_NAME)
    if client_id:
        return client_id

    client_id = f"awp_{uuid.uuid4()}"
    response.set_cookie(
        key=COOKIE_NAME,
        value=client_id,
        max_age=settings.COOKIE_MAX_AGE,
        httponly=settings.COOKIE_HTTPONLY,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE
    )
    return client_id


@router.get("")
async def get_session(
    client_id: str = Depends(get_client_id),
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Current session view.

    Returns:
    - phase, difficulty, score and player name
    - masked word and current equation (never its solution)
    - solved words, unlock flag and the cached top-3 leaderboard
    """
    await manager.get_session(client_id)
    return manager.view(client_id)


@router.post("/name")
async def set_name(
    submission: NameSubmission,
    client_id: str = Depends(get_client_id),
    manager: SessionManager = Depends(get_session_manager)
):
    """Set the player name and start playing if the game was waiting for it."""
    try:
        await manager.set_name(client_id, submission.name)
    except InvalidNameError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return manager.view(client_id)


@router.post("/answer")
@limiter.limit(ANSWER_SUBMISSION_RATE_LIMIT)
async def submit_answer(
    request: Request,
    answer: AnswerSubmission,
    client_id: str = Depends(get_client_id),
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Answer the current equation.

    Updates:
    - Revealed letters and equation (correct answers)
    - Local score (+100 correct, -10 wrong, never below 0)
    - Ranking row, in the background

    Returns:
    - Outcome of this answer
    - Updated session view
    """
    try:
        outcome = await manager.submit_answer(client_id, answer.value)
    except PuzzleStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        **asdict(outcome),
        "view": manager.view(client_id)
    }


@router.post("/difficulty")
async def change_difficulty(
    change: DifficultyChange,
    client_id: str = Depends(get_client_id),
    manager: SessionManager = Depends(get_session_manager)
):
    """Switch tiers. Medium is refused (changed=false) until every Easy word is solved."""
    changed = await manager.change_difficulty(client_id, change.difficulty)
    return {
        "changed": changed,
        "view": manager.view(client_id)
    }
