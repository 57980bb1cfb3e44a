from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from dataclasses import asdict

from ..config import (
    DEFAULT_EXPIRES_IN,
    MAX_ANSWER_LENGTH,
    MAX_HINT_LENGTH,
    MAX_PAGE_SIZE,
    SHARE_BASE_URL,
)
from ..models.guess import GuessPublic
from ..models.puzzle import Puzzle
from ..services.auth import get_current_user_id
from ..services.lifecycle import PuzzleLifecycle, get_lifecycle

router = APIRouter(
    prefix="/puzzles",
    tags=["Puzzles"]
)


class PuzzleCreate(BaseModel):
    image_data: str = Field(min_length=1)  # data:image/<fmt>;base64,...
    answer: str = Field(min_length=1, max_length=MAX_ANSWER_LENGTH)
    hint: Optional[str] = Field(default=None, max_length=MAX_HINT_LENGTH)
    case_sensitive: bool = False
    expires_in: int = Field(default=DEFAULT_EXPIRES_IN, ge=0)  # seconds, 0 = never expire
    is_public: bool = True

class PuzzleCreateResponse(BaseModel):
    id: str
    share_url: str
    expires_at: Optional[datetime]
    created_at: datetime

class PuzzlePublic(BaseModel):
    id: str
    image_url: str
    hint: Optional[str]
    is_expired: bool
    expires_at: Optional[datetime]
    created_at: datetime

class PuzzleListResponse(BaseModel):
    puzzles: List[PuzzlePublic]
    page: int
    page_size: int
    total: int

def to_public(lifecycle: PuzzleLifecycle, puzzle: Puzzle) -> PuzzlePublic:
    return PuzzlePublic(
        id=puzzle.puzzle_id,
        image_url=lifecycle.image_url(puzzle),
        hint=puzzle.hint,
        is_expired=lifecycle.is_expired(puzzle),
        expires_at=puzzle.expires_at,
        created_at=puzzle.created_at,
    )


@router.post("", response_model=PuzzleCreateResponse, status_code=status.HTTP_201_CREATED)
def create_puzzle(
    request: PuzzleCreate,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    puzzle = lifecycle.create_puzzle(
        creator_id=current_user_id,
        image_data=request.image_data,
        answer=request.answer,
        hint=request.hint,
        case_sensitive=request.case_sensitive,
        expires_in=request.expires_in,
        is_public=request.is_public,
    )
    return {
        "id": puzzle.puzzle_id,
        "share_url": f"{SHARE_BASE_URL.rstrip('/')}/puzzle/{puzzle.puzzle_id}",
        "expires_at": puzzle.expires_at,
        "created_at": puzzle.created_at,
    }


@router.get("", response_model=PuzzleListResponse)
def list_public_puzzles(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle)
):
    result = lifecycle.list_public_puzzles(page, page_size)
    return {
        "puzzles": [to_public(lifecycle, puzzle) for puzzle in result.items],
        "page": result.page,
        "page_size": result.page_size,
        "total": result.total,
    }


@router.get("/{puzzle_id}", response_model=PuzzlePublic)
def get_puzzle(puzzle_id: str, lifecycle: PuzzleLifecycle = Depends(get_lifecycle)):
    """Puzzle details. The answer is never included."""
    return to_public(lifecycle, lifecycle.get_puzzle(puzzle_id))


@router.delete("/{puzzle_id}")
def delete_puzzle(
    puzzle_id: str,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    """Delete a puzzle with all its guesses, solves and give-ups. Only the creator can delete it."""
    lifecycle.delete_puzzle(puzzle_id, current_user_id)
    return {"message": "Puzzle deleted successfully"}


class GuessCreate(BaseModel):
    answer: str = Field(min_length=1, max_length=MAX_ANSWER_LENGTH)

class GuessHintResponse(BaseModel):
    correct_chars: int
    correct_positions: int
    answer_length: int

class GuessResponse(BaseModel):
    is_correct: bool
    is_expired: bool
    is_counted: bool
    message: str
    correct_answer: Optional[str] = None
    time_to_solve: Optional[int] = None
    hint: Optional[GuessHintResponse] = None

@router.post("/{puzzle_id}/guess", response_model=GuessResponse, response_model_exclude_none=True)
def submit_guess(
    puzzle_id: str,
    guess: GuessCreate,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    result = lifecycle.submit_guess(puzzle_id, current_user_id, guess.answer)
    return GuessResponse(**asdict(result))


class GuessHistoryResponse(BaseModel):
    guesses: List[GuessPublic]
    total_count: int
    correct_count: int
    counted_count: int

@router.get("/{puzzle_id}/guesses", response_model=GuessHistoryResponse)
def get_my_guesses(
    puzzle_id: str,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    history = lifecycle.get_user_guesses(puzzle_id, current_user_id)
    return {
        "guesses": history.guesses,
        "total_count": history.total_count,
        "correct_count": history.correct_count,
        "counted_count": history.counted_count,
    }


class GiveUpResponse(BaseModel):
    has_given_up: bool
    given_up_at: Optional[datetime] = None
    answer: Optional[str] = None

@router.post("/{puzzle_id}/give-up", response_model=GiveUpResponse)
def give_up(
    puzzle_id: str,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    return GiveUpResponse(**asdict(lifecycle.give_up(puzzle_id, current_user_id)))

@router.get("/{puzzle_id}/give-up", response_model=GiveUpResponse)
def get_give_up_status(
    puzzle_id: str,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    return GiveUpResponse(**asdict(lifecycle.get_give_up_status(puzzle_id, current_user_id)))


class SolveResponse(BaseModel):
    rank: int
    user_id: str
    username: Optional[str]
    solved_at: datetime
    time_to_solve: int

class StatsResponse(BaseModel):
    id: str
    answer: str
    total_guesses: int
    correct_guesses: int
    accuracy_rate: float
    is_expired: bool
    solves: List[SolveResponse]

@router.get("/{puzzle_id}/stats", response_model=StatsResponse)
def get_stats(
    puzzle_id: str,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    """Guess statistics and solves. Only the creator can see them."""
    stats = lifecycle.get_stats(puzzle_id, current_user_id)
    puzzle = lifecycle.get_puzzle(puzzle_id)
    return {
        "id": puzzle.puzzle_id,
        "answer": puzzle.answer,
        "total_guesses": stats.total_guesses,
        "correct_guesses": stats.correct_guesses,
        "accuracy_rate": stats.accuracy,
        "is_expired": lifecycle.is_expired(puzzle),
        "solves": [SolveResponse(**asdict(s)) for s in stats.solves],
    }


class LeaderboardResponse(BaseModel):
    solves: List[SolveResponse]
    total_solves: int

@router.get("/{puzzle_id}/solves", response_model=LeaderboardResponse)
def get_leaderboard(puzzle_id: str, lifecycle: PuzzleLifecycle = Depends(get_lifecycle)):
    solves = lifecycle.get_leaderboard(puzzle_id)
    return {
        "solves": [SolveResponse(**asdict(s)) for s in solves],
        "total_solves": len(solves),
    }


class WrongGuessCount(BaseModel):
    guess: str
    count: int

class WrongGuessResponse(BaseModel):
    wrong_guesses: List[WrongGuessCount]

@router.get("/{puzzle_id}/wrong-guesses", response_model=WrongGuessResponse)
def get_wrong_guess_frequency(
    puzzle_id: str,
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    rows = lifecycle.get_wrong_guess_frequency(puzzle_id, current_user_id, limit=limit)
    return {"wrong_guesses": [{"guess": text, "count": count} for text, count in rows]}


class AnswerResponse(BaseModel):
    answer: str
    is_expired: bool

@router.get("/{puzzle_id}/answer", response_model=AnswerResponse)
def get_answer(
    puzzle_id: str,
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    return {"answer": lifecycle.get_answer(puzzle_id), "is_expired": True}
