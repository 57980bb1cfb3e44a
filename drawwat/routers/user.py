from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from ..models.user import UserPublic
from ..services.auth import get_current_user_id
from ..services.lifecycle import PuzzleLifecycle, get_lifecycle

router = APIRouter(
    prefix="/user",
    tags=["User"]
)

@router.get("/me", response_model=UserPublic)
def get_me(
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    return lifecycle.get_me(current_user_id)


class MyPuzzle(BaseModel):
    id: str
    image_url: str
    answer: str
    hint: Optional[str]
    is_public: bool
    expires_at: Optional[datetime]
    created_at: datetime
    total_guesses: int
    correct_guesses: int

class MyPuzzlesResponse(BaseModel):
    puzzles: List[MyPuzzle]

@router.get("/me/puzzles", response_model=MyPuzzlesResponse)
def get_my_puzzles(
    lifecycle: PuzzleLifecycle = Depends(get_lifecycle),
    current_user_id: str = Depends(get_current_user_id)
):
    """Puzzles created by the current user, newest first, with counted guess totals."""
    puzzles = []
    for summary in lifecycle.get_my_puzzles(current_user_id):
        puzzle = summary.puzzle
        puzzles.append({
            "id": puzzle.puzzle_id,
            "image_url": lifecycle.image_url(puzzle),
            "answer": puzzle.answer,
            "hint": puzzle.hint,
            "is_public": puzzle.is_public,
            "expires_at": puzzle.expires_at,
            "created_at": puzzle.created_at,
            "total_guesses": summary.total_guesses,
            "correct_guesses": summary.correct_guesses,
        })
    return {"puzzles": puzzles}
