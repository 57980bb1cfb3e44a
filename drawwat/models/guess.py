from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone

class GuessBase(SQLModel):
    puzzle_id: str = Field(foreign_key="puzzle.puzzle_id", index=True)
    user_id: str = Field(index=True, max_length=64)
    guess_text: str = Field(max_length=500)
    is_correct: bool = Field(default=False)
    correct_chars: int = Field(default=0)
    correct_positions: int = Field(default=0)
    is_after_expiry: bool = Field(default=False)  # fixed at submission time
    guessed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class Guess(GuessBase, table=True):
    guess_id: Optional[int] = Field(default=None, primary_key=True)

class GuessPublic(SQLModel):
    guess_id: int
    guess_text: str
    is_correct: bool
    correct_chars: int
    correct_positions: int
    is_after_expiry: bool
    guessed_at: datetime
