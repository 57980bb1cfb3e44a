from sqlmodel import SQLModel, Field, UniqueConstraint
from typing import Optional
from datetime import datetime, timezone

class SolveBase(SQLModel):
    puzzle_id: str = Field(foreign_key="puzzle.puzzle_id", index=True)
    user_id: str = Field(index=True, max_length=64)
    solved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    time_to_solve: int  # seconds from puzzle creation

class Solve(SolveBase, table=True):
    __table_args__ = (
        UniqueConstraint("puzzle_id", "user_id", name="uq_solve_puzzle_user"),  # One solve per user per puzzle
    )

    solve_id: Optional[int] = Field(default=None, primary_key=True)
